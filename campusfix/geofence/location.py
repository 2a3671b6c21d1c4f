"""
Location providers for the submission workflow.

The workflow never reads device geolocation itself; it asks an injected
provider. A provider returns ``None`` (or raises ``LocationUnavailable``)
when no position is available.
"""

import logging
from typing import Optional

from campusfix.core.geo_utils import Coordinate

logger = logging.getLogger(__name__)


class LocationProvider:
    """Source of the reporter's current position."""

    async def get_current_location(self) -> Optional[Coordinate]:
        raise NotImplementedError


class StaticLocationProvider(LocationProvider):
    """Always returns the same coordinate. Useful for kiosks and tests."""

    def __init__(self, coordinate: Optional[Coordinate]):
        self.coordinate = coordinate

    async def get_current_location(self) -> Optional[Coordinate]:
        return self.coordinate


class ReportedLocationProvider(LocationProvider):
    """
    Holds the latest raw position reported by the client for a session.

    Only the raw coordinate is accepted; the geofence decision is always
    recomputed on the server from it.
    """

    def __init__(self):
        self._coordinate: Optional[Coordinate] = None

    def report(self, latitude: float, longitude: float) -> Coordinate:
        self._coordinate = Coordinate(latitude=latitude, longitude=longitude)
        logger.debug(f"Location reported: ({latitude}, {longitude})")
        return self._coordinate

    def clear(self) -> None:
        self._coordinate = None

    async def get_current_location(self) -> Optional[Coordinate]:
        return self._coordinate
