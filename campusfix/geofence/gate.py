"""
Campus geofence gate
Decides whether a coordinate counts as "inside campus"
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from campusfix.core.config import Settings
from campusfix.core.exceptions import LocationServiceUnavailable
from campusfix.core.geo_utils import Coordinate, haversine_distance
from campusfix.geofence.remote_client import RemoteGeofenceClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CampusGeofence:
    """Circular campus boundary."""
    center: Coordinate
    radius_meters: float

    def __post_init__(self):
        if self.radius_meters <= 0:
            raise ValueError(f"Geofence radius must be positive: {self.radius_meters}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CampusGeofence":
        return cls(
            center=Coordinate(
                latitude=settings.campus_center_latitude,
                longitude=settings.campus_center_longitude,
            ),
            radius_meters=settings.campus_radius_meters,
        )


@dataclass(frozen=True)
class GeofenceResult:
    """Outcome of a geofence check."""
    inside: bool
    distance_meters: Optional[float] = None
    source: str = "local"
    fallback_used: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inside": self.inside,
            "distance_meters": self.distance_meters,
            "source": self.source,
            "fallback_used": self.fallback_used,
        }


class LocalRadiusStrategy:
    """Inside when the Haversine distance to the center is within the radius."""

    name = "local"

    def __init__(self, geofence: CampusGeofence):
        self.geofence = geofence

    async def check(self, coord: Coordinate) -> GeofenceResult:
        distance = haversine_distance(coord, self.geofence.center)
        return GeofenceResult(
            inside=distance <= self.geofence.radius_meters,
            distance_meters=distance,
            source=self.name,
        )


class RemoteGeofenceStrategy:
    """Inside when the remote service reports at least one matching zone."""

    name = "remote"

    def __init__(self, client: RemoteGeofenceClient):
        self.client = client

    async def check(self, coord: Coordinate) -> GeofenceResult:
        geofences = await self.client.lookup(coord)
        return GeofenceResult(inside=len(geofences) > 0, source=self.name)


class GeofenceGate:
    """
    Campus membership test.

    Tries the remote strategy first when one is configured. If it times out
    or errors, falls back to the local radius only when ``fallback_to_local``
    is set; otherwise the failure propagates as ``LocationServiceUnavailable``.
    A failed lookup is never reported as inside.
    """

    def __init__(
        self,
        local: LocalRadiusStrategy,
        remote: Optional[RemoteGeofenceStrategy] = None,
        fallback_to_local: bool = False,
        timeout_seconds: float = 10.0
    ):
        self.local = local
        self.remote = remote
        self.fallback_to_local = fallback_to_local
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeofenceGate":
        remote = None
        if settings.remote_geofence_enabled:
            remote = RemoteGeofenceStrategy(
                RemoteGeofenceClient(
                    api_key=settings.geofence_api_key,
                    zone_id=settings.geofence_zone_id,
                    url=settings.geofence_api_url,
                    timeout=settings.geofence_timeout_seconds,
                )
            )
        return cls(
            local=LocalRadiusStrategy(CampusGeofence.from_settings(settings)),
            remote=remote,
            fallback_to_local=settings.geofence_fallback_to_local,
            timeout_seconds=settings.geofence_timeout_seconds,
        )

    async def check(self, coord: Optional[Coordinate]) -> GeofenceResult:
        """
        Check whether a coordinate is inside campus.

        Args:
            coord: Position to test, or None when geolocation is unavailable

        Returns:
            GeofenceResult (inside=False when coord is None)
        """
        if coord is None:
            logger.info("Geofence check without a location: treated as outside")
            return GeofenceResult(inside=False, source="none")

        if self.remote is None:
            return await self.local.check(coord)

        try:
            return await asyncio.wait_for(
                self.remote.check(coord), timeout=self.timeout_seconds
            )
        except (asyncio.TimeoutError, LocationServiceUnavailable) as e:
            if not self.fallback_to_local:
                logger.warning("Remote geofence unavailable and fallback disabled")
                if isinstance(e, LocationServiceUnavailable):
                    raise
                raise LocationServiceUnavailable() from e

            logger.warning("Remote geofence unavailable; falling back to local radius check")
            result = await self.local.check(coord)
            return GeofenceResult(
                inside=result.inside,
                distance_meters=result.distance_meters,
                source=result.source,
                fallback_used=True,
            )
