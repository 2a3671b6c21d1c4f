"""
Remote geofence lookup client

Asks a Radar-style tracking API whether a coordinate falls inside a named
geofence zone. A non-empty ``geofences`` list in the response means the
point is inside.

API Documentation: https://radar.com/documentation/api#track
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from campusfix.core.constants import GEOFENCE_USER_ID, RADAR_TRACK_URL
from campusfix.core.exceptions import LocationServiceUnavailable
from campusfix.core.geo_utils import Coordinate

logger = logging.getLogger(__name__)


class RemoteGeofenceClient:
    """
    Client for the remote geofence lookup service.

    Usage:
        client = RemoteGeofenceClient(api_key="prj_live_sk_...", zone_id="campus")
        zones = await client.lookup(Coordinate(12.82, 80.04))
    """

    def __init__(
        self,
        api_key: str,
        zone_id: str,
        url: str = RADAR_TRACK_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize geofence client.

        Args:
            api_key: Secret key for the geofence service
            zone_id: External id of the campus geofence
            url: Track endpoint
            timeout: HTTP request timeout in seconds
            transport: Optional transport override (tests)
        """
        if not api_key:
            raise ValueError("Geofence API key is required")

        self.api_key = api_key
        self.zone_id = zone_id
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_payload(self, coord: Coordinate) -> Dict[str, Any]:
        return {
            "userId": GEOFENCE_USER_ID,
            "location": coord.to_dict(),
            "geofenceExternalIds": [self.zone_id],
        }

    async def lookup(self, coord: Coordinate) -> List[Dict[str, Any]]:
        """
        Return the geofences that contain the coordinate.

        Raises:
            LocationServiceUnavailable: on timeout, HTTP error or bad payload
        """
        client = self._get_client()

        try:
            response = await client.post(
                self.url,
                json=self._build_payload(coord),
                headers={"Authorization": self.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Geofence lookup timed out: {e}")
            raise LocationServiceUnavailable() from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geofence lookup failed: {e}")
            raise LocationServiceUnavailable() from e

        geofences = data.get("geofences") if isinstance(data, dict) else None
        if geofences is None:
            geofences = []
        if not isinstance(geofences, list):
            logger.warning(f"Unexpected geofence payload: {data!r}")
            raise LocationServiceUnavailable()

        logger.info(
            f"Geofence lookup ({coord.latitude}, {coord.longitude}) "
            f"zone={self.zone_id}: {len(geofences)} match(es)"
        )
        return geofences
