"""
Campus Fix - Geofence Module
Campus membership checks and location providers.
"""

from campusfix.geofence.gate import (
    CampusGeofence,
    GeofenceGate,
    GeofenceResult,
    LocalRadiusStrategy,
    RemoteGeofenceStrategy,
)
from campusfix.geofence.location import (
    LocationProvider,
    ReportedLocationProvider,
    StaticLocationProvider,
)
from campusfix.geofence.remote_client import RemoteGeofenceClient

__all__ = [
    # Gate
    "CampusGeofence",
    "GeofenceGate",
    "GeofenceResult",
    "LocalRadiusStrategy",
    "RemoteGeofenceStrategy",
    # Location
    "LocationProvider",
    "ReportedLocationProvider",
    "StaticLocationProvider",
    # Remote
    "RemoteGeofenceClient",
]
