"""
Campus Fix - Geospatial Utilities
Coordinates and great-circle distance calculations.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from campusfix.core.constants import EARTH_RADIUS_M


@dataclass(frozen=True)
class Coordinate:
    """Geographic point with latitude and longitude in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")

    def to_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in meters (0 for identical points)
    """
    if a == b:
        return 0.0

    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    delta_lat = math.radians(b.latitude - a.latitude)
    delta_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # Rounding can push h just outside [0, 1] near antipodes
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_M * c


def destination_point(
    origin: Coordinate,
    distance_m: float,
    bearing_degrees: float
) -> Coordinate:
    """
    Calculate destination point given start, distance, and bearing.

    Args:
        origin: Start point
        distance_m: Distance to travel in meters
        bearing_degrees: Bearing in degrees (0=North, 90=East)

    Returns:
        Destination coordinate
    """
    lat_rad = math.radians(origin.latitude)
    lon_rad = math.radians(origin.longitude)
    bearing_rad = math.radians(bearing_degrees)
    angular_distance = distance_m / EARTH_RADIUS_M

    dest_lat = math.asin(
        math.sin(lat_rad) * math.cos(angular_distance) +
        math.cos(lat_rad) * math.sin(angular_distance) * math.cos(bearing_rad)
    )

    dest_lon = lon_rad + math.atan2(
        math.sin(bearing_rad) * math.sin(angular_distance) * math.cos(lat_rad),
        math.cos(angular_distance) - math.sin(lat_rad) * math.sin(dest_lat)
    )

    # Normalise longitude into [-180, 180]
    lon_deg = (math.degrees(dest_lon) + 540) % 360 - 180
    return Coordinate(latitude=math.degrees(dest_lat), longitude=lon_deg)
