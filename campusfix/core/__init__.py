"""
Campus Fix - Core Utilities
Central configuration, constants, errors, and geospatial helpers.
"""

from campusfix.core.config import settings, get_settings
from campusfix.core.constants import (
    POINTS_VALID_SUBMISSION,
    POINTS_RESOLVED_ISSUE,
    CATEGORY_LABELS,
    CATEGORY_SUBCATEGORIES,
    URGENCY_LABELS,
)
from campusfix.core.geo_utils import (
    Coordinate,
    haversine_distance,
    destination_point,
)

__all__ = [
    "settings",
    "get_settings",
    "POINTS_VALID_SUBMISSION",
    "POINTS_RESOLVED_ISSUE",
    "CATEGORY_LABELS",
    "CATEGORY_SUBCATEGORIES",
    "URGENCY_LABELS",
    "Coordinate",
    "haversine_distance",
    "destination_point",
]
