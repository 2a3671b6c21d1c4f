"""
Campus Fix - Constants and Reference Data
Static values used throughout the application.
"""

from typing import Dict, List, Tuple

# =============================================================================
# GEODESY
# =============================================================================

# Mean Earth radius in meters (Haversine)
EARTH_RADIUS_M: float = 6_371_000.0

# =============================================================================
# POINTS SCHEDULE
# =============================================================================

# Awarded to the student when a validated report is persisted
POINTS_VALID_SUBMISSION: int = 5

# Awarded to the student when maintenance marks the issue resolved
POINTS_RESOLVED_ISSUE: int = 50

# (name, tier, minimum points), highest tier first
BADGE_TIERS: List[Tuple[str, str, int]] = [
    ("Elite", "gold", 1000),
    ("Prime", "silver", 500),
    ("Verified", "bronze", 200),
]

# =============================================================================
# ISSUE TAXONOMY
# =============================================================================

CATEGORY_LABELS: Dict[str, str] = {
    "water": "Water",
    "air_emission": "Air Emission",
    "waste": "Waste",
    "noise": "Noise",
    "others": "Others",
}

# Categories without an entry here accept no subcategory
CATEGORY_SUBCATEGORIES: Dict[str, List[str]] = {
    "water": ["Leak", "Stagnation", "Drainage", "Quality"],
    "air_emission": ["Smoke", "Dust", "Odour", "Vehicle Emission"],
    "waste": ["Overflowing Bin", "Littering", "Spillage"],
    "noise": ["Machinery", "Generator", "Construction"],
}

URGENCY_LABELS: Dict[str, str] = {
    "emergency": "Emergency",
    "needs_attention": "Needs Attention",
    "can_wait": "Can Wait",
}

# =============================================================================
# LOCATION FORMAT
# =============================================================================

LOCATION_SEPARATOR: str = ", "
FLOOR_PREFIX: str = "Floor "

# =============================================================================
# REMOTE SERVICES
# =============================================================================

RADAR_TRACK_URL: str = "https://api.radar.io/v1/track"
GEOFENCE_USER_ID: str = "student"

# Substituted when the oracle answer cannot be parsed and the policy is fail-open
UNPARSEABLE_VERDICT_REASON: str = "Unable to analyze image - allowing submission"
UNPARSEABLE_VERDICT_CONFIDENCE: int = 50

# Substituted when the oracle is unreachable and the policy is fail-open
UNAVAILABLE_VERDICT_REASON: str = "Validation service unavailable"
UNAVAILABLE_VERDICT_CONFIDENCE: int = 0
