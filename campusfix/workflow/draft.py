"""
Draft issue data and the value types it is built from.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from campusfix.core.constants import (
    CATEGORY_LABELS,
    FLOOR_PREFIX,
    LOCATION_SEPARATOR,
    URGENCY_LABELS,
)
from campusfix.core.geo_utils import Coordinate
from campusfix.geofence.gate import GeofenceResult
from campusfix.validation.verdict import ValidationVerdict


class Severity(str, Enum):
    """Severity tier stored on the issue."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Urgency(str, Enum):
    """Urgency tier chosen by the student."""
    EMERGENCY = "emergency"
    NEEDS_ATTENTION = "needs_attention"
    CAN_WAIT = "can_wait"

    @property
    def label(self) -> str:
        return URGENCY_LABELS[self.value]

    @property
    def severity(self) -> Severity:
        return URGENCY_SEVERITY[self]


# Canonical mapping; the older reversed labelling is not supported
URGENCY_SEVERITY: Dict[Urgency, Severity] = {
    Urgency.EMERGENCY: Severity.HIGH,
    Urgency.NEEDS_ATTENTION: Severity.MEDIUM,
    Urgency.CAN_WAIT: Severity.LOW,
}


def severity_for_urgency(urgency: Urgency) -> Severity:
    return URGENCY_SEVERITY[Urgency(urgency)]


_DISPLAY_PATTERN = re.compile(
    r"^(?P<building>.+?)"
    + re.escape(LOCATION_SEPARATOR + FLOOR_PREFIX)
    + r"(?P<floor>[^,]*)"
    + re.escape(LOCATION_SEPARATOR)
    + r"(?P<room>.+)$"
)


@dataclass(frozen=True)
class IssueLocation:
    """
    Where on campus the issue is.

    Stored as three parts; ``display()`` renders
    ``"<Building>, Floor <Floor>, <Room>"`` and ``parse()`` reads it back.
    """
    building: str
    floor: str
    room: str

    def __post_init__(self):
        if LOCATION_SEPARATOR + FLOOR_PREFIX in self.building:
            raise ValueError(
                f"Building name must not contain '{LOCATION_SEPARATOR + FLOOR_PREFIX}'"
            )
        if "," in self.floor:
            raise ValueError("Floor must not contain commas")

    def display(self) -> str:
        return (
            f"{self.building}{LOCATION_SEPARATOR}"
            f"{FLOOR_PREFIX}{self.floor}{LOCATION_SEPARATOR}{self.room}"
        )

    @classmethod
    def parse(cls, text: Optional[str]) -> "IssueLocation":
        """
        Parse a stored location string.

        Understands the display format, legacy ``"A, B, C"`` strings and
        plain free text (kept whole as the building).
        """
        if not text:
            return cls(building="", floor="", room="")

        match = _DISPLAY_PATTERN.match(text.strip())
        if match:
            return cls(
                building=match.group("building"),
                floor=match.group("floor"),
                room=match.group("room"),
            )

        parts = [p.strip() for p in text.split(",")]
        if len(parts) < 3:
            return cls(building=text.strip(), floor="", room="")

        floor = parts[1]
        if floor.startswith(FLOOR_PREFIX):
            floor = floor[len(FLOOR_PREFIX):]
        return cls(
            building=parts[0],
            floor=floor,
            room=", ".join(parts[2:]),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"building": self.building, "floor": self.floor, "room": self.room}


@dataclass
class DraftIssue:
    """
    In-progress report owned by one workflow.

    Fields fill in as the workflow advances and are only cleared by a
    full reset or by acknowledging a rejection.
    """
    image: Optional[bytes] = None
    image_filename: Optional[str] = None
    image_content_type: str = "image/jpeg"
    category: Optional[str] = None
    subcategory: Optional[str] = None
    verdict: Optional[ValidationVerdict] = None
    location: Optional[IssueLocation] = None
    urgency: Optional[Urgency] = None
    coordinate_at_submit: Optional[Coordinate] = None
    geofence_result: Optional[GeofenceResult] = None
    image_url: Optional[str] = None

    @property
    def has_valid_verdict(self) -> bool:
        return self.verdict is not None and self.verdict.is_valid

    @property
    def passed_geofence(self) -> bool:
        return self.geofence_result is not None and self.geofence_result.inside

    def clear_image_and_category(self) -> None:
        self.image = None
        self.image_filename = None
        self.image_content_type = "image/jpeg"
        self.category = None
        self.subcategory = None
        self.verdict = None

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.image:
            missing.append("image")
        if not self.category:
            missing.append("category")
        if self.location is None:
            missing.append("location")
        if self.urgency is None:
            missing.append("urgency")
        if self.verdict is None:
            missing.append("validation")
        return missing

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_image": bool(self.image),
            "image_filename": self.image_filename,
            "category": self.category,
            "category_label": CATEGORY_LABELS.get(self.category) if self.category else None,
            "subcategory": self.subcategory,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "location": self.location.to_dict() if self.location else None,
            "urgency": self.urgency.value if self.urgency else None,
            "severity": self.urgency.severity.value if self.urgency else None,
            "coordinate_at_submit": (
                self.coordinate_at_submit.to_dict() if self.coordinate_at_submit else None
            ),
            "geofence": self.geofence_result.to_dict() if self.geofence_result else None,
            "image_url": self.image_url,
        }
