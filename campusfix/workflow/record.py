"""
Issue record assembly from a finished draft.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from campusfix.core.constants import CATEGORY_LABELS
from campusfix.core.exceptions import IncompleteDraft
from campusfix.workflow.draft import DraftIssue, IssueLocation, Severity, Urgency

logger = logging.getLogger(__name__)


def category_label(category: str, subcategory: Optional[str] = None) -> str:
    label = CATEGORY_LABELS.get(category, category)
    if subcategory:
        return f"{label} ({subcategory})"
    return label


@dataclass(frozen=True)
class IssueRecord:
    """Issue payload handed to the persistence collaborator."""
    student_id: str
    category: str
    subcategory: Optional[str]
    severity: Severity
    urgency: Urgency
    location: IssueLocation
    description: str
    confidence: int
    image_url: str
    status: str = "submitted"

    @property
    def category_label(self) -> str:
        return category_label(self.category, self.subcategory)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "category": self.category,
            "subcategory": self.subcategory,
            "severity": self.severity.value,
            "urgency": self.urgency.value,
            "location": self.location.display(),
            "building_name": self.location.building,
            "floor_number": self.location.floor,
            "room_area": self.location.room,
            "description": self.description,
            "confidence": self.confidence,
            "image_url": self.image_url,
            "status": self.status,
        }

    def notification_summary(
        self,
        issue_id: str,
        student_email: Optional[str] = None
    ) -> Dict[str, Any]:
        """Summary sent to the maintenance team."""
        return {
            "issueId": issue_id,
            "category": self.category_label,
            "severity": self.severity.value,
            "location": self.location.display(),
            "urgency": self.urgency.label,
            "imageUrl": self.image_url,
            "studentEmail": student_email,
        }


class IssueRecordBuilder:
    """Builds ``IssueRecord`` values from a completed ``DraftIssue``."""

    def validate(self, draft: DraftIssue) -> None:
        """
        Check that every field needed for a record is present.

        Raises:
            IncompleteDraft: listing the missing fields
        """
        missing = draft.missing_fields()
        if missing:
            raise IncompleteDraft(missing)

    def build(
        self,
        draft: DraftIssue,
        student_id: str,
        image_url: str
    ) -> IssueRecord:
        """
        Assemble the record.

        Args:
            draft: Completed draft
            student_id: Reporting student
            image_url: Public URL of the uploaded photo

        Returns:
            IssueRecord
        """
        self.validate(draft)
        if not image_url:
            raise IncompleteDraft(["image_url"])

        record = IssueRecord(
            student_id=student_id,
            category=draft.category,
            subcategory=draft.subcategory,
            severity=draft.urgency.severity,
            urgency=draft.urgency,
            location=draft.location,
            description=self._describe(draft),
            confidence=draft.verdict.confidence,
            image_url=image_url,
        )

        logger.debug(f"Built issue record for {student_id}: {record.category_label}")
        return record

    def _describe(self, draft: DraftIssue) -> str:
        return (
            f"Category: {category_label(draft.category, draft.subcategory)}. "
            f"Location: {draft.location.display()}. "
            f"Urgency: {draft.urgency.label}."
        )
