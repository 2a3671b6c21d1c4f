"""
Submission workflow states and allowed transitions.

States are immutable values; the workflow replaces its state on every
transition. Associated data (rejection reason, issue id, error kind) is
checked when a state is constructed, so a state without its data cannot
exist.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set


class WorkflowStep(str, Enum):
    """Steps of the issue submission wizard."""
    AWAITING_IMAGE_AND_CATEGORY = "awaiting_image_and_category"
    VALIDATING = "validating"
    REJECTED = "rejected"
    AWAITING_LOCATION = "awaiting_location"
    AWAITING_URGENCY = "awaiting_urgency"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"


# Valid step transitions. Explicit reset to the first step is allowed from
# anywhere and does not go through this table.
TRANSITIONS: Dict[WorkflowStep, Set[WorkflowStep]] = {
    WorkflowStep.AWAITING_IMAGE_AND_CATEGORY: {WorkflowStep.VALIDATING},
    WorkflowStep.VALIDATING: {
        WorkflowStep.AWAITING_LOCATION,
        WorkflowStep.REJECTED,
        WorkflowStep.AWAITING_IMAGE_AND_CATEGORY,
    },
    WorkflowStep.REJECTED: {WorkflowStep.AWAITING_IMAGE_AND_CATEGORY},
    WorkflowStep.AWAITING_LOCATION: {WorkflowStep.AWAITING_URGENCY},
    WorkflowStep.AWAITING_URGENCY: {WorkflowStep.AWAITING_CONFIRMATION},
    WorkflowStep.AWAITING_CONFIRMATION: {WorkflowStep.SUBMITTING},
    WorkflowStep.SUBMITTING: {
        WorkflowStep.AWAITING_CONFIRMATION,
        WorkflowStep.COMPLETED,
        WorkflowStep.FAILED,
    },
    WorkflowStep.COMPLETED: {WorkflowStep.AWAITING_IMAGE_AND_CATEGORY},
    WorkflowStep.FAILED: {WorkflowStep.SUBMITTING},
}

# Steps that may only be entered with a valid image verdict on the draft
VERIFIED_STEPS: Set[WorkflowStep] = {
    WorkflowStep.AWAITING_LOCATION,
    WorkflowStep.AWAITING_URGENCY,
    WorkflowStep.AWAITING_CONFIRMATION,
    WorkflowStep.SUBMITTING,
    WorkflowStep.COMPLETED,
    WorkflowStep.FAILED,
}


@dataclass(frozen=True)
class WorkflowState:
    """Current step plus the data that step carries."""
    step: WorkflowStep
    reason: Optional[str] = None
    issue_id: Optional[str] = None
    error_kind: Optional[str] = None

    def __post_init__(self):
        needs = {
            WorkflowStep.REJECTED: "reason",
            WorkflowStep.COMPLETED: "issue_id",
            WorkflowStep.FAILED: "error_kind",
        }
        required = needs.get(self.step)
        for name in ("reason", "issue_id", "error_kind"):
            value = getattr(self, name)
            if name == required and not value:
                raise ValueError(f"{self.step.value} state requires {name}")
            if name != required and value is not None:
                raise ValueError(f"{self.step.value} state does not carry {name}")

    @classmethod
    def awaiting_image_and_category(cls) -> "WorkflowState":
        return cls(WorkflowStep.AWAITING_IMAGE_AND_CATEGORY)

    @classmethod
    def validating(cls) -> "WorkflowState":
        return cls(WorkflowStep.VALIDATING)

    @classmethod
    def rejected(cls, reason: str) -> "WorkflowState":
        return cls(WorkflowStep.REJECTED, reason=reason)

    @classmethod
    def awaiting_location(cls) -> "WorkflowState":
        return cls(WorkflowStep.AWAITING_LOCATION)

    @classmethod
    def awaiting_urgency(cls) -> "WorkflowState":
        return cls(WorkflowStep.AWAITING_URGENCY)

    @classmethod
    def awaiting_confirmation(cls) -> "WorkflowState":
        return cls(WorkflowStep.AWAITING_CONFIRMATION)

    @classmethod
    def submitting(cls) -> "WorkflowState":
        return cls(WorkflowStep.SUBMITTING)

    @classmethod
    def completed(cls, issue_id: str) -> "WorkflowState":
        return cls(WorkflowStep.COMPLETED, issue_id=issue_id)

    @classmethod
    def failed(cls, error_kind: str) -> "WorkflowState":
        return cls(WorkflowStep.FAILED, error_kind=error_kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "reason": self.reason,
            "issue_id": self.issue_id,
            "error_kind": self.error_kind,
        }
