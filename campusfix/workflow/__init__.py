"""
Campus Fix - Submission Workflow Module
Multi-step issue reporting with image and geofence gating.
"""

from campusfix.workflow.draft import (
    DraftIssue,
    IssueLocation,
    Severity,
    Urgency,
    severity_for_urgency,
)
from campusfix.workflow.record import IssueRecord, IssueRecordBuilder
from campusfix.workflow.states import TRANSITIONS, WorkflowState, WorkflowStep
from campusfix.workflow.submission import SubmissionWorkflow

__all__ = [
    # Draft
    "DraftIssue",
    "IssueLocation",
    "Severity",
    "Urgency",
    "severity_for_urgency",
    # Record
    "IssueRecord",
    "IssueRecordBuilder",
    # States
    "TRANSITIONS",
    "WorkflowState",
    "WorkflowStep",
    # Workflow
    "SubmissionWorkflow",
]
