"""
Campus Fix - Error taxonomy.

Every error carries a short ``kind`` code and a message that can be shown to
the student or maintenance user as-is.
"""

from typing import List, Optional


class CampusFixError(Exception):
    """Base class for all application errors."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationServiceUnavailable(CampusFixError):
    kind = "validation_service_unavailable"

    def __init__(self, message: str = "Image validation is unavailable right now. Please try again."):
        super().__init__(message)


class LocationUnavailable(CampusFixError):
    kind = "location_unavailable"

    def __init__(self, message: str = "Your location could not be read. Allow location access and try again."):
        super().__init__(message)


class LocationServiceUnavailable(CampusFixError):
    kind = "location_service_unavailable"

    def __init__(self, message: str = "Campus location check is unavailable right now. Please try again."):
        super().__init__(message)


class OutsideGeofence(CampusFixError):
    kind = "outside_geofence"

    def __init__(self, distance_meters: Optional[float] = None):
        if distance_meters is None:
            message = "You must be on campus to submit an issue."
        else:
            message = (
                f"You must be on campus to submit an issue "
                f"(you are {distance_meters:.0f} m from the campus center)."
            )
        super().__init__(message)
        self.distance_meters = distance_meters


class IncompleteDraft(CampusFixError):
    kind = "incomplete_draft"

    def __init__(self, missing_fields: List[str]):
        super().__init__(f"Please fill in: {', '.join(missing_fields)}")
        self.missing_fields = list(missing_fields)


class PersistenceFailure(CampusFixError):
    kind = "persistence_failure"

    def __init__(self, message: str = "Failed to submit issue. Please try again."):
        super().__init__(message)


class NotificationFailure(CampusFixError):
    """Raised by notifiers; never fails a submission."""

    kind = "notification_failure"


class InvalidTransition(CampusFixError):
    kind = "invalid_transition"


class WorkflowCancelled(CampusFixError):
    kind = "workflow_cancelled"

    def __init__(self, message: str = "The report was cancelled."):
        super().__init__(message)


class AccessDenied(CampusFixError):
    kind = "access_denied"


class IssueNotFound(CampusFixError):
    kind = "issue_not_found"

    def __init__(self, issue_id: str):
        super().__init__(f"Issue {issue_id} not found")
        self.issue_id = issue_id


class InvalidDraftField(CampusFixError):
    kind = "invalid_field"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
