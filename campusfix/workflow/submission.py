"""
Issue submission workflow

Drives one student's report from photo capture to a persisted issue:

    image + category -> validation -> location -> urgency -> confirmation
    -> geofence check -> persistence -> completed

Each step is gated: the image oracle must accept the photo before location
details are taken, and the geofence gate must place the reporter on campus
before anything is persisted. Side effects (upload, persistence, points,
notification) happen only on the way into ``Completed``.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Dict, List, Optional

from campusfix.core.constants import (
    CATEGORY_LABELS,
    CATEGORY_SUBCATEGORIES,
    POINTS_VALID_SUBMISSION,
)
from campusfix.core.exceptions import (
    IncompleteDraft,
    InvalidDraftField,
    InvalidTransition,
    LocationServiceUnavailable,
    LocationUnavailable,
    NotificationFailure,
    OutsideGeofence,
    PersistenceFailure,
    ValidationServiceUnavailable,
    WorkflowCancelled,
)
from campusfix.core.geo_utils import Coordinate
from campusfix.geofence.gate import GeofenceGate
from campusfix.geofence.location import LocationProvider
from campusfix.validation.image_validator import FailurePolicy, unavailable_verdict
from campusfix.workflow.draft import DraftIssue, IssueLocation, Urgency
from campusfix.workflow.record import IssueRecord, IssueRecordBuilder
from campusfix.workflow.states import (
    TRANSITIONS,
    VERIFIED_STEPS,
    WorkflowState,
    WorkflowStep,
)

logger = logging.getLogger(__name__)


class SubmissionWorkflow:
    """
    State machine for a single in-progress issue report.

    One instance per student session; the draft it owns is never shared.

    Collaborators:
        oracle: ``async validate(image, content_type) -> ValidationVerdict``
        gate: ``GeofenceGate``
        location_provider: ``LocationProvider``
        repository: ``async create_issue(record) -> id`` and
            ``async increment_points(user_id, delta)``
        storage: ``async upload(path, data, content_type) -> url``
        notifier: optional ``async notify(summary)``
    """

    def __init__(
        self,
        student_id: str,
        oracle: Any,
        gate: GeofenceGate,
        location_provider: LocationProvider,
        repository: Any,
        storage: Any,
        notifier: Optional[Any] = None,
        student_email: Optional[str] = None,
        validation_policy: FailurePolicy = FailurePolicy.FAIL_CLOSED,
        require_subcategory: bool = True,
        validation_timeout: float = 15.0,
        location_timeout: float = 10.0,
        record_builder: Optional[IssueRecordBuilder] = None
    ):
        self.student_id = student_id
        self.student_email = student_email
        self.oracle = oracle
        self.gate = gate
        self.location_provider = location_provider
        self.repository = repository
        self.storage = storage
        self.notifier = notifier
        self.validation_policy = validation_policy
        self.require_subcategory = require_subcategory
        self.validation_timeout = validation_timeout
        self.location_timeout = location_timeout
        self.record_builder = record_builder or IssueRecordBuilder()

        self.state = WorkflowState.awaiting_image_and_category()
        self.draft = DraftIssue()
        self.warnings: List[str] = []
        self.last_error: Optional[str] = None

        self._generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._persisting = False

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    @property
    def step(self) -> WorkflowStep:
        return self.state.step

    def _require_step(self, expected: WorkflowStep, action: str) -> None:
        if self.state.step != expected:
            raise InvalidTransition(
                f"Cannot {action} while {self.state.step.value}"
            )

    def _transition(self, new_state: WorkflowState) -> None:
        old_step = self.state.step
        if new_state.step not in TRANSITIONS[old_step]:
            raise InvalidTransition(
                f"Transition {old_step.value} -> {new_state.step.value} not allowed"
            )
        if new_state.step in VERIFIED_STEPS and not self.draft.has_valid_verdict:
            raise InvalidTransition(
                f"{new_state.step.value} requires an accepted image"
            )

        self.state = new_state
        logger.info(
            f"Report workflow {self.student_id}: {old_step.value} -> {new_state.step.value}"
        )

    def _fail_back(self, new_state: WorkflowState, error: Exception) -> None:
        """Return to a safe earlier step and remember the user-facing error."""
        self._transition(new_state)
        self.last_error = str(error)

    async def _await_pending(self, coro: Awaitable, timeout: Optional[float]):
        """
        Await a collaborator call that ``cancel()`` may abandon.

        Raises:
            WorkflowCancelled: if the workflow was reset while waiting
            asyncio.TimeoutError: if the call exceeds ``timeout``
        """
        generation = self._generation
        task = asyncio.ensure_future(asyncio.wait_for(coro, timeout))
        self._pending = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                raise WorkflowCancelled()
            raise
        finally:
            if self._pending is task:
                self._pending = None

        if generation != self._generation:
            raise WorkflowCancelled()
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def submit_image(
        self,
        image: bytes,
        category: str,
        subcategory: Optional[str] = None,
        filename: Optional[str] = None,
        content_type: str = "image/jpeg"
    ) -> WorkflowState:
        """
        Capture photo and category, then ask the oracle about the photo.

        Returns:
            New state: AwaitingLocation or Rejected

        Raises:
            IncompleteDraft / InvalidDraftField: bad input, state unchanged
            ValidationServiceUnavailable: oracle unreachable under the
                fail-closed policy; back at AwaitingImageAndCategory
        """
        self._require_step(WorkflowStep.AWAITING_IMAGE_AND_CATEGORY, "submit an image")
        self.last_error = None

        category = (category or "").strip().lower()
        subcategory = (subcategory or "").strip() or None
        self._check_image_fields(image, category, subcategory)

        self.draft.image = image
        self.draft.image_filename = filename
        self.draft.image_content_type = content_type
        self.draft.category = category
        self.draft.subcategory = subcategory
        self.draft.verdict = None

        self._transition(WorkflowState.validating())

        try:
            verdict = await self._await_pending(
                self.oracle.validate(image, content_type),
                self.validation_timeout,
            )
        except WorkflowCancelled:
            raise
        except Exception as e:
            if not isinstance(e, (ValidationServiceUnavailable, asyncio.TimeoutError)):
                logger.error(f"Image validation for {self.student_id} failed unexpectedly: {e!r}")
            if self.validation_policy != FailurePolicy.FAIL_OPEN:
                if isinstance(e, ValidationServiceUnavailable):
                    self._fail_back(WorkflowState.awaiting_image_and_category(), e)
                    raise
                error = ValidationServiceUnavailable()
                self._fail_back(WorkflowState.awaiting_image_and_category(), error)
                raise error from e
            logger.warning(
                f"Image validation unavailable for {self.student_id}; "
                "continuing with fallback verdict (fail-open)"
            )
            verdict = unavailable_verdict()

        self.draft.verdict = verdict
        logger.info(
            f"Image verdict for {self.student_id}: valid={verdict.is_valid} "
            f"confidence={verdict.confidence} reason={verdict.reason!r}"
        )

        if verdict.is_valid:
            self._transition(WorkflowState.awaiting_location())
        else:
            self._transition(WorkflowState.rejected(verdict.reason))
        return self.state

    def _check_image_fields(
        self,
        image: bytes,
        category: str,
        subcategory: Optional[str]
    ) -> None:
        missing = []
        if not image:
            missing.append("image")
        if not category:
            missing.append("category")
        elif category not in CATEGORY_LABELS:
            raise InvalidDraftField("category", f"Unknown category: {category}")

        allowed = CATEGORY_SUBCATEGORIES.get(category, [])
        if subcategory is not None:
            if subcategory not in allowed:
                raise InvalidDraftField(
                    "subcategory",
                    f"Unknown subcategory for {category or 'category'}: {subcategory}",
                )
        elif allowed and self.require_subcategory:
            missing.append("subcategory")

        if missing:
            raise IncompleteDraft(missing)

    def submit_location(self, building: str, floor: str, room: str) -> WorkflowState:
        """Record building, floor and room; all three are required."""
        self._require_step(WorkflowStep.AWAITING_LOCATION, "set the location")

        parts = {
            "building": (building or "").strip(),
            "floor": (floor or "").strip(),
            "room": (room or "").strip(),
        }
        missing = [name for name, value in parts.items() if not value]
        if missing:
            raise IncompleteDraft(missing)

        try:
            location = IssueLocation(**parts)
        except ValueError as e:
            raise InvalidDraftField("location", str(e)) from e

        self.draft.location = location
        self._transition(WorkflowState.awaiting_urgency())
        return self.state

    def select_urgency(self, urgency: str) -> WorkflowState:
        """Record the urgency tier (emergency, needs_attention, can_wait)."""
        self._require_step(WorkflowStep.AWAITING_URGENCY, "select urgency")

        try:
            value = Urgency(urgency)
        except ValueError as e:
            raise InvalidDraftField("urgency", f"Unknown urgency: {urgency}") from e

        self.draft.urgency = value
        self._transition(WorkflowState.awaiting_confirmation())
        return self.state

    async def confirm(self) -> WorkflowState:
        """
        Check the reporter is on campus, then persist the issue.

        Returns:
            Completed state

        Raises:
            LocationUnavailable / LocationServiceUnavailable / OutsideGeofence:
                back at AwaitingConfirmation with the draft intact
            PersistenceFailure: moved to Failed; ``retry()`` re-attempts
        """
        self._require_step(WorkflowStep.AWAITING_CONFIRMATION, "confirm")
        self.last_error = None
        self._transition(WorkflowState.submitting())

        try:
            coord = await self._read_location()
            result = await self._await_pending(self.gate.check(coord), None)
        except (LocationUnavailable, LocationServiceUnavailable) as e:
            self._fail_back(WorkflowState.awaiting_confirmation(), e)
            raise
        except WorkflowCancelled:
            raise
        except Exception as e:
            logger.error(f"Campus check for {self.student_id} failed unexpectedly: {e!r}")
            error = LocationServiceUnavailable()
            self._fail_back(WorkflowState.awaiting_confirmation(), error)
            raise error from e

        if not result.inside:
            error = OutsideGeofence(result.distance_meters)
            logger.info(
                f"Submission blocked for {self.student_id}: outside campus "
                f"(distance={result.distance_meters})"
            )
            self._fail_back(WorkflowState.awaiting_confirmation(), error)
            raise error

        self.draft.coordinate_at_submit = coord
        self.draft.geofence_result = result
        return await self._persist()

    async def _read_location(self) -> Coordinate:
        try:
            coord = await self._await_pending(
                self.location_provider.get_current_location(),
                self.location_timeout,
            )
        except asyncio.TimeoutError as e:
            raise LocationUnavailable() from e

        if coord is None:
            raise LocationUnavailable()
        return coord

    async def retry(self) -> WorkflowState:
        """Re-attempt persistence after a failure; no re-validation."""
        self._require_step(WorkflowStep.FAILED, "retry")
        if not self.draft.passed_geofence:
            raise InvalidTransition("Cannot retry without a verified campus location")

        self.last_error = None
        self._transition(WorkflowState.submitting())
        return await self._persist()

    async def _persist(self) -> WorkflowState:
        if not self.draft.passed_geofence:
            raise InvalidTransition("Persistence requires a verified campus location")

        try:
            self.record_builder.validate(self.draft)
        except IncompleteDraft as e:
            self._fail_back(WorkflowState.awaiting_confirmation(), e)
            raise

        self._persisting = True
        try:
            if not self.draft.image_url:
                self.draft.image_url = await self.storage.upload(
                    self._image_path(),
                    self.draft.image,
                    self.draft.image_content_type,
                )
            record = self.record_builder.build(
                self.draft, student_id=self.student_id, image_url=self.draft.image_url
            )
            issue_id = await self.repository.create_issue(record)
        except Exception as e:
            logger.error(f"Persisting issue for {self.student_id} failed: {e}")
            error = PersistenceFailure()
            self._transition(WorkflowState.failed(error.kind))
            self.last_error = str(error)
            raise error from e
        finally:
            self._persisting = False

        self._transition(WorkflowState.completed(str(issue_id)))
        self.draft.image = None
        logger.info(f"Issue {issue_id} submitted by {self.student_id}")

        await self._award_points()
        await self._notify(record, str(issue_id))
        return self.state

    def _image_path(self) -> str:
        ext = "jpg"
        if self.draft.image_filename and "." in self.draft.image_filename:
            ext = self.draft.image_filename.rsplit(".", 1)[-1].lower()
        return f"{self.student_id}/{int(time.time() * 1000)}.{ext}"

    async def _award_points(self) -> None:
        try:
            await self.repository.increment_points(self.student_id, POINTS_VALID_SUBMISSION)
        except Exception as e:
            logger.warning(f"Awarding points to {self.student_id} failed: {e}")
            self.warnings.append("Points could not be awarded right now.")

    async def _notify(self, record: IssueRecord, issue_id: str) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(
                record.notification_summary(issue_id, self.student_email)
            )
        except NotificationFailure as e:
            logger.warning(f"Notification for issue {issue_id} failed: {e}")
            self.warnings.append("Maintenance could not be notified by email.")
        except Exception as e:
            logger.warning(f"Notification for issue {issue_id} failed unexpectedly: {e}")
            self.warnings.append("Maintenance could not be notified by email.")

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def acknowledge_rejection(self) -> WorkflowState:
        """Clear the rejected photo and category and start over."""
        self._require_step(WorkflowStep.REJECTED, "acknowledge a rejection")
        self.draft.clear_image_and_category()
        self.last_error = None
        self._transition(WorkflowState.awaiting_image_and_category())
        return self.state

    def reset(self) -> WorkflowState:
        """
        Abandon the current report from any step.

        A pending oracle or location call is cancelled; its caller gets
        ``WorkflowCancelled`` and nothing is persisted.

        Raises:
            InvalidTransition: while the issue is being persisted
        """
        if self._persisting:
            raise InvalidTransition("Cannot reset while the issue is being submitted")

        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            logger.info(f"Report workflow {self.student_id}: pending call cancelled")
        self._pending = None

        old_step = self.state.step
        self.state = WorkflowState.awaiting_image_and_category()
        self.draft = DraftIssue()
        self.warnings = []
        self.last_error = None
        logger.info(f"Report workflow {self.student_id}: {old_step.value} -> reset")
        return self.state

    cancel = reset

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.to_dict(),
            "draft": self.draft.to_dict(),
            "warnings": list(self.warnings),
            "last_error": self.last_error,
        }
