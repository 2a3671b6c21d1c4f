"""
Tests for the issue submission workflow
"""
import asyncio

import pytest

from campusfix.core.exceptions import (
    IncompleteDraft,
    InvalidDraftField,
    InvalidTransition,
    LocationServiceUnavailable,
    LocationUnavailable,
    OutsideGeofence,
    PersistenceFailure,
    ValidationServiceUnavailable,
    WorkflowCancelled,
)
from campusfix.core.geo_utils import destination_point
from campusfix.geofence.location import (
    LocationProvider,
    ReportedLocationProvider,
    StaticLocationProvider,
)
from campusfix.validation.image_validator import FailurePolicy
from campusfix.validation.verdict import ValidationVerdict
from campusfix.workflow.draft import Severity, Urgency
from campusfix.workflow.states import WorkflowState, WorkflowStep

from conftest import CAMPUS_CENTER, FakeOracle, FakeRepository


def fill_to_confirmation(workflow, image):
    """Drive a workflow to AwaitingConfirmation with the standard report."""
    asyncio.run(workflow.submit_image(image, "water", "Leak", filename="leak.jpg"))
    workflow.submit_location("Tech Park", "2nd Floor", "Room 204")
    workflow.select_urgency("needs_attention")
    assert workflow.step == WorkflowStep.AWAITING_CONFIRMATION


class TestImageStep:
    """Test suite for photo and category capture."""

    def test_valid_image_moves_to_location(self, make_workflow, sample_image, oracle):
        """Test an accepted photo unlocks the location step."""
        workflow = make_workflow()
        state = asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))

        assert state.step == WorkflowStep.AWAITING_LOCATION
        assert workflow.draft.verdict.confidence == 92
        assert len(oracle.calls) == 1

    def test_rejected_image_scenario(self, make_workflow, sample_image, repository):
        """Test a rejected photo ends in Rejected and nothing is persisted."""
        oracle = FakeOracle(verdict=ValidationVerdict(
            is_valid=False, reason="no environmental issue visible", confidence=92
        ))
        workflow = make_workflow(oracle=oracle)

        state = asyncio.run(workflow.submit_image(sample_image, "waste", "Littering"))

        assert state.step == WorkflowStep.REJECTED
        assert state.reason == "no environmental issue visible"
        assert repository.create_calls == 0

    def test_missing_category(self, make_workflow, sample_image, oracle):
        """Test a photo without category is refused before validation."""
        workflow = make_workflow()
        with pytest.raises(IncompleteDraft) as exc:
            asyncio.run(workflow.submit_image(sample_image, ""))

        assert "category" in exc.value.missing_fields
        assert workflow.step == WorkflowStep.AWAITING_IMAGE_AND_CATEGORY
        assert oracle.calls == []

    def test_missing_image(self, make_workflow):
        """Test an empty photo is refused."""
        workflow = make_workflow()
        with pytest.raises(IncompleteDraft) as exc:
            asyncio.run(workflow.submit_image(b"", "water", "Leak"))
        assert exc.value.missing_fields == ["image"]

    def test_subcategory_required_when_defined(self, make_workflow, sample_image):
        """Test categories with subcategories need one."""
        workflow = make_workflow()
        with pytest.raises(IncompleteDraft) as exc:
            asyncio.run(workflow.submit_image(sample_image, "water"))
        assert exc.value.missing_fields == ["subcategory"]

    def test_subcategory_optional_when_disabled(self, make_workflow, sample_image):
        """Test the subcategory requirement can be turned off."""
        workflow = make_workflow(require_subcategory=False)
        state = asyncio.run(workflow.submit_image(sample_image, "water"))
        assert state.step == WorkflowStep.AWAITING_LOCATION

    def test_others_needs_no_subcategory(self, make_workflow, sample_image):
        """Test a category without subcategories passes without one."""
        workflow = make_workflow()
        state = asyncio.run(workflow.submit_image(sample_image, "others"))
        assert state.step == WorkflowStep.AWAITING_LOCATION

    def test_unknown_category(self, make_workflow, sample_image):
        """Test unknown categories are refused."""
        workflow = make_workflow()
        with pytest.raises(InvalidDraftField):
            asyncio.run(workflow.submit_image(sample_image, "fire", None))

    def test_unknown_subcategory(self, make_workflow, sample_image):
        """Test a subcategory from another category is refused."""
        workflow = make_workflow()
        with pytest.raises(InvalidDraftField):
            asyncio.run(workflow.submit_image(sample_image, "water", "Smoke"))

    def test_oracle_unavailable_fail_closed(self, make_workflow, sample_image):
        """Test an unreachable oracle blocks the report under fail-closed."""
        workflow = make_workflow(oracle=FakeOracle(error=ValidationServiceUnavailable()))

        with pytest.raises(ValidationServiceUnavailable):
            asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))

        assert workflow.step == WorkflowStep.AWAITING_IMAGE_AND_CATEGORY
        assert workflow.last_error
        assert workflow.draft.category == "water"

    def test_oracle_unavailable_fail_open(self, make_workflow, sample_image):
        """Test an unreachable oracle is bypassed under fail-open."""
        workflow = make_workflow(
            oracle=FakeOracle(error=ValidationServiceUnavailable()),
            validation_policy=FailurePolicy.FAIL_OPEN,
        )
        state = asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))

        assert state.step == WorkflowStep.AWAITING_LOCATION
        assert workflow.draft.verdict.confidence == 0

    def test_oracle_timeout_fail_closed(self, make_workflow, sample_image):
        """Test a slow oracle times out as unavailable."""
        workflow = make_workflow(oracle=FakeOracle(delay=1.0), validation_timeout=0.01)

        with pytest.raises(ValidationServiceUnavailable):
            asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))
        assert workflow.step == WorkflowStep.AWAITING_IMAGE_AND_CATEGORY

    def test_unexpected_oracle_error_fail_closed(self, make_workflow, sample_image):
        """Test an unexpected oracle error returns to the image step as unavailable."""
        workflow = make_workflow(oracle=FakeOracle(error=ConnectionResetError("peer reset")))

        with pytest.raises(ValidationServiceUnavailable):
            asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))

        assert workflow.step == WorkflowStep.AWAITING_IMAGE_AND_CATEGORY
        assert workflow.last_error
        assert workflow.draft.category == "water"

        workflow.oracle = FakeOracle()
        state = asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))
        assert state.step == WorkflowStep.AWAITING_LOCATION

    def test_unexpected_oracle_error_fail_open(self, make_workflow, sample_image):
        """Test an unexpected oracle error is bypassed under fail-open."""
        workflow = make_workflow(
            oracle=FakeOracle(error=OverflowError("cannot convert float infinity to integer")),
            validation_policy=FailurePolicy.FAIL_OPEN,
        )
        state = asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))

        assert state.step == WorkflowStep.AWAITING_LOCATION
        assert workflow.draft.verdict.confidence == 0


class TestStepGuards:
    """Test suite for transition guards."""

    def test_cannot_skip_to_location(self, make_workflow):
        """Test location cannot be set before a photo is accepted."""
        workflow = make_workflow()
        with pytest.raises(InvalidTransition):
            workflow.submit_location("Tech Park", "2", "Lab")
        assert workflow.step == WorkflowStep.AWAITING_IMAGE_AND_CATEGORY

    def test_location_needs_valid_verdict(self, make_workflow):
        """Test a direct transition to AwaitingLocation is refused without a verdict."""
        workflow = make_workflow()
        workflow.state = WorkflowState.validating()
        with pytest.raises(InvalidTransition):
            workflow._transition(WorkflowState.awaiting_location())

    def test_location_needs_positive_verdict(self, make_workflow):
        """Test a rejected verdict does not open the location step."""
        workflow = make_workflow()
        workflow.state = WorkflowState.validating()
        workflow.draft.verdict = ValidationVerdict(False, "Selfie", 90)
        with pytest.raises(InvalidTransition):
            workflow._transition(WorkflowState.awaiting_location())

    def test_cannot_confirm_early(self, make_workflow, sample_image):
        """Test confirming before urgency is chosen is refused."""
        workflow = make_workflow()
        asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))
        with pytest.raises(InvalidTransition):
            asyncio.run(workflow.confirm())

    def test_location_fields_required(self, make_workflow, sample_image):
        """Test building, floor and room are all required."""
        workflow = make_workflow()
        asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))
        with pytest.raises(IncompleteDraft) as exc:
            workflow.submit_location("Tech Park", " ", "")
        assert exc.value.missing_fields == ["floor", "room"]
        assert workflow.step == WorkflowStep.AWAITING_LOCATION

    def test_unknown_urgency(self, make_workflow, sample_image):
        """Test unknown urgency values are refused."""
        workflow = make_workflow()
        asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))
        workflow.submit_location("Tech Park", "2", "Lab")
        with pytest.raises(InvalidDraftField):
            workflow.select_urgency("whenever")


class TestConfirmation:
    """Test suite for geofence-gated submission."""

    def test_happy_path(self, make_workflow, sample_image, repository, storage, notifier):
        """Test a full report is persisted with all supplied fields."""
        workflow = make_workflow()
        fill_to_confirmation(workflow, sample_image)

        state = asyncio.run(workflow.confirm())

        assert state.step == WorkflowStep.COMPLETED
        record = repository.issues[state.issue_id]
        assert record.category == "water"
        assert record.subcategory == "Leak"
        assert record.location.building == "Tech Park"
        assert record.location.floor == "2nd Floor"
        assert record.location.room == "Room 204"
        assert record.urgency == Urgency.NEEDS_ATTENTION
        assert record.severity == Severity.MEDIUM
        assert record.confidence == 92
        assert record.image_url == workflow.draft.image_url
        assert storage.uploads[0][0].startswith("student-1/")
        assert storage.uploads[0][0].endswith(".jpg")

    def test_happy_path_side_effects(self, make_workflow, sample_image, repository, notifier):
        """Test points are awarded and maintenance is notified."""
        workflow = make_workflow()
        fill_to_confirmation(workflow, sample_image)
        state = asyncio.run(workflow.confirm())

        assert repository.points == {"student-1": 5}
        summary = notifier.summaries[0]
        assert summary["issueId"] == state.issue_id
        assert summary["severity"] == "medium"
        assert summary["category"] == "Water (Leak)"
        assert summary["location"] == "Tech Park, Floor 2nd Floor, Room 204"
        assert summary["studentEmail"] == "student@campus.test"
        assert workflow.warnings == []

    def test_outside_campus_scenario(self, make_workflow, sample_image, repository, storage):
        """Test a reporter 1200 m away is blocked and nothing is stored."""
        far = destination_point(CAMPUS_CENTER, 1200, 30)
        workflow = make_workflow(location_provider=StaticLocationProvider(far))
        fill_to_confirmation(workflow, sample_image)

        with pytest.raises(OutsideGeofence) as exc:
            asyncio.run(workflow.confirm())

        assert exc.value.distance_meters == pytest.approx(1200, abs=1)
        assert workflow.step == WorkflowStep.AWAITING_CONFIRMATION
        assert repository.create_calls == 0
        assert storage.uploads == []
        assert workflow.draft.location.building == "Tech Park"

    def test_missing_location(self, make_workflow, sample_image, repository):
        """Test no device location means no submission."""
        workflow = make_workflow(location_provider=StaticLocationProvider(None))
        fill_to_confirmation(workflow, sample_image)

        with pytest.raises(LocationUnavailable):
            asyncio.run(workflow.confirm())
        assert workflow.step == WorkflowStep.AWAITING_CONFIRMATION
        assert repository.create_calls == 0

    def test_geofence_service_down(self, make_workflow, sample_image, repository):
        """Test an unavailable geofence never counts as inside."""
        class DownGate:
            async def check(self, coord):
                raise LocationServiceUnavailable()

        workflow = make_workflow(gate=DownGate())
        fill_to_confirmation(workflow, sample_image)

        with pytest.raises(LocationServiceUnavailable):
            asyncio.run(workflow.confirm())
        assert workflow.step == WorkflowStep.AWAITING_CONFIRMATION
        assert repository.create_calls == 0

    def test_unexpected_gate_error(self, make_workflow, sample_image, repository):
        """Test an unexpected campus check error returns to confirmation."""
        class BrokenGate:
            async def check(self, coord):
                raise ConnectionResetError("peer reset")

        workflow = make_workflow(gate=BrokenGate())
        fill_to_confirmation(workflow, sample_image)

        with pytest.raises(LocationServiceUnavailable):
            asyncio.run(workflow.confirm())
        assert workflow.step == WorkflowStep.AWAITING_CONFIRMATION
        assert workflow.last_error
        assert repository.create_calls == 0

    def test_unexpected_location_provider_error(self, make_workflow, sample_image, repository):
        """Test a location provider crash does not leave the report submitting."""
        class BrokenProvider(LocationProvider):
            async def get_current_location(self):
                raise RuntimeError("sensor error")

        workflow = make_workflow(location_provider=BrokenProvider())
        fill_to_confirmation(workflow, sample_image)

        with pytest.raises(LocationServiceUnavailable):
            asyncio.run(workflow.confirm())
        assert workflow.step == WorkflowStep.AWAITING_CONFIRMATION
        assert repository.create_calls == 0

    def test_retry_after_moving_on_campus(self, make_workflow, sample_image, repository):
        """Test confirming again after a blocked attempt succeeds."""
        location = ReportedLocationProvider()
        location.report(*destination_point(CAMPUS_CENTER, 2000, 0).to_tuple())
        workflow = make_workflow(location_provider=location)
        fill_to_confirmation(workflow, sample_image)

        with pytest.raises(OutsideGeofence):
            asyncio.run(workflow.confirm())

        location.report(CAMPUS_CENTER.latitude, CAMPUS_CENTER.longitude)
        state = asyncio.run(workflow.confirm())
        assert state.step == WorkflowStep.COMPLETED
        assert repository.create_calls == 1

    def test_notification_failure_is_a_warning(self, make_workflow, sample_image, failing_notifier):
        """Test email failure does not fail the submission."""
        workflow = make_workflow(notifier=failing_notifier)
        fill_to_confirmation(workflow, sample_image)

        state = asyncio.run(workflow.confirm())

        assert state.step == WorkflowStep.COMPLETED
        assert len(workflow.warnings) == 1

    def test_points_failure_is_a_warning(self, make_workflow, sample_image):
        """Test a points failure does not fail the submission."""
        repository = FakeRepository(points_error=RuntimeError("locked"))
        workflow = make_workflow(repository=repository)
        fill_to_confirmation(workflow, sample_image)

        state = asyncio.run(workflow.confirm())

        assert state.step == WorkflowStep.COMPLETED
        assert workflow.warnings == ["Points could not be awarded right now."]


class TestPersistenceFailure:
    """Test suite for failed persistence and retry."""

    def test_failure_then_retry(self, make_workflow, sample_image, oracle, storage):
        """Test a failed insert moves to Failed and retry only re-persists."""
        repository = FakeRepository(failures=1)
        workflow = make_workflow(repository=repository)
        fill_to_confirmation(workflow, sample_image)

        with pytest.raises(PersistenceFailure):
            asyncio.run(workflow.confirm())

        assert workflow.step == WorkflowStep.FAILED
        assert workflow.state.error_kind == "persistence_failure"
        assert workflow.draft.category == "water"
        assert workflow.draft.location.room == "Room 204"
        assert workflow.draft.urgency == Urgency.NEEDS_ATTENTION

        state = asyncio.run(workflow.retry())

        assert state.step == WorkflowStep.COMPLETED
        assert repository.create_calls == 2
        assert len(oracle.calls) == 1
        assert len(storage.uploads) == 1

    def test_upload_failure_is_persistence_failure(self, make_workflow, sample_image, repository):
        """Test a storage error also lands in Failed."""
        class BrokenStorage:
            async def upload(self, path, data, content_type="image/jpeg"):
                raise OSError("disk full")

        workflow = make_workflow(storage=BrokenStorage())
        fill_to_confirmation(workflow, sample_image)

        with pytest.raises(PersistenceFailure):
            asyncio.run(workflow.confirm())
        assert workflow.step == WorkflowStep.FAILED
        assert repository.create_calls == 0

    def test_retry_only_from_failed(self, make_workflow):
        """Test retry is refused outside Failed."""
        workflow = make_workflow()
        with pytest.raises(InvalidTransition):
            asyncio.run(workflow.retry())


class TestReset:
    """Test suite for reset and cancellation."""

    def test_acknowledge_rejection(self, make_workflow, sample_image):
        """Test acknowledging a rejection clears photo and category."""
        oracle = FakeOracle(verdict=ValidationVerdict(False, "Blurry", 70))
        workflow = make_workflow(oracle=oracle)
        asyncio.run(workflow.submit_image(sample_image, "noise", "Generator"))

        state = workflow.acknowledge_rejection()

        assert state.step == WorkflowStep.AWAITING_IMAGE_AND_CATEGORY
        assert workflow.draft.image is None
        assert workflow.draft.category is None
        assert workflow.draft.verdict is None

    def test_workflow_usable_after_rejection(self, make_workflow, sample_image):
        """Test a new photo can be submitted after a rejection."""
        oracle = FakeOracle(verdict=ValidationVerdict(False, "Blurry", 70))
        workflow = make_workflow(oracle=oracle)
        asyncio.run(workflow.submit_image(sample_image, "noise", "Generator"))
        workflow.acknowledge_rejection()

        oracle.verdict = ValidationVerdict(True, "Generator smoke", 85)
        state = asyncio.run(workflow.submit_image(sample_image, "noise", "Generator"))
        assert state.step == WorkflowStep.AWAITING_LOCATION

    def test_reset_is_idempotent(self, make_workflow, sample_image):
        """Test resetting twice gives the same empty workflow."""
        workflow = make_workflow()
        asyncio.run(workflow.submit_image(sample_image, "water", "Leak"))

        first = workflow.reset()
        second = workflow.reset()

        assert first == second == WorkflowState.awaiting_image_and_category()
        assert workflow.draft.image is None

    def test_cancel_during_validation(self, make_workflow, sample_image, repository):
        """Test cancelling while the oracle is pending abandons its answer."""
        workflow = make_workflow(oracle=FakeOracle(delay=0.5))

        async def scenario():
            task = asyncio.ensure_future(workflow.submit_image(sample_image, "water", "Leak"))
            await asyncio.sleep(0.01)
            workflow.cancel()
            with pytest.raises(WorkflowCancelled):
                await task

        asyncio.run(scenario())

        assert workflow.step == WorkflowStep.AWAITING_IMAGE_AND_CATEGORY
        assert workflow.draft.verdict is None
        assert repository.create_calls == 0

    def test_reset_refused_while_persisting(self, make_workflow, sample_image):
        """Test reset cannot interrupt an insert in progress."""
        errors = []

        class SlowRepository(FakeRepository):
            async def create_issue(self, record):
                try:
                    workflow.reset()
                except InvalidTransition as e:
                    errors.append(e)
                return await super().create_issue(record)

        workflow = make_workflow(repository=SlowRepository())
        fill_to_confirmation(workflow, sample_image)
        state = asyncio.run(workflow.confirm())

        assert len(errors) == 1
        assert state.step == WorkflowStep.COMPLETED

    def test_reset_during_location_read(self, make_workflow, sample_image, repository, storage):
        """Test resetting while the position is pending releases the request."""
        released = []

        class SlowProvider(LocationProvider):
            async def get_current_location(self):
                try:
                    await asyncio.sleep(0.5)
                except asyncio.CancelledError:
                    released.append(True)
                    raise
                return CAMPUS_CENTER

        workflow = make_workflow(location_provider=SlowProvider())
        fill_to_confirmation(workflow, sample_image)

        async def scenario():
            task = asyncio.ensure_future(workflow.confirm())
            await asyncio.sleep(0.01)
            workflow.reset()
            with pytest.raises(WorkflowCancelled):
                await task

        asyncio.run(scenario())

        assert released == [True]
        assert workflow.step == WorkflowStep.AWAITING_IMAGE_AND_CATEGORY
        assert workflow.draft.location is None
        assert repository.create_calls == 0
        assert storage.uploads == []
