"""
Pytest configuration and fixtures
"""
import asyncio
import itertools

import pytest

from campusfix.core.exceptions import NotificationFailure
from campusfix.core.geo_utils import Coordinate
from campusfix.geofence.gate import CampusGeofence, GeofenceGate, LocalRadiusStrategy
from campusfix.geofence.location import StaticLocationProvider
from campusfix.validation.verdict import ValidationVerdict
from campusfix.workflow.draft import DraftIssue, IssueLocation, Urgency
from campusfix.workflow.record import IssueRecordBuilder
from campusfix.workflow.submission import SubmissionWorkflow

CAMPUS_CENTER = Coordinate(latitude=12.8231, longitude=80.0442)
CAMPUS_RADIUS_M = 1000.0


def make_record(student_id="student-1"):
    """Issue record for a water leak in Tech Park."""
    draft = DraftIssue(
        image=b"img",
        category="water",
        subcategory="Leak",
        verdict=ValidationVerdict(True, "Leak", 90),
        location=IssueLocation("Tech Park", "2", "Room 204"),
        urgency=Urgency.NEEDS_ATTENTION,
    )
    return IssueRecordBuilder().build(draft, student_id, "https://cdn.test/leak.jpg")


class FakeOracle:
    """Image oracle returning a fixed verdict, or raising a fixed error."""

    def __init__(self, verdict=None, error=None, delay=0.0):
        self.verdict = verdict or ValidationVerdict(
            is_valid=True, reason="Clear photo of a water leak", confidence=92
        )
        self.error = error
        self.delay = delay
        self.calls = []

    async def validate(self, image_data, content_type="image/jpeg"):
        self.calls.append((image_data, content_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.verdict


class FakeRepository:
    """In-memory issue store; can be told to fail the next N inserts."""

    def __init__(self, failures=0, points_error=None):
        self.failures = failures
        self.points_error = points_error
        self.issues = {}
        self.points = {}
        self.create_calls = 0
        self._ids = itertools.count(1)

    async def create_issue(self, record):
        self.create_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("database unavailable")
        issue_id = f"issue-{next(self._ids)}"
        self.issues[issue_id] = record
        return issue_id

    async def increment_points(self, user_id, delta):
        if self.points_error is not None:
            raise self.points_error
        self.points[user_id] = self.points.get(user_id, 0) + delta
        return self.points[user_id]


class FakeStorage:
    """Records uploads and returns predictable URLs."""

    def __init__(self):
        self.uploads = []

    async def upload(self, path, data, content_type="application/octet-stream"):
        self.uploads.append((path, data, content_type))
        return f"https://storage.test/{path}"


class FakeNotifier:
    """Records notification summaries."""

    def __init__(self, error=None):
        self.error = error
        self.summaries = []

    async def notify(self, summary):
        if self.error is not None:
            raise self.error
        self.summaries.append(summary)


@pytest.fixture
def campus_center():
    """Campus center used by the local geofence."""
    return CAMPUS_CENTER


@pytest.fixture
def gate():
    """Local-only geofence gate with a 1000 m radius."""
    return GeofenceGate(local=LocalRadiusStrategy(CampusGeofence(CAMPUS_CENTER, CAMPUS_RADIUS_M)))


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def failing_notifier():
    return FakeNotifier(error=NotificationFailure("SMTP error: connection refused"))


@pytest.fixture
def make_workflow(gate, oracle, repository, storage, notifier):
    """Factory for workflows wired to the fakes; keyword overrides allowed."""
    def _make(**overrides):
        options = {
            "student_id": "student-1",
            "oracle": oracle,
            "gate": gate,
            "location_provider": StaticLocationProvider(CAMPUS_CENTER),
            "repository": repository,
            "storage": storage,
            "notifier": notifier,
            "student_email": "student@campus.test",
        }
        options.update(overrides)
        return SubmissionWorkflow(**options)
    return _make


@pytest.fixture
def sample_image():
    """Small JPEG-looking payload."""
    return b"\xff\xd8\xff\xe0" + b"\x00" * 64
