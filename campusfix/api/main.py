"""
Campus Fix - REST API

FastAPI application for campus issue reporting: campus checks, photo
validation, the step-by-step report session, and maintenance issue
management.

Caller identity comes from the ``X-User-Id`` and ``X-User-Role`` headers set
by the authenticating gateway in front of this service.

Run with: uvicorn campusfix.api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from campusfix.core.config import Settings, settings
from campusfix.core.constants import CATEGORY_LABELS, CATEGORY_SUBCATEGORIES, URGENCY_LABELS
from campusfix.core.exceptions import (
    AccessDenied,
    CampusFixError,
    InvalidDraftField,
    ValidationServiceUnavailable,
)
from campusfix.core.geo_utils import Coordinate
from campusfix.core.logging import setup_logging
from campusfix.database.connection import init_db
from campusfix.database.models import UserRole
from campusfix.database.repository import Actor, IssueRepository
from campusfix.geofence.gate import GeofenceGate
from campusfix.geofence.location import ReportedLocationProvider
from campusfix.issues.service import IssueService
from campusfix.notifications.email_sender import IssueEmailNotifier
from campusfix.storage.blob_storage import create_storage
from campusfix.validation.image_validator import FailurePolicy, ImageValidationClient
from campusfix.workflow.states import WorkflowStep
from campusfix.workflow.submission import SubmissionWorkflow

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

# HTTP status per error kind
ERROR_STATUS = {
    "incomplete_draft": 422,
    "invalid_field": 422,
    "invalid_transition": 409,
    "workflow_cancelled": 409,
    "outside_geofence": 403,
    "access_denied": 403,
    "issue_not_found": 404,
    "location_unavailable": 400,
    "location_service_unavailable": 503,
    "validation_service_unavailable": 503,
    "persistence_failure": 500,
    "notification_failure": 502,
}


class UnconfiguredOracle:
    """Stands in when no validation endpoint is configured; always unavailable."""

    async def validate(self, image_data: bytes, content_type: str = "image/jpeg"):
        raise ValidationServiceUnavailable("Image validation is not configured.")


class ReportSession:
    """One student's in-progress report and the location they last reported."""

    def __init__(self, workflow: SubmissionWorkflow, location: ReportedLocationProvider):
        self.workflow = workflow
        self.location = location


class AppServices:
    """Shared collaborators plus the per-student report sessions."""

    def __init__(
        self,
        oracle: Any,
        gate: GeofenceGate,
        repository: IssueRepository,
        storage: Any,
        notifier: Optional[Any] = None,
        validation_policy: FailurePolicy = FailurePolicy.FAIL_CLOSED,
        require_subcategory: bool = True,
        validation_timeout: float = 15.0,
        location_timeout: float = 10.0
    ):
        self.oracle = oracle
        self.gate = gate
        self.repository = repository
        self.storage = storage
        self.notifier = notifier
        self.validation_policy = validation_policy
        self.require_subcategory = require_subcategory
        self.validation_timeout = validation_timeout
        self.location_timeout = location_timeout
        self.issue_service = IssueService(repository, storage)
        self.sessions: Dict[str, ReportSession] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppServices":
        if settings.image_validation_url:
            oracle = ImageValidationClient.from_settings(settings)
        else:
            logger.warning("IMAGE_VALIDATION_URL not set; image validation unavailable")
            oracle = UnconfiguredOracle()

        return cls(
            oracle=oracle,
            gate=GeofenceGate.from_settings(settings),
            repository=IssueRepository(init_db(settings.database_url)),
            storage=create_storage(settings),
            notifier=IssueEmailNotifier.from_settings(settings),
            validation_policy=(
                FailurePolicy.FAIL_OPEN
                if settings.image_validation_fail_open
                else FailurePolicy.FAIL_CLOSED
            ),
            require_subcategory=settings.require_subcategory,
            validation_timeout=settings.image_validation_timeout_seconds,
            location_timeout=settings.location_timeout_seconds,
        )

    def new_session(self, actor: Actor, email: Optional[str] = None) -> ReportSession:
        location = ReportedLocationProvider()
        workflow = SubmissionWorkflow(
            student_id=actor.user_id,
            oracle=self.oracle,
            gate=self.gate,
            location_provider=location,
            repository=self.repository,
            storage=self.storage,
            notifier=self.notifier,
            student_email=email,
            validation_policy=self.validation_policy,
            require_subcategory=self.require_subcategory,
            validation_timeout=self.validation_timeout,
            location_timeout=self.location_timeout,
        )
        session = ReportSession(workflow, location)
        self.sessions[actor.user_id] = session
        return session

    def session_for(self, actor: Actor, email: Optional[str] = None) -> ReportSession:
        session = self.sessions.get(actor.user_id)
        if session is None:
            session = self.new_session(actor, email)
        return session

    def release_if_completed(self, actor: Actor) -> None:
        """Forget a finished report so its photo is not held in memory."""
        session = self.sessions.get(actor.user_id)
        if session is not None and session.workflow.step == WorkflowStep.COMPLETED:
            del self.sessions[actor.user_id]
            logger.debug(f"Report session for {actor.user_id} released")

    async def aclose(self) -> None:
        for collaborator in (self.oracle, self.storage):
            close = getattr(collaborator, "aclose", None)
            if close is not None:
                await close()
        remote = getattr(self.gate, "remote", None)
        if remote is not None:
            await remote.client.aclose()


# Global services instance
_services: Optional[AppServices] = None


def get_services() -> AppServices:
    """Get (or build from settings) the global services."""
    global _services
    if _services is None:
        _services = AppServices.from_settings(settings)
    return _services


def set_services(services: Optional[AppServices]) -> None:
    """Replace the global services (tests, embedding)."""
    global _services
    _services = services


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Campus Fix API {VERSION} starting ({settings.app_env})")
    yield
    if _services is not None:
        await _services.aclose()


# FastAPI app
app = FastAPI(
    title="Campus Fix",
    description="Campus issue reporting with photo validation and campus geofencing",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Locally stored photos
if not (settings.supabase_url and settings.supabase_service_key):
    app.mount(
        "/uploads",
        StaticFiles(directory=settings.storage_dir, check_dir=False),
        name="uploads",
    )


@app.exception_handler(CampusFixError)
async def campusfix_error_handler(request: Request, exc: CampusFixError):
    body: Dict[str, Any] = {"detail": exc.message, "kind": exc.kind}
    if hasattr(exc, "missing_fields"):
        body["missing_fields"] = exc.missing_fields
    if getattr(exc, "distance_meters", None) is not None:
        body["distance_meters"] = round(exc.distance_meters, 1)
    if hasattr(exc, "field"):
        body["field"] = exc.field
    return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 400), content=body)


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    version: str
    timestamp: str
    modules: dict


class CheckCampusRequest(BaseModel):
    """Raw device position."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class GeofenceResponse(BaseModel):
    """Campus membership result."""
    inside: bool
    distance_meters: Optional[float] = None
    source: str
    fallback_used: bool


class VerdictResponse(BaseModel):
    """Image validation verdict."""
    isValid: bool
    reason: Optional[str] = None
    confidence: int


class SessionResponse(BaseModel):
    """Current report session."""
    state: dict
    draft: dict
    warnings: List[str]
    last_error: Optional[str] = None


class LocationRequest(BaseModel):
    """Issue location inside campus."""
    building: str = Field(..., min_length=1)
    floor: str = Field(..., min_length=1)
    room: str = Field(..., min_length=1)


class UrgencyRequest(BaseModel):
    """Urgency tier chosen by the student."""
    urgency: str = Field(..., pattern="^(emergency|needs_attention|can_wait)$")


class ConfirmRequest(BaseModel):
    """Optional fresh device position sent with the confirmation."""
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class IssueResponse(BaseModel):
    """Persisted issue."""
    id: str
    student_id: str
    image_url: str
    category: str
    subcategory: Optional[str] = None
    severity: str
    urgency: str
    confidence: Optional[int] = None
    description: Optional[str] = None
    building_name: Optional[str] = None
    floor_number: Optional[str] = None
    room_area: Optional[str] = None
    location: str
    status: str
    admin_comments: Optional[str] = None
    resolved_image_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    points_awarded: Optional[int] = None


class IssueListResponse(BaseModel):
    """List of issues."""
    count: int
    issues: List[IssueResponse]


class StudentStatsResponse(BaseModel):
    """Student points and badge progress."""
    submitted: int
    resolved: int
    points: int
    badge: Optional[dict] = None
    next_badge: Optional[dict] = None


# ============================================================================
# Dependencies
# ============================================================================

def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: str = Header("student"),
) -> Actor:
    """Caller identity from gateway headers."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        role = UserRole(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid role: {x_user_role}")
    return Actor(user_id=x_user_id, role=role)


def get_student(actor: Actor = Depends(get_actor)) -> Actor:
    """Caller identity for report sessions; only students file reports."""
    if actor.is_maintenance:
        raise AccessDenied("Only students can file issue reports")
    return actor


def _session_response(session: ReportSession) -> SessionResponse:
    return SessionResponse(**session.workflow.snapshot())


# ============================================================================
# System Routes
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health status and configured collaborators."""
    services = get_services()
    database_ok = await services.repository.check_connection()
    modules = {
        "database": database_ok,
        "image_validation": not isinstance(services.oracle, UnconfiguredOracle),
        "remote_geofence": services.gate.remote is not None,
        "email_notifications": services.notifier is not None,
        "storage": type(services.storage).__name__,
    }

    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        version=VERSION,
        timestamp=datetime.utcnow().isoformat(),
        modules=modules,
    )


@app.get("/api/v1/categories", tags=["System"])
async def list_categories():
    """Issue categories, their subcategories, and urgency tiers."""
    return {
        "categories": [
            {
                "id": key,
                "label": label,
                "subcategories": CATEGORY_SUBCATEGORIES.get(key, []),
            }
            for key, label in CATEGORY_LABELS.items()
        ],
        "urgencies": [{"id": key, "label": label} for key, label in URGENCY_LABELS.items()],
    }


# ============================================================================
# Checks
# ============================================================================

@app.post("/api/v1/check-campus", response_model=GeofenceResponse, tags=["Checks"])
async def check_campus(request: CheckCampusRequest):
    """Check whether a position is inside campus."""
    result = await get_services().gate.check(
        Coordinate(latitude=request.latitude, longitude=request.longitude)
    )
    return GeofenceResponse(**result.to_dict())


@app.post("/api/v1/validate-image", response_model=VerdictResponse, tags=["Checks"])
async def validate_image(photo: UploadFile = File(...)):
    """Ask the validation service whether a photo shows a real campus issue."""
    data = await photo.read()
    if not data:
        raise InvalidDraftField("photo", "Photo is empty")
    verdict = await get_services().oracle.validate(data, photo.content_type or "image/jpeg")
    return VerdictResponse(**verdict.to_dict())


# ============================================================================
# Report Session Routes
# ============================================================================

@app.post("/api/v1/reports/session", response_model=SessionResponse, tags=["Reports"])
async def start_session(
    actor: Actor = Depends(get_student),
    x_user_email: Optional[str] = Header(None),
):
    """Start a new report, abandoning any report in progress."""
    services = get_services()
    session = services.sessions.get(actor.user_id)
    if session is None:
        session = services.new_session(actor, x_user_email)
    else:
        session.workflow.reset()
        session.location.clear()
        if x_user_email:
            session.workflow.student_email = x_user_email
    return _session_response(session)


@app.get("/api/v1/reports/session", response_model=SessionResponse, tags=["Reports"])
async def get_session(actor: Actor = Depends(get_student)):
    """Current step and draft."""
    return _session_response(get_services().session_for(actor))


@app.delete("/api/v1/reports/session", response_model=SessionResponse, tags=["Reports"])
async def cancel_session(actor: Actor = Depends(get_student)):
    """Cancel the report in progress."""
    session = get_services().session_for(actor)
    session.workflow.cancel()
    session.location.clear()
    return _session_response(session)


@app.post("/api/v1/reports/session/image", response_model=SessionResponse, tags=["Reports"])
async def submit_image(
    category: str = Form(...),
    subcategory: Optional[str] = Form(None),
    photo: UploadFile = File(...),
    actor: Actor = Depends(get_student),
):
    """
    Attach the photo and category.

    The photo is validated before the report can continue; a rejected photo
    moves the session to ``rejected`` with the reason.
    """
    session = get_services().session_for(actor)
    data = await photo.read()
    await session.workflow.submit_image(
        data,
        category,
        subcategory=subcategory,
        filename=photo.filename,
        content_type=photo.content_type or "image/jpeg",
    )
    return _session_response(session)


@app.post("/api/v1/reports/session/acknowledge", response_model=SessionResponse, tags=["Reports"])
async def acknowledge_rejection(actor: Actor = Depends(get_student)):
    """Dismiss a rejection and pick a new photo."""
    session = get_services().session_for(actor)
    session.workflow.acknowledge_rejection()
    return _session_response(session)


@app.post("/api/v1/reports/session/location", response_model=SessionResponse, tags=["Reports"])
async def submit_location(request: LocationRequest, actor: Actor = Depends(get_student)):
    """Set building, floor and room."""
    session = get_services().session_for(actor)
    session.workflow.submit_location(request.building, request.floor, request.room)
    return _session_response(session)


@app.post("/api/v1/reports/session/urgency", response_model=SessionResponse, tags=["Reports"])
async def select_urgency(request: UrgencyRequest, actor: Actor = Depends(get_student)):
    """Choose the urgency tier."""
    session = get_services().session_for(actor)
    session.workflow.select_urgency(request.urgency)
    return _session_response(session)


@app.post("/api/v1/reports/session/confirm", response_model=SessionResponse, tags=["Reports"])
async def confirm(request: Optional[ConfirmRequest] = None, actor: Actor = Depends(get_student)):
    """
    Submit the report.

    The position sent here (or the last one reported) is checked against the
    campus geofence on the server before anything is stored.
    """
    services = get_services()
    session = services.session_for(actor)
    if request is not None and (request.latitude is not None or request.longitude is not None):
        if request.latitude is None or request.longitude is None:
            raise InvalidDraftField("location", "Send both latitude and longitude")
        session.location.report(request.latitude, request.longitude)

    await session.workflow.confirm()
    response = _session_response(session)
    services.release_if_completed(actor)
    return response


@app.post("/api/v1/reports/session/retry", response_model=SessionResponse, tags=["Reports"])
async def retry(actor: Actor = Depends(get_student)):
    """Retry storing a report after a failure."""
    services = get_services()
    session = services.session_for(actor)
    await session.workflow.retry()
    response = _session_response(session)
    services.release_if_completed(actor)
    return response


# ============================================================================
# Issue Routes
# ============================================================================

@app.get("/api/v1/issues", response_model=IssueListResponse, tags=["Issues"])
async def list_issues(
    status: Optional[str] = Query(None, description="Filter: submitted, in_progress, resolved"),
    actor: Actor = Depends(get_actor),
):
    """List issues. Students see their own; maintenance sees all."""
    issues = await get_services().issue_service.list_issues(actor, status)
    return IssueListResponse(
        count=len(issues),
        issues=[IssueResponse(**issue) for issue in issues],
    )


@app.get("/api/v1/issues/{issue_id}", response_model=IssueResponse, tags=["Issues"])
async def get_issue(issue_id: str, actor: Actor = Depends(get_actor)):
    """Get issue details."""
    issue = await get_services().issue_service.get_issue(actor, issue_id)
    return IssueResponse(**issue)


@app.put("/api/v1/issues/{issue_id}/status", response_model=IssueResponse, tags=["Issues"])
async def update_issue_status(
    issue_id: str,
    status: str = Form(..., description="New status: submitted, in_progress, resolved"),
    comment: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    actor: Actor = Depends(get_actor),
):
    """Update an issue's status (maintenance only), optionally with a proof photo."""
    photo_data = await photo.read() if photo is not None else None
    issue = await get_services().issue_service.update_status(
        actor,
        issue_id,
        status,
        comment=comment,
        resolution_photo=photo_data or None,
        photo_content_type=(photo.content_type if photo is not None else None) or "image/jpeg",
    )
    return IssueResponse(**issue)


@app.get("/api/v1/students/me/stats", response_model=StudentStatsResponse, tags=["Students"])
async def student_stats(actor: Actor = Depends(get_actor)):
    """Points, issue counts and badge progress for the caller."""
    stats = await get_services().issue_service.student_stats(actor)
    return StudentStatsResponse(**stats)


# ============================================================================
# Main
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
