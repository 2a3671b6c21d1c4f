"""
Issue and profile persistence.

Blocking SQLAlchemy work runs in a worker thread so the async workflow and
API handlers never block the event loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update

from campusfix.core.exceptions import AccessDenied, IssueNotFound
from campusfix.database.connection import DatabaseConnection
from campusfix.database.models import Issue, IssueStatus, Profile, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller."""
    user_id: str
    role: UserRole = UserRole.STUDENT

    @property
    def is_maintenance(self) -> bool:
        return self.role == UserRole.MAINTENANCE


class IssueRepository:
    """
    Row-level access rules:
        - students read only their own issues
        - maintenance reads every issue
    """

    def __init__(self, db: DatabaseConnection):
        self.db = db

    async def check_connection(self) -> bool:
        """True when the database answers a trivial query."""
        return await asyncio.to_thread(self.db.check_connection)

    # -------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------

    def _ensure_profile(
        self,
        user_id: str,
        role: UserRole = UserRole.STUDENT,
        email: Optional[str] = None,
        name: Optional[str] = None
    ) -> Dict[str, Any]:
        with self.db.get_session() as session:
            profile = session.get(Profile, user_id)
            if profile is None:
                profile = Profile(id=user_id, role=role, email=email, name=name, points=0)
                session.add(profile)
                session.flush()
                logger.info(f"Created {role.value} profile {user_id}")
            return profile.to_dict()

    async def ensure_profile(
        self,
        user_id: str,
        role: UserRole = UserRole.STUDENT,
        email: Optional[str] = None,
        name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Return the profile, creating it on first use."""
        return await asyncio.to_thread(self._ensure_profile, user_id, role, email, name)

    def _increment_points(self, user_id: str, delta: int) -> int:
        self._ensure_profile(user_id)
        with self.db.get_session() as session:
            session.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(points=Profile.points + delta)
            )
            points = session.execute(
                select(Profile.points).where(Profile.id == user_id)
            ).scalar_one()
        logger.info(f"Awarded {delta} points to {user_id} (total {points})")
        return points

    async def increment_points(self, user_id: str, delta: int) -> int:
        """
        Atomically add points to a profile.

        Returns:
            New points total
        """
        return await asyncio.to_thread(self._increment_points, user_id, delta)

    # -------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------

    def _create_issue(self, data: Dict[str, Any]) -> str:
        self._ensure_profile(data["student_id"])
        with self.db.get_session() as session:
            issue = Issue(
                student_id=data["student_id"],
                image_url=data["image_url"],
                category=data["category"],
                subcategory=data.get("subcategory"),
                severity=data["severity"],
                urgency=data["urgency"],
                confidence=data.get("confidence"),
                description=data.get("description"),
                building_name=data.get("building_name"),
                floor_number=data.get("floor_number"),
                room_area=data.get("room_area"),
                location=data["location"],
                status=IssueStatus(data.get("status", "submitted")),
            )
            session.add(issue)
            session.flush()
            issue_id = issue.id
        logger.info(f"Issue {issue_id} created for student {data['student_id']}")
        return issue_id

    async def create_issue(self, record) -> str:
        """
        Insert an issue built from an ``IssueRecord``.

        Returns:
            New issue id
        """
        return await asyncio.to_thread(self._create_issue, record.to_dict())

    def _load(self, session, issue_id: str, actor: Actor) -> Issue:
        issue = session.get(Issue, issue_id)
        if issue is None:
            raise IssueNotFound(issue_id)
        if not actor.is_maintenance and issue.student_id != actor.user_id:
            raise AccessDenied("You can only view your own issues")
        return issue

    def _get_issue(self, issue_id: str, actor: Actor) -> Dict[str, Any]:
        with self.db.get_session() as session:
            return self._load(session, issue_id, actor).to_dict()

    async def get_issue(self, issue_id: str, actor: Actor) -> Dict[str, Any]:
        return await asyncio.to_thread(self._get_issue, issue_id, actor)

    def _list_issues(self, actor: Actor, status: Optional[IssueStatus]) -> List[Dict[str, Any]]:
        with self.db.get_session() as session:
            query = select(Issue).order_by(Issue.created_at.desc())
            if not actor.is_maintenance:
                query = query.where(Issue.student_id == actor.user_id)
            if status is not None:
                query = query.where(Issue.status == status)
            return [issue.to_dict() for issue in session.scalars(query)]

    async def list_issues(
        self,
        actor: Actor,
        status: Optional[IssueStatus] = None
    ) -> List[Dict[str, Any]]:
        """List issues visible to the actor, newest first."""
        return await asyncio.to_thread(self._list_issues, actor, status)

    def _update_issue_status(
        self,
        issue_id: str,
        status: IssueStatus,
        actor: Actor,
        comment: Optional[str],
        resolved_image_url: Optional[str],
        resolution_points: int
    ) -> Dict[str, Any]:
        if not actor.is_maintenance:
            raise AccessDenied("Only maintenance staff can update issue status")

        with self.db.get_session() as session:
            issue = self._load(session, issue_id, actor)
            previous = issue.status

            issue.status = status
            if comment is not None:
                issue.admin_comments = comment
            if resolved_image_url is not None:
                issue.resolved_image_url = resolved_image_url

            awarded = 0
            if status == IssueStatus.RESOLVED and not issue.resolution_points_awarded and resolution_points:
                session.execute(
                    update(Profile)
                    .where(Profile.id == issue.student_id)
                    .values(points=Profile.points + resolution_points)
                )
                issue.resolution_points_awarded = True
                awarded = resolution_points

            session.flush()
            result = issue.to_dict()

        logger.info(
            f"Issue {issue_id} status {previous.value} -> {status.value} by {actor.user_id}"
            + (f", awarded {awarded} points" if awarded else "")
        )
        result["points_awarded"] = awarded
        return result

    async def update_issue_status(
        self,
        issue_id: str,
        status: IssueStatus,
        actor: Actor,
        comment: Optional[str] = None,
        resolved_image_url: Optional[str] = None,
        resolution_points: int = 0
    ) -> Dict[str, Any]:
        """
        Change an issue's status.

        Points are added to the reporting student in the same transaction,
        the first time the issue is resolved. Reopening and resolving again
        does not award them twice.
        """
        return await asyncio.to_thread(
            self._update_issue_status,
            issue_id, status, actor, comment, resolved_image_url, resolution_points
        )

    def _student_counts(self, student_id: str) -> Dict[str, int]:
        with self.db.get_session() as session:
            rows = session.execute(
                select(Issue.status, func.count(Issue.id))
                .where(Issue.student_id == student_id)
                .group_by(Issue.status)
            ).all()
            profile = session.get(Profile, student_id)
            points = profile.points if profile else 0

        counts = {status.value: count for status, count in rows}
        return {
            "submitted": sum(counts.values()),
            "resolved": counts.get(IssueStatus.RESOLVED.value, 0),
            "points": points,
        }

    async def student_counts(self, student_id: str) -> Dict[str, int]:
        """Issues submitted and resolved, plus the current points total."""
        return await asyncio.to_thread(self._student_counts, student_id)
