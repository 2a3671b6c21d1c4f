"""
Issue management after submission: maintenance status updates, listings,
and student points/badge stats.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from campusfix.core.constants import BADGE_TIERS, POINTS_RESOLVED_ISSUE
from campusfix.core.exceptions import AccessDenied, InvalidDraftField
from campusfix.database.models import IssueStatus
from campusfix.database.repository import Actor, IssueRepository

logger = logging.getLogger(__name__)


def badge_for_points(points: int) -> Optional[Dict[str, Any]]:
    """
    Highest badge earned for a points total.

    Returns:
        ``{"name", "tier", "min_points"}`` or None below the first tier
    """
    for name, tier, minimum in BADGE_TIERS:
        if points >= minimum:
            return {"name": name, "tier": tier, "min_points": minimum}
    return None


def next_badge(points: int) -> Optional[Dict[str, Any]]:
    """Next badge to earn and the points still needed, None at the top tier."""
    for name, tier, minimum in reversed(BADGE_TIERS):
        if points < minimum:
            return {
                "name": name,
                "tier": tier,
                "min_points": minimum,
                "points_needed": minimum - points,
            }
    return None


def parse_status(value: str) -> IssueStatus:
    try:
        return IssueStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in IssueStatus)
        raise InvalidDraftField("status", f"Unknown status '{value}'. Use one of: {allowed}")


class IssueService:
    """Maintenance and student views over persisted issues."""

    def __init__(
        self,
        repository: IssueRepository,
        storage: Any,
        resolution_points: int = POINTS_RESOLVED_ISSUE
    ):
        self.repository = repository
        self.storage = storage
        self.resolution_points = resolution_points

    async def update_status(
        self,
        actor: Actor,
        issue_id: str,
        status: str,
        comment: Optional[str] = None,
        resolution_photo: Optional[bytes] = None,
        photo_content_type: str = "image/jpeg"
    ) -> Dict[str, Any]:
        """
        Update an issue as maintenance staff.

        Args:
            actor: Caller, must have the maintenance role
            issue_id: Issue to update
            status: New status (submitted, in_progress, resolved)
            comment: Optional admin comment
            resolution_photo: Optional proof-of-fix photo

        Returns:
            Updated issue dict with ``points_awarded``
        """
        if not actor.is_maintenance:
            raise AccessDenied("Only maintenance staff can update issue status")

        new_status = parse_status(status)

        # Existence and visibility before any upload
        await self.repository.get_issue(issue_id, actor)

        resolved_image_url = None
        if resolution_photo:
            ext = photo_content_type.split("/")[-1] or "jpg"
            path = f"resolutions/{issue_id}/{int(time.time() * 1000)}.{ext}"
            resolved_image_url = await self.storage.upload(path, resolution_photo, photo_content_type)

        return await self.repository.update_issue_status(
            issue_id,
            new_status,
            actor,
            comment=comment,
            resolved_image_url=resolved_image_url,
            resolution_points=self.resolution_points,
        )

    async def list_issues(self, actor: Actor, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self.repository.list_issues(
            actor,
            parse_status(status) if status else None
        )

    async def get_issue(self, actor: Actor, issue_id: str) -> Dict[str, Any]:
        return await self.repository.get_issue(issue_id, actor)

    async def student_stats(self, actor: Actor) -> Dict[str, Any]:
        """
        Points and badge progress for the calling student.

        Returns:
            ``{submitted, resolved, points, badge, next_badge}``
        """
        counts = await self.repository.student_counts(actor.user_id)
        points = counts["points"]
        return {
            "submitted": counts["submitted"],
            "resolved": counts["resolved"],
            "points": points,
            "badge": badge_for_points(points),
            "next_badge": next_badge(points),
        }
