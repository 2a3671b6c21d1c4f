"""
Campus Fix - Issue Management Module
"""

from campusfix.issues.service import IssueService, badge_for_points, next_badge

__all__ = [
    "IssueService",
    "badge_for_points",
    "next_badge",
]
