"""
Campus Fix - Database Module
"""

from campusfix.database.connection import DatabaseConnection, init_db
from campusfix.database.models import Base, Issue, IssueStatus, Profile, UserRole
from campusfix.database.repository import Actor, IssueRepository

__all__ = [
    "Actor",
    "Base",
    "DatabaseConnection",
    "Issue",
    "IssueRepository",
    "IssueStatus",
    "Profile",
    "UserRole",
    "init_db",
]
