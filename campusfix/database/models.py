"""
SQLAlchemy models for Campus Fix
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, Column, Integer, String, Text, DateTime, ForeignKey, Index, Enum as SQLEnum
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class UserRole(enum.Enum):
    """Account roles."""
    STUDENT = "student"
    MAINTENANCE = "maintenance"


class IssueStatus(enum.Enum):
    """Issue lifecycle status."""
    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class Profile(Base):
    """
    Campus user.

    Students accumulate points for valid reports and resolved issues.
    """
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    role = Column(
        SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.STUDENT
    )
    points = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    issues = relationship("Issue", back_populates="student")

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value if self.role else None,
            "points": self.points,
        }


class Issue(Base):
    """
    Reported campus issue.

    Stores the verified report and its maintenance lifecycle.
    """
    __tablename__ = "issues"

    id = Column(String(36), primary_key=True, default=_new_id)
    student_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)

    # Report
    image_url = Column(Text, nullable=False)
    category = Column(String(50), nullable=False)
    subcategory = Column(String(100), nullable=True)
    severity = Column(String(10), nullable=False)
    urgency = Column(String(20), nullable=False)
    confidence = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)

    # Location
    building_name = Column(String(255), nullable=True)
    floor_number = Column(String(50), nullable=True)
    room_area = Column(String(255), nullable=True)
    location = Column(Text, nullable=False)

    # Lifecycle
    status = Column(
        SQLEnum(IssueStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=IssueStatus.SUBMITTED,
        index=True
    )
    admin_comments = Column(Text, nullable=True)
    resolved_image_url = Column(Text, nullable=True)
    resolution_points_awarded = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("Profile", back_populates="issues")

    __table_args__ = (
        Index("idx_issues_student_status", "student_id", "status"),
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "image_url": self.image_url,
            "category": self.category,
            "subcategory": self.subcategory,
            "severity": self.severity,
            "urgency": self.urgency,
            "confidence": self.confidence,
            "description": self.description,
            "building_name": self.building_name,
            "floor_number": self.floor_number,
            "room_area": self.room_area,
            "location": self.location,
            "status": self.status.value if self.status else None,
            "admin_comments": self.admin_comments,
            "resolved_image_url": self.resolved_image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
