"""
Campus Fix - Notifications Module
Maintenance team notifications for new issues.
"""

from campusfix.notifications.email_sender import (
    EmailConfig,
    EmailSender,
    IssueEmailNotifier,
    build_issue_subject,
    generate_issue_email_html,
)

__all__ = [
    "EmailConfig",
    "EmailSender",
    "IssueEmailNotifier",
    "build_issue_subject",
    "generate_issue_email_html",
]
