"""
Campus Fix - Email Sender
Sends new-issue notifications to the maintenance team using SMTP.
"""

import asyncio
import html
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional

from campusfix.core.config import Settings
from campusfix.core.exceptions import NotificationFailure

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    "high": "#ef4444",
    "medium": "#f59e0b",
    "low": "#22c55e",
}


@dataclass
class EmailConfig:
    """Email server configuration."""
    smtp_host: str
    smtp_port: int
    username: str
    password: str
    from_address: str
    from_name: str = "Campus Fix"
    use_tls: bool = True
    timeout: float = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailConfig":
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            username=settings.smtp_user or "",
            password=settings.smtp_password or "",
            from_address=settings.smtp_user or "noreply@campusfix.local",
        )


class EmailSender:
    """Sends emails via SMTP."""

    def __init__(self, config: EmailConfig):
        self.config = config

    def send_email(
        self,
        to_addresses: List[str],
        subject: str,
        body_text: str,
        body_html: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send an email.

        Args:
            to_addresses: List of recipient email addresses
            subject: Email subject
            body_text: Plain text body
            body_html: Optional HTML body

        Returns:
            Dictionary with send results
        """
        if not self.config.username or not self.config.password:
            return {
                "success": False,
                "error": "Email credentials not configured",
                "sent_to": [],
            }

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.config.from_name} <{self.config.from_address}>"
            msg["To"] = ", ".join(to_addresses)

            msg.attach(MIMEText(body_text, "plain", "utf-8"))
            if body_html:
                msg.attach(MIMEText(body_html, "html", "utf-8"))

            with smtplib.SMTP(
                self.config.smtp_host,
                self.config.smtp_port,
                timeout=self.config.timeout
            ) as server:
                if self.config.use_tls:
                    server.starttls()
                server.login(self.config.username, self.config.password)
                server.sendmail(
                    self.config.from_address,
                    to_addresses,
                    msg.as_string()
                )

            return {
                "success": True,
                "sent_to": to_addresses,
                "subject": subject,
            }

        except smtplib.SMTPAuthenticationError:
            return {
                "success": False,
                "error": "SMTP authentication failed",
                "sent_to": [],
            }
        except (smtplib.SMTPException, OSError) as e:
            return {
                "success": False,
                "error": f"SMTP error: {str(e)}",
                "sent_to": [],
            }


def build_issue_subject(summary: Dict[str, Any]) -> str:
    """Subject line, e.g. ``[Campus Issue] High - Water (Leak) (Issue ID: 1a2b3c4d)``."""
    severity = str(summary.get("severity") or "").capitalize()
    short_id = str(summary.get("issueId") or "")[:8]
    return f"[Campus Issue] {severity} - {summary.get('category')} (Issue ID: {short_id})"


def build_issue_text(summary: Dict[str, Any]) -> str:
    return "\n".join([
        "New campus issue reported",
        f"Issue ID: {summary.get('issueId')}",
        f"Student Email: {summary.get('studentEmail') or '-'}",
        f"Category: {summary.get('category')}",
        f"Severity: {summary.get('severity')}",
        f"Location: {summary.get('location')}",
        f"Urgency: {summary.get('urgency')}",
        f"Image: {summary.get('imageUrl')}",
    ])


def generate_issue_email_html(summary: Dict[str, Any], reported_at: Optional[datetime] = None) -> str:
    """
    Generate HTML email for a new issue.

    Args:
        summary: Issue summary (issueId, category, severity, location,
            urgency, imageUrl, studentEmail)
        reported_at: Report time, defaults to now

    Returns:
        HTML email content
    """
    reported_at = reported_at or datetime.now()
    severity = str(summary.get("severity") or "medium")
    color = SEVERITY_COLORS.get(severity, SEVERITY_COLORS["medium"])

    def esc(key: str) -> str:
        return html.escape(str(summary.get(key) or "-"))

    rows = [
        ("Issue ID", f"<code>{esc('issueId')}</code>"),
        ("Student Email", esc("studentEmail")),
        ("Category", esc("category")),
        ("Severity", f'<span style="color: {color}; font-weight: bold;">{html.escape(severity.capitalize())}</span>'),
        ("Location", esc("location")),
        ("Urgency", esc("urgency")),
        ("Timestamp", reported_at.strftime("%Y-%m-%d %H:%M")),
    ]
    table = "\n".join(
        f'<tr><td style="padding: 8px; border-bottom: 1px solid #e2e8f0;"><strong>{label}:</strong></td>'
        f'<td style="padding: 8px; border-bottom: 1px solid #e2e8f0;">{value}</td></tr>'
        for label, value in rows
    )

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
    </head>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: #1e40af; padding: 20px; border-radius: 10px 10px 0 0;">
            <h1 style="color: white; margin: 0; font-size: 24px;">Campus Fix - New Issue Report</h1>
        </div>
        <div style="background: #f8fafc; padding: 20px; border: 1px solid #e2e8f0; border-top: none;">
            <table style="width: 100%; border-collapse: collapse;">
                {table}
            </table>
            <div style="margin-top: 20px;">
                <strong>Attached Image:</strong>
                <div style="margin-top: 10px;">
                    <img src="{esc('imageUrl')}" alt="Issue Image" style="max-width: 100%; border-radius: 8px;" />
                </div>
            </div>
        </div>
        <div style="background: #1e40af; color: white; padding: 15px; border-radius: 0 0 10px 10px; text-align: center;">
            <p style="margin: 0; font-size: 14px;">This is an automated notification from Campus Fix</p>
        </div>
    </body>
    </html>
    """


class IssueEmailNotifier:
    """Emails every new issue to the maintenance address."""

    def __init__(self, sender: EmailSender, recipients: List[str]):
        self.sender = sender
        self.recipients = recipients

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["IssueEmailNotifier"]:
        if not settings.maintenance_email:
            return None
        return cls(EmailSender(EmailConfig.from_settings(settings)), [settings.maintenance_email])

    async def notify(self, summary: Dict[str, Any]) -> None:
        """
        Send the notification.

        Raises:
            NotificationFailure: if the email could not be sent
        """
        result = await asyncio.to_thread(
            self.sender.send_email,
            self.recipients,
            build_issue_subject(summary),
            build_issue_text(summary),
            generate_issue_email_html(summary),
        )
        if not result.get("success"):
            raise NotificationFailure(result.get("error") or "Email not sent")

        logger.info(f"Issue {summary.get('issueId')} notification sent to {self.recipients}")
