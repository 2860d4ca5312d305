"""
Email Service

SMTP delivery for HR sync notifications.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from backend.config import get_settings

logger = logging.getLogger(__name__)


def _send_email(to: str, subject: str, html_body: str, text_body: str | None = None) -> bool:
    """
    Send an email via SMTP.

    Returns True if sent successfully, False otherwise.
    In development mode (no SMTP configured), logs the email instead.
    """
    settings = get_settings()
    if not settings.smtp_host:
        logger.info(f"[EMAIL-DEV] To: {to} | Subject: {subject}")
        logger.debug(f"[EMAIL-DEV] Body: {text_body or html_body[:200]}")
        return True

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.smtp_from_name} <{settings.smtp_from_email}>"
    msg["To"] = to
    if text_body:
        msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_username and settings.smtp_password:
                server.login(settings.smtp_username, settings.smtp_password)
            server.sendmail(settings.smtp_from_email, to, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to}: {e}")
        return False

    logger.info(f"Email sent to {to}: {subject}")
    return True


def send_sync_summary_email(
    to_email: str,
    title: str,
    message: str,
    result: dict[str, Any],
    escalate: bool = False,
) -> bool:
    """Send an HR sync summary to a company admin."""
    stats = result.get("stats", {})
    errors = result.get("errors", [])
    prefix = "[Action required] " if escalate else ""
    subject = f"{prefix}{title}"
    color = "#dc2626" if escalate else "#1e40af"

    error_rows = "".join(
        f"<li><code>{e.get('recordId')}</code>: {e.get('error')}</li>"
        for e in errors[:20]
    )
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: {color};">{title}</h2>
        <p>{message}</p>
        <table style="border-collapse: collapse; margin: 16px 0;">
            <tr><td style="padding: 8px; color: #666;">Sync ID:</td>
                <td style="padding: 8px;"><code>{result.get('syncId')}</code></td></tr>
            <tr><td style="padding: 8px; color: #666;">Total records:</td>
                <td style="padding: 8px;">{stats.get('totalRecords', 0)}</td></tr>
            <tr><td style="padding: 8px; color: #666;">Skipped:</td>
                <td style="padding: 8px;">{stats.get('skipped', 0)}</td></tr>
        </table>
        {f"<ul>{error_rows}</ul>" if error_rows else ""}
    </div>
    """
    text = (
        f"{message}\n\n"
        f"Sync ID: {result.get('syncId')}\n"
        f"Total records: {stats.get('totalRecords', 0)}\n"
        f"Errors: {len(errors)}"
    )
    return _send_email(to_email, subject, html, text)
