"""
Notification Tasks

Delivers HR sync summaries to company admins by email.
"""

import logging
from typing import Any

from workers.celery_app import app

logger = logging.getLogger(__name__)


@app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_sync_summary(
    self,
    to_email: str,
    title: str,
    message: str,
    data: dict[str, Any],
    escalate: bool = False,
):
    """Email one sync summary; retried when SMTP delivery fails."""
    from backend.services.email import send_sync_summary_email

    sent = send_sync_summary_email(to_email, title, message, data, escalate)
    if not sent:
        logger.warning(f"Sync summary email to {to_email} not delivered")
        raise self.retry(exc=RuntimeError(f"SMTP delivery failed for {to_email}"))
    return {"sent": True, "to": to_email}
