"""
Notification Service

Delivers sync notifications to company admins by queueing the Celery
email task.
"""

import logging

from backend.services.collaborators import LocalUser, Notification, Notifier

logger = logging.getLogger(__name__)


class EmailNotifier(Notifier):
    """Queues one summary email per recipient on the notifications queue."""

    async def send_notification(self, recipient: LocalUser, notification: Notification) -> None:
        from workers.tasks.notification_tasks import send_sync_summary

        send_sync_summary.delay(
            recipient.email,
            notification.title,
            notification.message,
            notification.data,
            notification.escalate,
        )
        logger.debug(
            f"Queued sync notification for {recipient.email}",
            extra={"user_id": recipient.id, "escalate": notification.escalate},
        )
