"""
Celery Application Configuration

Redis-backed worker for HR syncs. Manual syncs queued from the API and the
scheduled auto-sync sweep share the ``sync`` queue; admin summaries go out
on ``notifications``.
"""

from celery import Celery
from celery.schedules import crontab

from backend.config import get_settings

settings = get_settings()

app = Celery(
    "hr_sync",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "workers.tasks.sync_tasks",
        "workers.tasks.notification_tasks",
    ],
)

# Hard-kill a sync only well after its own deadline would have fired
_sync_time_limit = int(settings.sync_deadline_seconds or 3600) + 300

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # A sync is idempotent per record; redelivery after a crash is safe
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,

    task_routes={
        "workers.tasks.sync_tasks.*": {"queue": "sync"},
        "workers.tasks.notification_tasks.*": {"queue": "notifications"},
    },
    task_default_queue="default",

    task_annotations={
        "workers.tasks.sync_tasks.sync_integration": {
            "rate_limit": "10/m",
            "time_limit": _sync_time_limit,
        },
    },
)

app.conf.beat_schedule = {
    "sync-due-integrations": {
        "task": "workers.tasks.sync_tasks.sync_due_integrations",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": "sync"},
    },
    # Daily at 6 AM UTC
    "check-stale-integrations": {
        "task": "workers.tasks.sync_tasks.check_stale_integrations",
        "schedule": crontab(hour=6, minute=0),
        "options": {"queue": "sync"},
    },
}

if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.celery import CeleryIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"hr-sync-worker@{settings.app_version}",
        traces_sample_rate=0.1,
        integrations=[CeleryIntegration()],
    )
