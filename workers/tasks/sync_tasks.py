"""
Sync Tasks

Background HR syncs: manual syncs queued from the API, scheduled syncs for
auto-sync integrations, and the daily stale-integration check.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from integrations.base import SyncInterval, SyncSettings
from integrations.exceptions import IntegrationInactiveError, IntegrationNotFoundError
from workers.celery_app import app

logger = logging.getLogger(__name__)

SYNC_INTERVALS: dict[SyncInterval, timedelta] = {
    SyncInterval.HOURLY: timedelta(hours=1),
    SyncInterval.DAILY: timedelta(days=1),
    SyncInterval.WEEKLY: timedelta(weeks=1),
}


def _run_async(coro):
    """Run an async function from a sync Celery task."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def is_sync_due(
    sync_settings: SyncSettings,
    last_sync_at: datetime | None,
    now: datetime,
) -> bool:
    """Whether an auto-sync integration's interval has elapsed."""
    if not sync_settings.auto_sync:
        return False
    interval = SYNC_INTERVALS.get(sync_settings.sync_interval)
    if interval is None:
        return False
    return last_sync_at is None or now - last_sync_at >= interval


@app.task(bind=True, max_retries=3, default_retry_delay=60)
def sync_integration(self, config_id: str, entity_types: list[str] | None = None):
    """
    Run one HR sync.

    Returns the SyncResult as camelCase JSON. Missing or inactive configs
    are not retried.
    """
    logger.info(f"Starting HR sync task for {config_id}")
    try:
        return _run_async(_async_sync_integration(config_id, entity_types))
    except (IntegrationNotFoundError, IntegrationInactiveError) as exc:
        logger.warning(f"HR sync skipped for {config_id}: {exc}")
        return {"error": str(exc)}
    except Exception as exc:
        logger.error(f"HR sync task failed for {config_id}: {exc}")
        raise self.retry(exc=exc)


@app.task
def sync_due_integrations():
    """Enqueue every active auto-sync integration whose interval has elapsed."""
    queued = _run_async(_async_due_config_ids())
    for config_id in queued:
        sync_integration.delay(config_id)
    logger.info(f"Queued {len(queued)} scheduled HR syncs")
    return queued


@app.task
def check_stale_integrations():
    """Log auto-sync integrations that have not synced successfully recently."""
    logger.info("Checking for stale HR integrations")
    return _run_async(_async_check_stale())


def _build_service():
    from backend.config import get_settings
    from backend.db.session import async_session_factory
    from backend.dependencies import get_cipher
    from backend.services.directory import SQLIntegrationConfigStore, SQLLocalDirectory
    from backend.services.hr_sync import HRSyncService, build_adapter_cache
    from backend.services.notifications import EmailNotifier

    settings = get_settings()
    config_store = SQLIntegrationConfigStore(async_session_factory, get_cipher())
    adapters = build_adapter_cache(config_store, settings)
    service = HRSyncService(
        config_store,
        SQLLocalDirectory(async_session_factory),
        EmailNotifier(),
        adapters=adapters,
        settings=settings,
    )
    return service, adapters


async def _async_sync_integration(config_id: str, entity_types: list[str] | None) -> dict:
    service, adapters = _build_service()
    try:
        result = await service.perform_sync(config_id, entity_types)
    finally:
        await adapters.close()
    return result.as_dict()


async def _active_integrations():
    from sqlalchemy import select

    from backend.db.session import get_async_session
    from backend.models.hr_integration import HRIntegration

    async with get_async_session() as db:
        result = await db.execute(
            select(HRIntegration).where(HRIntegration.is_active.is_(True))
        )
        return list(result.scalars().all())


async def _async_due_config_ids() -> list[str]:
    now = datetime.now(timezone.utc)
    return [
        str(row.id)
        for row in await _active_integrations()
        if is_sync_due(SyncSettings.model_validate(row.sync_settings or {}), row.last_sync_at, now)
    ]


async def _async_check_stale() -> list[str]:
    from backend.config import get_settings

    threshold = datetime.now(timezone.utc) - timedelta(hours=get_settings().stale_integration_hours)
    stale: list[str] = []
    for row in await _active_integrations():
        if not SyncSettings.model_validate(row.sync_settings or {}).auto_sync:
            continue
        if row.last_sync_at is None or row.last_sync_at < threshold or row.last_sync_status == "failed":
            stale.append(str(row.id))
            logger.warning(
                f"Stale HR integration: {row.system_type} for company {row.company_id}",
                extra={
                    "config_id": str(row.id),
                    "last_sync_at": row.last_sync_at.isoformat() if row.last_sync_at else None,
                    "last_sync_status": row.last_sync_status,
                },
            )
    logger.info(f"Stale HR integration check found {len(stale)}")
    return stale
