"""
Webhook Event Processor

Normalizes inbound HR system webhooks through the tenant's adapter and
applies them to the local directory.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from backend.services.collaborators import IntegrationConfigStore, LocalDirectory
from backend.services.hr_sync import DirectoryReconciler, load_active_config, require_vendor_id
from integrations.adapter_cache import AdapterCache
from integrations.base import (
    BaseHRAdapter,
    EntityType,
    HREmployee,
    HRSystemConfig,
    SyncDirection,
    WebhookEventType,
    WebhookPayload,
)

logger = logging.getLogger(__name__)

EventHandler = Callable[[HRSystemConfig, BaseHRAdapter, WebhookPayload], Awaitable[None]]


class WebhookEventProcessor:
    """Dispatches normalized webhook events to directory writes."""

    def __init__(
        self,
        config_store: IntegrationConfigStore,
        directory: LocalDirectory,
        adapters: AdapterCache,
    ):
        self.config_store = config_store
        self.adapters = adapters
        self.reconciler = DirectoryReconciler(directory)
        self.directory = directory
        self._handlers: dict[WebhookEventType, EventHandler] = {
            WebhookEventType.EMPLOYEE_CREATED: self._upsert_employee,
            WebhookEventType.EMPLOYEE_UPDATED: self._upsert_employee,
            WebhookEventType.EMPLOYEE_TERMINATED: self._terminate_employee,
            WebhookEventType.DEPARTMENT_CREATED: self._upsert_department,
            WebhookEventType.DEPARTMENT_UPDATED: self._upsert_department,
            WebhookEventType.JOB_CREATED: self._upsert_job,
            WebhookEventType.JOB_UPDATED: self._upsert_job,
            WebhookEventType.JOB_CLOSED: self._close_job,
        }

    async def handle_webhook(self, config_id: str, payload: Mapping[str, Any]) -> WebhookPayload:
        """
        Process one vendor webhook.

        Returns:
            The normalized event

        Raises:
            IntegrationNotFoundError / IntegrationInactiveError: Config problems
            UnsupportedWebhookEventError: Event is outside the supported taxonomy
        """
        event_type = None
        try:
            config = await load_active_config(self.config_store, config_id)
            adapter = await self.adapters.get(config)
            event = adapter.handle_webhook(payload)
            event_type = event.event_type

            if config.sync_settings.sync_direction == SyncDirection.EXPORT_ONLY:
                logger.info(
                    f"Ignoring inbound {event_type.value} for export-only integration",
                    extra={"config_id": config_id},
                )
                return event

            await self._handlers[event_type](config, adapter, event)
        except Exception as e:
            logger.error(
                f"Failed to process HR webhook: {e}",
                extra={
                    "config_id": config_id,
                    "event_type": event_type.value if event_type else None,
                    "payload": dict(payload),
                },
            )
            raise

        logger.info(
            f"Processed HR webhook {event_type.value}",
            extra={"config_id": config_id, "system_type": config.system_type.value},
        )
        return event

    # ── Handlers ─────────────────────────────────────

    async def _upsert_employee(self, config, adapter, event: WebhookPayload):
        await self.reconciler.employee(config, _employee(event))

    async def _terminate_employee(self, config, adapter, event: WebhookPayload):
        await self.reconciler.terminate_employee(config, _employee(event))

    async def _upsert_department(self, config, adapter: BaseHRAdapter, event: WebhookPayload):
        await self.reconciler.department(config, adapter.parse_department(event.data))

    async def _upsert_job(self, config, adapter: BaseHRAdapter, event: WebhookPayload):
        await self.reconciler.job_position(config, adapter.parse_job_position(event.data))

    async def _close_job(self, config, adapter: BaseHRAdapter, event: WebhookPayload):
        position = adapter.parse_job_position(event.data)
        external_id = require_vendor_id(EntityType.JOB_POSITIONS, position.model_dump())
        closed = await self.directory.close_job(
            config.company_id,
            config.system_type.value,
            external_id,
        )
        if not closed:
            logger.warning(
                "Closed job has no local record",
                extra={"config_id": config.id, "external_id": position.id},
            )


def _employee(event: WebhookPayload) -> HREmployee:
    if not isinstance(event.data, HREmployee):
        raise TypeError(f"{event.event_type.value} event carries no employee record")
    return event.data
