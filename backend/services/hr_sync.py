"""
HR Sync Service

Pulls employees, departments and job positions from a tenant's HR system
and reconciles them into the local directory.

Each entity type syncs in isolation: a failure inside one entity routine
becomes a single "<entity>_sync" error and never stops the others. Record
failures are counted and reported in the SyncResult, never raised. The
incremental-sync watermark only advances when a run has zero failures.
"""

import asyncio
import logging
import secrets
import string
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any

from backend.config import Settings, get_settings
from backend.services.collaborators import (
    IntegrationConfigStore,
    LocalDirectory,
    Notification,
    Notifier,
)
from integrations.adapter_cache import AdapterCache
from integrations.base import (
    BaseHRAdapter,
    EmployeeStatus,
    EntityType,
    HRDepartment,
    HREmployee,
    HRJobPosition,
    HRSystemConfig,
    SyncDirection,
    SyncError,
    SyncResult,
    SyncStats,
    utcnow,
)
from integrations.exceptions import (
    FieldMappingError,
    IntegrationInactiveError,
    IntegrationNotFoundError,
)
from integrations.mapping import apply_field_mappings, mappings_for
from integrations.registry import create_adapter

logger = logging.getLogger(__name__)

SYNC_PROCESS_RECORD_ID = "sync_process"
MISSING_ID_RECORD_ID = "missing_id"
NOTIFICATION_TITLE = "HR System Sync Completed"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_sync_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"sync_{int(time.time() * 1000)}_{suffix}"


def entity_record_id(entity: EntityType) -> str:
    return f"{entity.value}_sync"


async def load_active_config(
    config_store: IntegrationConfigStore,
    config_id: str,
) -> HRSystemConfig:
    config = await config_store.get_config(config_id)
    if config is None:
        raise IntegrationNotFoundError(config_id)
    if not config.is_active:
        raise IntegrationInactiveError(config_id)
    return config


def resolve_entities(
    requested: list[str] | None,
    config: HRSystemConfig,
) -> tuple[list[EntityType], list[str]]:
    """Split requested entity names into known entity types and unknown names."""
    if requested is None:
        return config.sync_settings.sync_entities.enabled(), []

    known: list[EntityType] = []
    unknown: list[str] = []
    for name in requested:
        try:
            entity = EntityType(name)
        except ValueError:
            unknown.append(name)
            continue
        if entity not in known:
            known.append(entity)
    return known, unknown


# ── Normalized record -> local fields ────────────────


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def require_vendor_id(entity: EntityType, record: dict[str, Any]) -> str:
    """Vendor id of a (mapped) record; it is the upsert key, so blank ids are rejected."""
    vendor_id = str(record.get("id") or "").strip()
    if not vendor_id:
        raise FieldMappingError("id", f"{entity.value} record has no vendor id")
    return vendor_id


def employee_to_user_fields(record: dict[str, Any], system_type: str) -> dict[str, Any]:
    """Local user fields from a (mapped) normalized employee dict."""
    status = _plain(record.get("status")) or EmployeeStatus.ACTIVE.value
    return {
        "email": (record.get("email") or "").strip().lower(),
        "first_name": record.get("first_name") or "",
        "last_name": record.get("last_name") or "",
        "phone": record.get("phone"),
        "department": record.get("department"),
        "job_title": record.get("job_title"),
        "location": record.get("location"),
        "employment_type": _plain(record.get("employment_type")),
        "hr_status": status,
        "hire_date": record.get("hire_date"),
        "is_active": status != EmployeeStatus.TERMINATED.value,
        "external_ids": {system_type: str(record["id"])},
    }


def department_to_local_fields(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "external_id": str(record["id"]),
        "name": record.get("name") or "",
        "description": record.get("description"),
        "parent_external_id": record.get("parent_department"),
        "manager_external_id": record.get("manager"),
        "location": record.get("location"),
        "budget": record.get("budget"),
        "headcount": record.get("headcount"),
    }


def job_to_local_fields(record: dict[str, Any]) -> dict[str, Any]:
    fields = {
        "external_id": str(record["id"]),
        "title": record.get("title") or "",
        "department": record.get("department"),
        "description": record.get("description") or "",
        "requirements": list(record.get("requirements") or []),
        "location": record.get("location"),
        "employment_type": _plain(record.get("employment_type")),
        "salary_min": record.get("salary_min"),
        "salary_max": record.get("salary_max"),
        "currency": record.get("currency"),
        "status": _plain(record.get("status")),
        "hiring_manager": record.get("hiring_manager"),
        "requisition_number": record.get("requisition_number"),
        "target_start_date": record.get("target_start_date"),
    }
    # Positions without a vendor creation date keep their stored opened_at
    if record.get("created_date") is not None:
        fields["opened_at"] = record["created_date"]
    return fields


@dataclass
class EntitySyncOutcome:
    """Mutable per-entity accumulator; frozen into SyncStats at the end of a run."""

    total_records: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[SyncError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def fail(self, record_id: str, error: str, field_name: str | None = None):
        self.failed += 1
        self.errors.append(SyncError(record_id=record_id, error=error, field=field_name))

    def abort(self, record_id: str, error: str):
        """Routine-level failure: one error, one failed, counts re-balanced."""
        self.fail(record_id, error)
        self.total_records = self.successful + self.failed + self.skipped

    @property
    def failed_entirely(self) -> bool:
        return self.failed > 0 and self.successful == 0 and self.skipped == 0

    def stats(self) -> SyncStats:
        return SyncStats(
            total_records=self.total_records,
            successful=self.successful,
            failed=self.failed,
            skipped=self.skipped,
        )


class DirectoryReconciler:
    """
    Applies normalized HR records to the local directory.

    Shared by scheduled syncs and webhooks so both paths write identically.
    Users match on email; departments and jobs upsert on vendor id.
    """

    def __init__(self, directory: LocalDirectory):
        self.directory = directory

    async def employee(self, config: HRSystemConfig, employee: HREmployee) -> str:
        """Create or update the local user matched by email. Returns the user id."""
        record = apply_field_mappings(
            employee.model_dump(),
            mappings_for(config.field_mappings, EntityType.EMPLOYEES),
        )
        require_vendor_id(EntityType.EMPLOYEES, record)
        fields = employee_to_user_fields(record, config.system_type.value)
        if not fields["email"]:
            raise FieldMappingError("email", "Employee record has no email address")

        existing = await self.directory.get_user_by_email(config.company_id, fields["email"])
        if existing:
            await self.directory.update_user(existing.id, fields)
            return existing.id
        return await self.directory.create_user(config.company_id, fields)

    async def terminate_employee(self, config: HRSystemConfig, employee: HREmployee) -> str | None:
        """Deactivate the local user matched by email. None when there is no match."""
        require_vendor_id(EntityType.EMPLOYEES, employee.model_dump())
        email = (employee.email or "").strip().lower()
        existing = await self.directory.get_user_by_email(config.company_id, email) if email else None
        if existing is None:
            logger.warning(
                "Terminated employee has no local user",
                extra={"config_id": config.id, "external_id": employee.id},
            )
            return None
        await self.directory.update_user(
            existing.id,
            {
                "is_active": False,
                "hr_status": EmployeeStatus.TERMINATED.value,
                "external_ids": {config.system_type.value: employee.id},
            },
        )
        return existing.id

    async def department(self, config: HRSystemConfig, department: HRDepartment) -> str:
        record = apply_field_mappings(
            department.model_dump(),
            mappings_for(config.field_mappings, EntityType.DEPARTMENTS),
        )
        require_vendor_id(EntityType.DEPARTMENTS, record)
        return await self.directory.upsert_department(
            config.company_id,
            config.system_type.value,
            department_to_local_fields(record),
        )

    async def job_position(self, config: HRSystemConfig, position: HRJobPosition) -> str:
        record = apply_field_mappings(
            position.model_dump(),
            mappings_for(config.field_mappings, EntityType.JOB_POSITIONS),
        )
        require_vendor_id(EntityType.JOB_POSITIONS, record)
        return await self.directory.upsert_job(
            config.company_id,
            config.system_type.value,
            job_to_local_fields(record),
        )


def build_adapter_cache(
    config_store: IntegrationConfigStore,
    settings: Settings | None = None,
) -> AdapterCache:
    """Adapter cache whose adapters persist refreshed OAuth credentials."""
    settings = settings or get_settings()
    factory = partial(
        create_adapter,
        on_credentials_refreshed=config_store.update_credentials,
        timeout=settings.hr_http_timeout_seconds,
    )
    return AdapterCache(factory=factory, ttl_seconds=settings.adapter_cache_ttl_seconds)


class HRSyncService:
    """
    Orchestrates one sync run per call.

    Collaborators are injected; the adapter cache is owned by whoever
    constructs the service and may be shared with the webhook processor.
    """

    def __init__(
        self,
        config_store: IntegrationConfigStore,
        directory: LocalDirectory,
        notifier: Notifier,
        adapters: AdapterCache | None = None,
        settings: Settings | None = None,
    ):
        self.config_store = config_store
        self.directory = directory
        self.notifier = notifier
        self.settings = settings or get_settings()
        # An empty cache is falsy; only build one when none was injected
        if adapters is None:
            adapters = build_adapter_cache(config_store, self.settings)
        self.adapters = adapters
        self.reconciler = DirectoryReconciler(directory)
        self._routines: dict[EntityType, Callable[..., Awaitable[None]]] = {
            EntityType.EMPLOYEES: self._sync_employees,
            EntityType.DEPARTMENTS: self._sync_departments,
            EntityType.JOB_POSITIONS: self._sync_job_positions,
        }

    async def perform_sync(
        self,
        config_id: str,
        entity_types: list[str] | None = None,
    ) -> SyncResult:
        """
        Run a sync for one integration config.

        Args:
            config_id: Integration config id
            entity_types: Subset of "employees" | "departments" | "jobPositions";
                defaults to the entities enabled in the config's sync settings

        Returns:
            SyncResult for every run that got past config load

        Raises:
            IntegrationNotFoundError: No config with this id
            IntegrationInactiveError: Config has been deactivated
        """
        config = await load_active_config(self.config_store, config_id)

        sync_id = new_sync_id()
        started_at = utcnow()
        watermark = started_at.isoformat()
        log_extra = {"config_id": config_id, "sync_id": sync_id}
        logger.info(f"Starting HR sync for {config.system_type.value}", extra=log_extra)

        errors: list[SyncError] = []
        warnings: list[str] = []
        outcomes: dict[EntityType, EntitySyncOutcome] = {}
        process_failed = 0

        try:
            adapter = await self.adapters.get(config)
            entities, unknown = resolve_entities(entity_types, config)
            for name in unknown:
                warnings.append(f"Unknown entity type ignored: {name}")
            outcomes = await self._run_entities(adapter, config, entities, log_extra)
        except Exception as e:
            logger.exception(f"HR sync process failed: {e}", extra=log_extra)
            errors.append(SyncError(record_id=SYNC_PROCESS_RECORD_ID, error=str(e)))
            process_failed = 1

        stats = SyncStats()
        for outcome in outcomes.values():
            stats = stats + outcome.stats()
            errors.extend(outcome.errors)
            warnings.extend(outcome.warnings)
        if process_failed:
            stats = stats + SyncStats(total_records=1, failed=1)

        success = stats.failed == 0
        if success:
            try:
                await self.config_store.update_last_sync(config_id, watermark)
            except Exception as e:
                logger.error(f"Failed to persist sync watermark: {e}", extra=log_extra)
                warnings.append(f"Sync watermark not updated: {e}")

        result = SyncResult(
            success=success,
            sync_id=sync_id,
            timestamp=started_at,
            stats=stats,
            errors=errors,
            warnings=warnings,
            entity_stats={entity.value: o.stats() for entity, o in outcomes.items()},
        )

        escalate = bool(process_failed) or any(o.failed_entirely for o in outcomes.values())
        if escalate:
            logger.error(
                f"HR sync {sync_id} failed for at least one entity type",
                extra={**log_extra, "stats": stats.model_dump()},
            )
        elif not success:
            logger.warning(
                f"HR sync {sync_id} completed with {stats.failed} failed records",
                extra={**log_extra, "stats": stats.model_dump()},
            )
        else:
            logger.info(
                f"HR sync {sync_id} completed: {stats.successful} successful",
                extra={**log_extra, "stats": stats.model_dump()},
            )

        await self._record_history(config_id, result, log_extra)
        await self._notify_admins(config, result, escalate, log_extra)
        return result

    # ── Fan-out ──────────────────────────────────────

    async def _run_entities(
        self,
        adapter: BaseHRAdapter,
        config: HRSystemConfig,
        entities: list[EntityType],
        log_extra: dict,
    ) -> dict[EntityType, EntitySyncOutcome]:
        outcomes = {entity: EntitySyncOutcome() for entity in entities}
        semaphore = asyncio.Semaphore(max(1, self.settings.sync_max_concurrency))

        async def run(entity: EntityType):
            outcome = outcomes[entity]
            async with semaphore:
                try:
                    await self._routines[entity](adapter, config, outcome)
                except Exception as e:
                    logger.error(
                        f"{entity.value} sync failed: {e}",
                        extra={**log_extra, "entity": entity.value},
                    )
                    outcome.abort(entity_record_id(entity), str(e) or type(e).__name__)

        tasks = {entity: asyncio.create_task(run(entity)) for entity in entities}
        if not tasks:
            return outcomes

        deadline = self.settings.sync_deadline_seconds or None
        _, pending = await asyncio.wait(tasks.values(), timeout=deadline)
        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for entity, task in tasks.items():
                if task in pending:
                    logger.error(
                        f"{entity.value} sync cancelled at run deadline",
                        extra={**log_extra, "entity": entity.value},
                    )
                    outcomes[entity].abort(entity_record_id(entity), "deadline exceeded")
        return outcomes

    async def _fetch(self, call: Awaitable[list]) -> list:
        return await asyncio.wait_for(call, timeout=self.settings.sync_call_timeout_seconds)

    async def _process_record(
        self,
        config: HRSystemConfig,
        outcome: EntitySyncOutcome,
        record_id: str,
        write: Callable[[], Awaitable[None]],
    ):
        if config.sync_settings.sync_direction == SyncDirection.EXPORT_ONLY:
            outcome.skipped += 1
            return
        record_id = record_id or MISSING_ID_RECORD_ID
        try:
            await asyncio.wait_for(write(), timeout=self.settings.sync_record_timeout_seconds)
        except asyncio.TimeoutError:
            outcome.fail(record_id, "Record write timed out")
        except FieldMappingError as e:
            outcome.fail(record_id, str(e), e.field)
        except Exception as e:
            logger.warning(
                f"Failed to sync record {record_id}: {e}",
                extra={"config_id": config.id},
            )
            outcome.fail(record_id, str(e) or type(e).__name__)
        else:
            outcome.successful += 1

    # ── Entity routines ──────────────────────────────

    async def _sync_employees(
        self,
        adapter: BaseHRAdapter,
        config: HRSystemConfig,
        outcome: EntitySyncOutcome,
    ):
        employees = await self._fetch(adapter.get_employees(config.last_sync))
        outcome.total_records = len(employees)
        for employee in employees:
            await self._process_record(
                config,
                outcome,
                employee.id,
                partial(self.reconciler.employee, config, employee),
            )

    async def _sync_departments(
        self,
        adapter: BaseHRAdapter,
        config: HRSystemConfig,
        outcome: EntitySyncOutcome,
    ):
        departments = await self._fetch(adapter.get_departments())
        outcome.total_records = len(departments)
        for department in departments:
            await self._process_record(
                config,
                outcome,
                department.id,
                partial(self.reconciler.department, config, department),
            )

    async def _sync_job_positions(
        self,
        adapter: BaseHRAdapter,
        config: HRSystemConfig,
        outcome: EntitySyncOutcome,
    ):
        positions = await self._fetch(adapter.get_job_positions())
        outcome.total_records = len(positions)
        for position in positions:
            await self._process_record(
                config,
                outcome,
                position.id,
                partial(self.reconciler.job_position, config, position),
            )

    # ── Bookkeeping ──────────────────────────────────

    async def _record_history(self, config_id: str, result: SyncResult, log_extra: dict):
        try:
            await self.config_store.record_sync_run(config_id, result)
        except Exception as e:
            logger.error(f"Failed to record sync history: {e}", extra=log_extra)

    async def _notify_admins(
        self,
        config: HRSystemConfig,
        result: SyncResult,
        escalate: bool,
        log_extra: dict,
    ):
        notification = Notification(
            title=NOTIFICATION_TITLE,
            message=(
                f"HR sync completed: {result.stats.successful} successful, "
                f"{result.stats.failed} failed, {result.stats.skipped} skipped"
            ),
            data=result.as_dict(),
            escalate=escalate,
        )
        try:
            admins = await self.directory.get_company_admins(config.company_id)
            for admin in admins:
                await self.notifier.send_notification(admin, notification)
        except Exception as e:
            logger.error(f"Failed to notify admins of sync result: {e}", extra=log_extra)
