"""
HR Sync Service Unit Tests

Tests entity isolation, record-level failure accounting, watermark
handling, export-only runs, deadlines and bookkeeping failures.
"""

import re
from datetime import datetime, timezone

import pytest

from backend.services.hr_sync import (
    MISSING_ID_RECORD_ID,
    NOTIFICATION_TITLE,
    EntitySyncOutcome,
    HRSyncService,
    entity_record_id,
    job_to_local_fields,
    new_sync_id,
    resolve_entities,
)
from integrations.adapter_cache import AdapterCache
from integrations.base import (
    EmployeeStatus,
    EntityType,
    FieldMapping,
    SyncDirection,
    SyncSettings,
)
from integrations.exceptions import IntegrationInactiveError, IntegrationNotFoundError
from tests.fakes import make_config, make_department, make_employee, make_position


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _assert_counts_balance(result):
    """Every stats block must satisfy total == successful + failed + skipped."""
    blocks = [result.stats, *result.entity_stats.values()]
    for stats in blocks:
        assert stats.total_records == stats.successful + stats.failed + stats.skipped


def _errors_for(result, record_id):
    return [e for e in result.errors if e.record_id == record_id]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

class TestHelpers:

    def test_sync_id_format(self):
        assert re.fullmatch(r"sync_\d+_[a-z0-9]{9}", new_sync_id())

    def test_sync_ids_are_unique(self):
        assert len({new_sync_id() for _ in range(50)}) == 50

    def test_entity_record_ids(self):
        assert entity_record_id(EntityType.EMPLOYEES) == "employees_sync"
        assert entity_record_id(EntityType.JOB_POSITIONS) == "jobPositions_sync"

    def test_resolve_entities_defaults_to_enabled(self):
        config = make_config(
            sync_settings=SyncSettings.model_validate(
                {"syncEntities": {"employees": True, "departments": False, "jobPositions": True}}
            )
        )
        known, unknown = resolve_entities(None, config)
        assert known == [EntityType.EMPLOYEES, EntityType.JOB_POSITIONS]
        assert unknown == []

    def test_resolve_entities_splits_unknown_and_dedupes(self):
        known, unknown = resolve_entities(["employees", "payroll", "employees"], make_config())
        assert known == [EntityType.EMPLOYEES]
        assert unknown == ["payroll"]

    def test_job_fields_keep_opened_at_when_vendor_has_no_date(self):
        fields = job_to_local_fields({"id": "j1", "title": "Engineer", "created_date": None})
        assert "opened_at" not in fields

    def test_job_fields_carry_vendor_creation_date(self):
        created = datetime(2024, 3, 1, tzinfo=timezone.utc)
        fields = job_to_local_fields({"id": "j1", "title": "Engineer", "created_date": created})
        assert fields["opened_at"] == created

    def test_outcome_abort_rebalances_counts(self):
        outcome = EntitySyncOutcome(total_records=5, successful=2)
        outcome.abort("employees_sync", "boom")
        assert outcome.total_records == 3
        assert outcome.failed == 1
        assert not outcome.failed_entirely


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestPerformSync:

    @pytest.mark.asyncio
    async def test_full_sync_reconciles_every_entity(
        self, sync_service, adapter, directory, config_store, notifier
    ):
        adapter.employees = [make_employee(i) for i in range(3)]
        adapter.departments = [make_department(i) for i in range(2)]
        adapter.positions = [make_position(1)]

        result = await sync_service.perform_sync("cfg-1")

        assert result.success is True
        assert result.stats.total_records == 6
        assert result.stats.successful == 6
        assert set(result.entity_stats) == {"employees", "departments", "jobPositions"}
        assert result.errors == []
        _assert_counts_balance(result)

        assert directory.user_by_email("person0@example.com")["external_ids"] == {"bamboohr": "emp-0"}
        assert ("company-1", "bamboohr", "dept-1") in directory.departments
        assert ("company-1", "bamboohr", "job-1") in directory.jobs

        assert config_store.configs["cfg-1"].last_sync == result.timestamp.isoformat()
        assert config_store.runs == [("cfg-1", result)]

        [(admin, notification)] = notifier.sent
        assert admin.email == "admin@example.com"
        assert notification.title == NOTIFICATION_TITLE
        assert notification.message == "HR sync completed: 6 successful, 0 failed, 0 skipped"
        assert notification.escalate is False

    @pytest.mark.asyncio
    async def test_existing_user_is_updated_not_duplicated(self, sync_service, adapter, directory):
        user_id = directory.add_user("company-1", "Person1@example.com", external_ids={"workday": "w-1"})
        before = len(directory.users)
        adapter.employees = [make_employee(1, job_title="Staff Engineer")]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert result.success is True
        assert len(directory.users) == before
        user = directory.users[user_id]
        assert user["job_title"] == "Staff Engineer"
        assert user["external_ids"] == {"workday": "w-1", "bamboohr": "emp-1"}

    @pytest.mark.asyncio
    async def test_terminated_employee_is_deactivated(self, sync_service, adapter, directory):
        adapter.employees = [make_employee(1, status=EmployeeStatus.TERMINATED)]

        await sync_service.perform_sync("cfg-1", ["employees"])

        user = directory.user_by_email("person1@example.com")
        assert user["is_active"] is False
        assert user["hr_status"] == "terminated"

    @pytest.mark.asyncio
    async def test_watermark_is_passed_to_employee_fetch(self, config_store, sync_service, adapter):
        config_store.configs["cfg-1"] = make_config(last_sync="2025-01-01T00:00:00+00:00")

        await sync_service.perform_sync("cfg-1", ["employees"])

        assert adapter.last_sync_seen == ["2025-01-01T00:00:00+00:00"]

    @pytest.mark.asyncio
    async def test_unknown_entity_types_become_warnings(self, sync_service, adapter):
        adapter.employees = [make_employee(1)]

        result = await sync_service.perform_sync("cfg-1", ["employees", "payroll"])

        assert result.success is True
        assert "Unknown entity type ignored: payroll" in result.warnings
        assert set(result.entity_stats) == {"employees"}


# ---------------------------------------------------------------------------
# Record-level failures
# ---------------------------------------------------------------------------

class TestRecordFailures:

    @pytest.mark.asyncio
    async def test_malformed_employees_are_counted_not_raised(
        self, sync_service, adapter, config_store, directory
    ):
        adapter.employees = [make_employee(i) for i in range(8)] + [
            make_employee(8, email=""),
            make_employee(9, email=""),
        ]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert result.success is False
        assert result.stats.total_records == 10
        assert result.stats.successful == 8
        assert result.stats.failed == 2
        assert {e.record_id for e in result.errors} == {"emp-8", "emp-9"}
        assert all(e.field == "email" for e in result.errors)
        assert config_store.configs["cfg-1"].last_sync is None
        _assert_counts_balance(result)

    @pytest.mark.asyncio
    async def test_directory_rejection_isolated_to_one_record(self, sync_service, adapter, directory):
        directory.reject_emails.add("person2@example.com")
        adapter.employees = [make_employee(i) for i in range(4)]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert result.stats.successful == 3
        assert result.stats.failed == 1
        [error] = result.errors
        assert error.record_id == "emp-2"
        assert "rejected" in error.error

    @pytest.mark.asyncio
    async def test_departments_without_vendor_id_fail(self, sync_service, adapter, directory):
        adapter.departments = [make_department(1, id=""), make_department(2, id="  "), make_department(3)]

        result = await sync_service.perform_sync("cfg-1", ["departments"])

        stats = result.entity_stats["departments"]
        assert stats.successful == 1
        assert stats.failed == 2
        assert [key[2] for key in directory.departments] == ["dept-3"]
        missing = _errors_for(result, MISSING_ID_RECORD_ID)
        assert len(missing) == 1
        assert missing[0].field == "id"
        assert [e.field for e in _errors_for(result, "  ")] == ["id"]
        _assert_counts_balance(result)

    @pytest.mark.asyncio
    async def test_employee_without_vendor_id_is_not_written(self, sync_service, adapter, directory):
        adapter.employees = [make_employee(1, id="")]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert result.stats.failed == 1
        assert directory.user_by_email("person1@example.com") is None
        [error] = result.errors
        assert error.record_id == MISSING_ID_RECORD_ID
        assert error.field == "id"

    @pytest.mark.asyncio
    async def test_slow_record_write_times_out(self, sync_service, adapter, directory):
        sync_service.settings.sync_record_timeout_seconds = 0.05
        directory.write_delay = 0.5
        adapter.employees = [make_employee(1)]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        [error] = result.errors
        assert error.record_id == "emp-1"
        assert error.error == "Record write timed out"

    @pytest.mark.asyncio
    async def test_field_mapping_overrides_target(self, config_store, sync_service, adapter, directory):
        config_store.configs["cfg-1"] = make_config(
            field_mappings=[
                FieldMapping(
                    source_field="custom_fields.workEmail",
                    target_field="email",
                    is_required=True,
                ),
            ]
        )
        adapter.employees = [
            make_employee(1, email="", custom_fields={"workEmail": "Work1@Example.com"}),
            make_employee(2),
        ]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert directory.user_by_email("work1@example.com") is not None
        [error] = result.errors
        assert error.record_id == "emp-2"
        assert error.field == "custom_fields.workEmail"


# ---------------------------------------------------------------------------
# Entity isolation
# ---------------------------------------------------------------------------

class TestEntityIsolation:

    @pytest.mark.asyncio
    async def test_department_outage_does_not_stop_employees(self, sync_service, adapter, notifier):
        adapter.employees = [make_employee(1), make_employee(2)]
        adapter.departments = RuntimeError("department API down")
        adapter.positions = [make_position(1)]

        result = await sync_service.perform_sync("cfg-1")

        assert result.success is False
        assert result.entity_stats["employees"].successful == 2
        assert result.entity_stats["jobPositions"].successful == 1
        [error] = _errors_for(result, "departments_sync")
        assert error.error == "department API down"
        assert result.entity_stats["departments"].total_records == 1
        assert result.entity_stats["departments"].failed == 1
        _assert_counts_balance(result)

        [(_, notification)] = notifier.sent
        assert notification.escalate is True

    @pytest.mark.asyncio
    async def test_job_position_failure_uses_entity_sentinel(self, sync_service, adapter):
        adapter.positions = RuntimeError("no requisitions API")

        result = await sync_service.perform_sync("cfg-1", ["jobPositions"])

        assert [e.record_id for e in result.errors] == ["jobPositions_sync"]

    @pytest.mark.asyncio
    async def test_run_deadline_cancels_stuck_entity(self, sync_service, adapter):
        sync_service.settings.sync_deadline_seconds = 0.2
        adapter.employees = [make_employee(1)]
        adapter.hang = {"departments"}

        result = await sync_service.perform_sync("cfg-1", ["employees", "departments"])

        assert result.entity_stats["employees"].successful == 1
        [error] = _errors_for(result, "departments_sync")
        assert error.error == "deadline exceeded"
        _assert_counts_balance(result)


# ---------------------------------------------------------------------------
# Process-level outcomes
# ---------------------------------------------------------------------------

class TestProcessOutcomes:

    @pytest.mark.asyncio
    async def test_injected_empty_cache_is_used(self, config_store, directory, notifier, settings, adapter):
        shared = AdapterCache(factory=lambda config: adapter)
        assert len(shared) == 0
        service = HRSyncService(config_store, directory, notifier, adapters=shared, settings=settings)

        assert service.adapters is shared

        await service.perform_sync("cfg-1", ["employees"])

        assert "cfg-1" in shared

    @pytest.mark.asyncio
    async def test_missing_config_raises(self, sync_service):
        with pytest.raises(IntegrationNotFoundError):
            await sync_service.perform_sync("does-not-exist")

    @pytest.mark.asyncio
    async def test_inactive_config_raises(self, config_store, sync_service):
        config_store.configs["cfg-1"] = make_config(is_active=False)

        with pytest.raises(IntegrationInactiveError):
            await sync_service.perform_sync("cfg-1")

    @pytest.mark.asyncio
    async def test_connection_failure_is_a_process_error(self, sync_service, adapter, notifier):
        adapter.valid = False

        result = await sync_service.perform_sync("cfg-1")

        assert result.success is False
        [error] = result.errors
        assert error.record_id == "sync_process"
        assert result.stats.total_records == 1
        assert result.stats.failed == 1
        assert notifier.sent[0][1].escalate is True

    @pytest.mark.asyncio
    async def test_export_only_skips_inbound_writes(self, config_store, sync_service, adapter, directory):
        config_store.configs["cfg-1"] = make_config(
            sync_settings=SyncSettings(sync_direction=SyncDirection.EXPORT_ONLY)
        )
        adapter.employees = [make_employee(1), make_employee(2)]
        before = len(directory.users)

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert result.success is True
        assert result.stats.skipped == 2
        assert len(directory.users) == before

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_sync(self, sync_service, adapter, notifier):
        notifier.fail = True
        adapter.employees = [make_employee(1)]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert result.success is True

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_sync(self, sync_service, adapter, config_store):
        config_store.fail_history = True
        adapter.employees = [make_employee(1)]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert result.success is True
        assert config_store.runs == []

    @pytest.mark.asyncio
    async def test_watermark_write_failure_becomes_warning(self, sync_service, adapter, config_store):
        config_store.fail_last_sync = True
        adapter.employees = [make_employee(1)]

        result = await sync_service.perform_sync("cfg-1", ["employees"])

        assert result.success is True
        assert any(w.startswith("Sync watermark not updated") for w in result.warnings)

    @pytest.mark.asyncio
    async def test_result_serializes_camel_case(self, sync_service, adapter):
        adapter.employees = [make_employee(1, email="")]

        data = (await sync_service.perform_sync("cfg-1", ["employees"])).as_dict()

        assert data["syncId"].startswith("sync_")
        assert data["stats"] == {"totalRecords": 1, "successful": 0, "failed": 1, "skipped": 0}
        assert data["errors"][0]["recordId"] == "emp-1"
        assert "warnings" not in data
