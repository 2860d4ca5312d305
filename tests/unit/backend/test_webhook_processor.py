"""
Webhook Event Processor Unit Tests

Tests dispatch of normalized events to the directory, fail-closed handling
of unknown events and export-only configs.
"""

import pytest

from integrations.base import SyncDirection, SyncSettings, WebhookEventType
from integrations.exceptions import (
    FieldMappingError,
    IntegrationInactiveError,
    IntegrationNotFoundError,
    UnsupportedWebhookEventError,
)
from tests.fakes import make_config


def _employee_payload(event: str, **data) -> dict:
    record = {"id": "emp-7", "firstName": "Grace", "lastName": "Hopper", "email": "grace@example.com"}
    record.update(data)
    return {"event": event, "data": record}


class TestEmployeeEvents:

    @pytest.mark.asyncio
    async def test_created_event_creates_user(self, webhook_processor, directory):
        event = await webhook_processor.handle_webhook("cfg-1", _employee_payload("employee.created"))

        assert event.event_type == WebhookEventType.EMPLOYEE_CREATED
        assert event.company_id == "company-1"
        user = directory.user_by_email("grace@example.com")
        assert user["first_name"] == "Grace"
        assert user["external_ids"] == {"bamboohr": "emp-7"}

    @pytest.mark.asyncio
    async def test_updated_event_updates_existing_user(self, webhook_processor, directory):
        user_id = directory.add_user("company-1", "grace@example.com")

        await webhook_processor.handle_webhook(
            "cfg-1", _employee_payload("employee.updated", jobTitle="Rear Admiral")
        )

        assert directory.users[user_id]["job_title"] == "Rear Admiral"

    @pytest.mark.asyncio
    async def test_terminated_event_deactivates_user(self, webhook_processor, directory):
        user_id = directory.add_user("company-1", "grace@example.com")

        await webhook_processor.handle_webhook("cfg-1", _employee_payload("employee.terminated"))

        assert directory.users[user_id]["is_active"] is False
        assert directory.users[user_id]["hr_status"] == "terminated"

    @pytest.mark.asyncio
    async def test_terminated_event_without_local_user_is_skipped(self, webhook_processor, directory):
        before = dict(directory.users)

        event = await webhook_processor.handle_webhook("cfg-1", _employee_payload("employee.terminated"))

        assert event.event_type == WebhookEventType.EMPLOYEE_TERMINATED
        assert directory.users == before


class TestDepartmentAndJobEvents:

    @pytest.mark.asyncio
    async def test_department_event_upserts_department(self, webhook_processor, directory):
        await webhook_processor.handle_webhook(
            "cfg-1", {"event": "department.created", "data": {"id": "d-1", "name": "Research"}}
        )

        assert directory.departments[("company-1", "bamboohr", "d-1")]["name"] == "Research"

    @pytest.mark.asyncio
    async def test_job_closed_marks_existing_job_closed(self, webhook_processor, directory):
        await webhook_processor.handle_webhook(
            "cfg-1", {"event": "job.created", "data": {"id": "j-1", "title": "Compiler Engineer"}}
        )
        await webhook_processor.handle_webhook(
            "cfg-1", {"event": "job.closed", "data": {"id": "j-1"}}
        )

        assert directory.jobs[("company-1", "bamboohr", "j-1")]["status"] == "closed"

    @pytest.mark.asyncio
    async def test_job_closed_for_unknown_job_is_not_an_error(self, webhook_processor, directory):
        event = await webhook_processor.handle_webhook(
            "cfg-1", {"event": "job.closed", "data": {"id": "missing"}}
        )

        assert event.event_type == WebhookEventType.JOB_CLOSED
        assert directory.jobs == {}


class TestRejectedEvents:

    @pytest.mark.asyncio
    async def test_unknown_event_fails_closed(self, webhook_processor, directory):
        before = dict(directory.users)

        with pytest.raises(UnsupportedWebhookEventError):
            await webhook_processor.handle_webhook("cfg-1", {"event": "payroll.run", "data": {}})

        assert directory.users == before

    @pytest.mark.asyncio
    async def test_department_without_vendor_id_is_rejected(self, webhook_processor, directory):
        with pytest.raises(FieldMappingError) as exc:
            await webhook_processor.handle_webhook(
                "cfg-1", {"event": "department.created", "data": {"id": "", "name": "Ops"}}
            )

        assert exc.value.field == "id"
        assert directory.departments == {}

    @pytest.mark.asyncio
    async def test_job_closed_without_vendor_id_is_rejected(self, webhook_processor, directory):
        with pytest.raises(FieldMappingError):
            await webhook_processor.handle_webhook("cfg-1", {"event": "job.closed", "data": {"id": " "}})

        assert directory.jobs == {}

    @pytest.mark.asyncio
    async def test_unknown_config_raises(self, webhook_processor):
        with pytest.raises(IntegrationNotFoundError):
            await webhook_processor.handle_webhook("nope", _employee_payload("employee.created"))

    @pytest.mark.asyncio
    async def test_inactive_config_raises(self, webhook_processor, config_store):
        config_store.configs["cfg-1"] = make_config(is_active=False)

        with pytest.raises(IntegrationInactiveError):
            await webhook_processor.handle_webhook("cfg-1", _employee_payload("employee.created"))

    @pytest.mark.asyncio
    async def test_export_only_config_ignores_inbound_event(self, webhook_processor, config_store, directory):
        config_store.configs["cfg-1"] = make_config(
            sync_settings=SyncSettings(sync_direction=SyncDirection.EXPORT_ONLY)
        )

        event = await webhook_processor.handle_webhook("cfg-1", _employee_payload("employee.created"))

        assert event.event_type == WebhookEventType.EMPLOYEE_CREATED
        assert directory.user_by_email("grace@example.com") is None

    @pytest.mark.asyncio
    async def test_directory_failure_propagates(self, webhook_processor, directory):
        directory.reject_emails.add("grace@example.com")

        with pytest.raises(ValueError):
            await webhook_processor.handle_webhook("cfg-1", _employee_payload("employee.created"))
