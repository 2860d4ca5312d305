"""
SQL Collaborators

SQLAlchemy implementations of the config store and local directory used by
HRSyncService and WebhookEventProcessor. Every method opens and commits its
own session so per-record writes are independent units of work.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.models.department import Department
from backend.models.hr_integration import HRIntegration
from backend.models.job import Job
from backend.models.sync_run import HRSyncRun
from backend.models.user import User
from backend.services.collaborators import IntegrationConfigStore, LocalDirectory, LocalUser
from integrations.base import (
    FieldMapping,
    HRCredentials,
    HRSystemConfig,
    HRSystemType,
    SyncResult,
    SyncSettings,
)
from integrations.credentials import CredentialCipher

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("company_admin", "super_admin")

USER_COLUMNS = {
    "email",
    "first_name",
    "last_name",
    "phone",
    "department",
    "job_title",
    "location",
    "employment_type",
    "hr_status",
    "hire_date",
    "is_active",
}

DEPARTMENT_COLUMNS = {
    "name",
    "description",
    "parent_external_id",
    "manager_external_id",
    "location",
    "budget",
    "headcount",
}

JOB_COLUMNS = {
    "title",
    "department",
    "description",
    "requirements",
    "location",
    "employment_type",
    "salary_min",
    "salary_max",
    "currency",
    "status",
    "hiring_manager",
    "requisition_number",
    "opened_at",
    "target_start_date",
}


def _uuid(value: str) -> UUID | None:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def integration_to_config(row: HRIntegration, cipher: CredentialCipher) -> HRSystemConfig:
    return HRSystemConfig(
        id=str(row.id),
        company_id=row.company_id,
        system_type=HRSystemType(row.system_type),
        name=row.name,
        credentials=cipher.decrypt(row.credentials_encrypted),
        sync_settings=SyncSettings.model_validate(row.sync_settings or {}),
        field_mappings=[FieldMapping.model_validate(m) for m in row.field_mappings or []],
        last_sync=row.last_sync,
        is_active=row.is_active,
        webhook_secret=row.webhook_secret,
    )


def user_to_local(user: User) -> LocalUser:
    return LocalUser(
        id=str(user.id),
        company_id=user.company_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
        external_ids=dict(user.external_ids or {}),
    )


class SQLIntegrationConfigStore(IntegrationConfigStore):
    """Config store backed by the hr_integrations table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], cipher: CredentialCipher):
        self.session_factory = session_factory
        self.cipher = cipher

    async def _get_row(self, session: AsyncSession, config_id: str) -> HRIntegration | None:
        row_id = _uuid(config_id)
        if row_id is None:
            return None
        return await session.get(HRIntegration, row_id)

    async def get_config(self, config_id: str) -> HRSystemConfig | None:
        async with self.session_factory() as session:
            row = await self._get_row(session, config_id)
            if row is None:
                return None
            return integration_to_config(row, self.cipher)

    async def update_last_sync(self, config_id: str, last_sync: str) -> None:
        async with self.session_factory() as session:
            row = await self._get_row(session, config_id)
            if row is None:
                raise LookupError(f"HR integration not found: {config_id}")
            row.last_sync = last_sync
            await session.commit()

    async def update_credentials(self, config_id: str, credentials: HRCredentials) -> None:
        async with self.session_factory() as session:
            row = await self._get_row(session, config_id)
            if row is None:
                raise LookupError(f"HR integration not found: {config_id}")
            row.credentials_encrypted = self.cipher.encrypt(credentials)
            await session.commit()
        logger.info("Persisted refreshed HR credentials", extra={"config_id": config_id})

    async def record_sync_run(self, config_id: str, result: SyncResult) -> None:
        dumped = result.as_dict()
        failed_entities = [
            name for name, stats in result.entity_stats.items()
            if stats.failed and stats.failed >= stats.total_records
        ]
        if result.success:
            status = "success"
        elif failed_entities and len(failed_entities) == len(result.entity_stats):
            status = "failed"
        else:
            status = "partial"

        async with self.session_factory() as session:
            row = await self._get_row(session, config_id)
            if row is None:
                raise LookupError(f"HR integration not found: {config_id}")
            session.add(
                HRSyncRun(
                    integration_id=row.id,
                    sync_id=result.sync_id,
                    success=result.success,
                    started_at=result.timestamp,
                    total_records=result.stats.total_records,
                    successful=result.stats.successful,
                    failed=result.stats.failed,
                    skipped=result.stats.skipped,
                    entity_stats=dumped.get("entityStats", {}),
                    errors=dumped.get("errors", []),
                    warnings=dumped.get("warnings", []),
                )
            )
            row.last_sync_at = _now()
            row.last_sync_status = status
            await session.commit()


class SQLLocalDirectory(LocalDirectory):
    """Users, departments and jobs in the platform database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_user_by_email(self, company_id: str, email: str) -> LocalUser | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(User).where(
                    User.company_id == company_id,
                    User.email == email.lower(),
                )
            )
            user = result.scalar_one_or_none()
            return user_to_local(user) if user else None

    async def create_user(self, company_id: str, fields: dict[str, Any]) -> str:
        values = {k: v for k, v in fields.items() if k in USER_COLUMNS}
        values["email"] = values["email"].lower()
        user = User(
            company_id=company_id,
            external_ids=dict(fields.get("external_ids") or {}),
            hr_synced_at=_now(),
            **values,
        )
        async with self.session_factory() as session:
            session.add(user)
            await session.commit()
            return str(user.id)

    async def update_user(self, user_id: str, fields: dict[str, Any]) -> None:
        async with self.session_factory() as session:
            user = await session.get(User, _uuid(user_id))
            if user is None:
                raise LookupError(f"User not found: {user_id}")
            for key, value in fields.items():
                if key in USER_COLUMNS:
                    setattr(user, key, value.lower() if key == "email" else value)
            if fields.get("external_ids"):
                user.external_ids = {**(user.external_ids or {}), **fields["external_ids"]}
            user.hr_synced_at = _now()
            await session.commit()

    async def _upsert_external(
        self,
        model,
        columns: set[str],
        company_id: str,
        system_type: str,
        record: dict[str, Any],
    ) -> str:
        external_id = str(record["external_id"])
        values = {k: v for k, v in record.items() if k in columns}
        async with self.session_factory() as session:
            result = await session.execute(
                select(model).where(
                    model.company_id == company_id,
                    model.system_type == system_type,
                    model.external_id == external_id,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = model(
                    company_id=company_id,
                    system_type=system_type,
                    external_id=external_id,
                    **values,
                )
                session.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            row.last_synced_at = _now()
            await session.commit()
            return str(row.id)

    async def upsert_department(
        self,
        company_id: str,
        system_type: str,
        department: dict[str, Any],
    ) -> str:
        return await self._upsert_external(
            Department, DEPARTMENT_COLUMNS, company_id, system_type, department
        )

    async def upsert_job(self, company_id: str, system_type: str, job: dict[str, Any]) -> str:
        return await self._upsert_external(Job, JOB_COLUMNS, company_id, system_type, job)

    async def close_job(self, company_id: str, system_type: str, external_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Job).where(
                    Job.company_id == company_id,
                    Job.system_type == system_type,
                    Job.external_id == external_id,
                )
            )
            job = result.scalar_one_or_none()
            if job is None:
                return False
            job.status = "closed"
            job.last_synced_at = _now()
            await session.commit()
            return True

    async def get_company_admins(self, company_id: str) -> list[LocalUser]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(User).where(
                    User.company_id == company_id,
                    User.role.in_(ADMIN_ROLES),
                    User.is_active.is_(True),
                )
            )
            return [user_to_local(u) for u in result.scalars().all()]
