"""
Sync Collaborators

Interfaces the sync and webhook services depend on. The SQL-backed
implementations live in backend/services/directory.py and
backend/services/notifications.py.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from integrations.base import HRCredentials, HRSystemConfig, SyncResult


class LocalUser(BaseModel):
    """A platform user as seen by the sync services."""

    id: str
    company_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: str = "employee"
    is_active: bool = True
    external_ids: dict[str, str] = Field(default_factory=dict)


class Notification(BaseModel):
    title: str
    message: str
    type: str = "hr_sync"
    data: dict[str, Any] = Field(default_factory=dict)
    escalate: bool = False


class IntegrationConfigStore(ABC):
    """Loads integration configs and persists sync bookkeeping."""

    @abstractmethod
    async def get_config(self, config_id: str) -> HRSystemConfig | None:
        """Return the config with decrypted credentials, or None."""

    @abstractmethod
    async def update_last_sync(self, config_id: str, last_sync: str) -> None:
        """Advance the incremental-sync watermark."""

    @abstractmethod
    async def update_credentials(self, config_id: str, credentials: HRCredentials) -> None:
        """Persist credentials after an OAuth token refresh."""

    @abstractmethod
    async def record_sync_run(self, config_id: str, result: SyncResult) -> None:
        """Append a sync run to the config's history."""


class LocalDirectory(ABC):
    """
    Local user / department / job persistence.

    Each call is its own unit of work. Department and job upserts are
    idempotent on (company_id, system_type, external id).
    """

    @abstractmethod
    async def get_user_by_email(self, company_id: str, email: str) -> LocalUser | None:
        ...

    @abstractmethod
    async def create_user(self, company_id: str, fields: dict[str, Any]) -> str:
        """Create a user; returns the new user id."""

    @abstractmethod
    async def update_user(self, user_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update. external_ids are merged, not replaced."""

    @abstractmethod
    async def upsert_department(
        self,
        company_id: str,
        system_type: str,
        department: dict[str, Any],
    ) -> str:
        ...

    @abstractmethod
    async def upsert_job(self, company_id: str, system_type: str, job: dict[str, Any]) -> str:
        ...

    @abstractmethod
    async def close_job(self, company_id: str, system_type: str, external_id: str) -> bool:
        """Mark a job closed. False when no such job exists."""

    @abstractmethod
    async def get_company_admins(self, company_id: str) -> list[LocalUser]:
        ...


class Notifier(ABC):
    @abstractmethod
    async def send_notification(self, recipient: LocalUser, notification: Notification) -> None:
        ...
