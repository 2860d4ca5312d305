"""
HR Integration Pydantic Schemas

API request/response models for HR integration endpoints.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from integrations.base import (
    FieldMapping,
    HRSystemType,
    SyncSettings,
    SyncStats,
)
from integrations.registry import missing_credential_fields


class HRIntegrationCreate(BaseModel):
    """Schema for connecting a company to an HR system."""

    system_type: HRSystemType
    name: str = Field(..., min_length=1, max_length=100)
    credentials: dict[str, Any] = Field(
        ...,
        description="Vendor credentials, camelCase keys (e.g. {'apiKey': ..., 'subdomain': ...})",
    )
    sync_settings: SyncSettings = Field(default_factory=SyncSettings)
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    webhook_secret: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def check_required_credentials(self) -> "HRIntegrationCreate":
        missing = missing_credential_fields(self.system_type, self.credentials)
        if missing:
            raise ValueError(f"Missing required credentials: {', '.join(missing)}")
        return self


class HRIntegrationResponse(BaseModel):
    """Integration config as exposed over the API; credentials are never returned."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    system_type: HRSystemType
    name: str
    sync_settings: dict[str, Any]
    field_mappings: list[dict[str, Any]]
    last_sync: str | None = None
    last_sync_at: datetime | None = None
    last_sync_status: str | None = None
    is_active: bool
    has_webhook_secret: bool = False
    created_at: datetime | None = None


class EntityProbe(BaseModel):
    accessible: bool
    count: int = 0
    error: str | None = None


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    entities: dict[str, EntityProbe] = Field(default_factory=dict)


class SyncRequest(BaseModel):
    entity_types: list[str] | None = Field(
        default=None,
        description="Subset of employees | departments | jobPositions",
    )


class SyncQueuedResponse(BaseModel):
    queued: bool = True
    task_id: str
    config_id: str


class SyncRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sync_id: str
    success: bool
    started_at: datetime
    stats: SyncStats
    entity_stats: dict[str, Any] = Field(default_factory=dict)
    errors: list[dict[str, Any]] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SyncHistoryResponse(BaseModel):
    items: list[SyncRunResponse]
    total: int
    page: int
    page_size: int
