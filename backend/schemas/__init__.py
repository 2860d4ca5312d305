"""Pydantic API Schemas for the HR sync engine."""

from backend.schemas.hr_integration import (
    ConnectionTestResponse,
    HRIntegrationCreate,
    HRIntegrationResponse,
    SyncHistoryResponse,
    SyncRequest,
)

__all__ = [
    "HRIntegrationCreate",
    "HRIntegrationResponse",
    "ConnectionTestResponse",
    "SyncRequest",
    "SyncHistoryResponse",
]
