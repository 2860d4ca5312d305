"""
HR System Integrations

Vendor adapters, the adapter registry and the shared normalized models for
BambooHR, ServiceNow HR, Sage HR and Zoho People.
"""

from integrations.base import (
    BaseHRAdapter,
    HRDepartment,
    HREmployee,
    HRJobPosition,
    HRSystemConfig,
    HRSystemType,
    SyncResult,
    WebhookPayload,
)

__all__ = [
    "BaseHRAdapter",
    "HRDepartment",
    "HREmployee",
    "HRJobPosition",
    "HRSystemConfig",
    "HRSystemType",
    "SyncResult",
    "WebhookPayload",
]
