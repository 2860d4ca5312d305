"""SQLAlchemy ORM Models for the HR sync service."""

from backend.models.base import Base, ExternalRecordMixin, TimestampMixin
from backend.models.department import Department
from backend.models.hr_integration import HRIntegration
from backend.models.job import Job
from backend.models.sync_run import HRSyncRun
from backend.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "ExternalRecordMixin",
    "HRIntegration",
    "HRSyncRun",
    "User",
    "Department",
    "Job",
]
