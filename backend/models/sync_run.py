"""
HR Sync Run Model

History of sync runs per integration.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base

if TYPE_CHECKING:
    from backend.models.hr_integration import HRIntegration


class HRSyncRun(Base):
    """One completed sync run and its SyncResult summary."""

    __tablename__ = "hr_sync_runs"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
    )
    integration_id: Mapped[UUID] = mapped_column(
        ForeignKey("hr_integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sync_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    total_records: Mapped[int] = mapped_column(default=0)
    successful: Mapped[int] = mapped_column(default=0)
    failed: Mapped[int] = mapped_column(default=0)
    skipped: Mapped[int] = mapped_column(default=0)

    entity_stats: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    errors: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    warnings: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)

    integration: Mapped["HRIntegration"] = relationship(back_populates="sync_runs")

    __table_args__ = (
        Index("ix_hr_sync_runs_integration_started", "integration_id", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<HRSyncRun {self.sync_id} success={self.success}>"
