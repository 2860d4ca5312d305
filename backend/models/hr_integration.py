"""
HR Integration Model

One tenant's connection to an HR system: encrypted credentials, sync
settings, field mappings and the incremental-sync watermark.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Index, LargeBinary, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from backend.models.sync_run import HRSyncRun


class HRIntegration(TimestampMixin, Base):
    """
    HR system integration config.

    Never deleted; disconnecting sets is_active to False so sync history
    stays attached.
    """

    __tablename__ = "hr_integrations"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
    )
    company_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    system_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="bamboohr|servicenow_hr|sage_hr|zoho_people",
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
    )

    # Credentials (Fernet-encrypted JSON blob)
    credentials_encrypted: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    sync_settings: Mapped[dict] = mapped_column(
        JSONB,
        default=dict,
        nullable=False,
        comment="SyncSettings (camelCase JSON)",
    )
    field_mappings: Mapped[list] = mapped_column(
        JSONB,
        default=list,
        nullable=False,
    )

    # Watermark: only advanced by a fully successful sync
    last_sync: Mapped[str | None] = mapped_column(
        String(40),
        nullable=True,
        comment="ISO-8601 timestamp of last fully successful sync",
    )
    last_sync_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the last sync run finished (any outcome)",
    )
    last_sync_status: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="success|partial|failed",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    webhook_secret: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="HMAC secret for inbound webhooks",
    )

    sync_runs: Mapped[list["HRSyncRun"]] = relationship(
        back_populates="integration",
        order_by="HRSyncRun.started_at.desc()",
    )

    __table_args__ = (
        Index("ix_hr_integrations_company_id", "company_id"),
        Index("ix_hr_integrations_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<HRIntegration {self.system_type} company={self.company_id} active={self.is_active}>"
