"""
Base Model Classes and Mixins

Declarative base and shared columns for all HR sync models.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all models."""

    type_annotation_map: dict[type, Any] = {}


class TimestampMixin:
    """
    Mixin for automatic created_at and updated_at timestamps.

    Automatically sets created_at on insert and updated_at on every update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp when record was created",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="Timestamp when record was last updated",
    )


class ExternalRecordMixin:
    """
    Mixin for rows mirrored from an HR system.

    (company_id, system_type, external_id) is the idempotency key for
    upserts driven by syncs and webhooks.
    """

    company_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    system_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="Source HR system: bamboohr|servicenow_hr|sage_hr|zoho_people",
    )
    external_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Vendor-native record id",
    )
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
