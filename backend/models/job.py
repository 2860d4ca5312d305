"""
Job Model

Job positions / requisitions mirrored from HR systems.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Float, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, ExternalRecordMixin, TimestampMixin


class Job(ExternalRecordMixin, TimestampMixin, Base):
    """
    Job position.

    Status follows the HR system: open|on_hold|closed. A job.closed webhook
    sets status to closed without touching other fields.
    """

    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requirements: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    employment_type: Mapped[str] = mapped_column(String(20), nullable=False, default="full_time")
    salary_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    salary_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    hiring_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    requisition_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    target_start_date: Mapped[str | None] = mapped_column(String(40), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "system_type",
            "external_id",
            name="uq_jobs_external",
        ),
        Index("ix_jobs_company_status", "company_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Job {self.title} ({self.status})>"
