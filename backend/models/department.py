"""
Department Model

Departments mirrored from HR systems.
"""

from uuid import UUID, uuid4

from sqlalchemy import Float, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, ExternalRecordMixin, TimestampMixin


class Department(ExternalRecordMixin, TimestampMixin, Base):
    __tablename__ = "departments"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manager_external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    headcount: Mapped[int | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "system_type",
            "external_id",
            name="uq_departments_external",
        ),
    )

    def __repr__(self) -> str:
        return f"<Department {self.name} ({self.system_type}:{self.external_id})>"
