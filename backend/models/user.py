"""
User Model

Local users of the recruiting platform. Users created or updated by HR
syncs carry their vendor ids in external_ids.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, TimestampMixin


class User(TimestampMixin, Base):
    """
    User record.

    Role determines permissions (see backend/middleware/rbac.py). HR-synced
    users default to the employee role.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
    )
    company_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    # Identity
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Authorization
    role: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="employee",
        comment="Role: super_admin, company_admin, recruiter, viewer, employee",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # HR profile
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    employment_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    hr_status: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="Status reported by the HR system: active|inactive|terminated",
    )
    hire_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    external_ids: Mapped[dict] = mapped_column(
        JSONB,
        default=dict,
        nullable=False,
        comment="HR system type -> vendor employee id",
    )
    hr_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("company_id", "email", name="uq_users_company_email"),
        Index("ix_users_company_role", "company_id", "role"),
    )

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"
