"""HR sync schema: integrations, sync runs, users, departments, jobs

Revision ID: h001
Revises:
Create Date: 2025-06-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "h001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _external_columns() -> list[sa.Column]:
    return [
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("system_type", sa.String(30), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # === hr_integrations ===
    op.create_table(
        "hr_integrations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("system_type", sa.String(30), nullable=False),
        sa.Column("name", sa.String(100), nullable=False, server_default=""),
        sa.Column("credentials_encrypted", sa.LargeBinary(), nullable=False),
        sa.Column("sync_settings", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("field_mappings", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("last_sync", sa.String(40), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_status", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("webhook_secret", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "system_type IN ('bamboohr', 'servicenow_hr', 'sage_hr', 'zoho_people')",
            name="valid_hr_system_type",
        ),
    )
    op.create_index("ix_hr_integrations_company_id", "hr_integrations", ["company_id"])
    op.create_index("ix_hr_integrations_active", "hr_integrations", ["is_active"])

    # === hr_sync_runs ===
    op.create_table(
        "hr_sync_runs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "integration_id",
            sa.Uuid(),
            sa.ForeignKey("hr_integrations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sync_id", sa.String(64), nullable=False, unique=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("total_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("entity_stats", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("errors", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("warnings", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_hr_sync_runs_integration_started",
        "hr_sync_runs",
        ["integration_id", "started_at"],
    )

    # === users ===
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(50), nullable=False, server_default="employee"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("department", sa.String(255), nullable=True),
        sa.Column("job_title", sa.String(255), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("employment_type", sa.String(20), nullable=True),
        sa.Column("hr_status", sa.String(20), nullable=True),
        sa.Column("hire_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("external_ids", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("hr_synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "email", name="uq_users_company_email"),
    )
    op.create_index("ix_users_company_id", "users", ["company_id"])
    op.create_index("ix_users_company_role", "users", ["company_id", "role"])

    # === departments ===
    op.create_table(
        "departments",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_external_columns(),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("parent_external_id", sa.String(255), nullable=True),
        sa.Column("manager_external_id", sa.String(255), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("budget", sa.Float(), nullable=True),
        sa.Column("headcount", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "system_type", "external_id", name="uq_departments_external"),
    )
    op.create_index("ix_departments_company_id", "departments", ["company_id"])

    # === jobs ===
    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_external_columns(),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("department", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("requirements", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("employment_type", sa.String(20), nullable=False, server_default="full_time"),
        sa.Column("salary_min", sa.Float(), nullable=True),
        sa.Column("salary_max", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("hiring_manager", sa.String(255), nullable=True),
        sa.Column("requisition_number", sa.String(100), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("target_start_date", sa.String(40), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "system_type", "external_id", name="uq_jobs_external"),
        sa.CheckConstraint("status IN ('open', 'on_hold', 'closed')", name="valid_job_status"),
    )
    op.create_index("ix_jobs_company_id", "jobs", ["company_id"])
    op.create_index("ix_jobs_company_status", "jobs", ["company_id", "status"])


def downgrade() -> None:
    op.drop_table("jobs")
    op.drop_table("departments")
    op.drop_table("users")
    op.drop_table("hr_sync_runs")
    op.drop_table("hr_integrations")
