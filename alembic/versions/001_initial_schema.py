"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-16

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Enums are stored as VARCHAR (native_enum=False), so no CREATE TYPE
    op.create_table(
        "jw_jobs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("job_name", sa.String(100), nullable=False),
        sa.Column("job_group", sa.String(100), nullable=False),
        sa.Column("trigger_name", sa.String(100), nullable=True),
        sa.Column("trigger_group", sa.String(100), nullable=True),
        sa.Column("cron_expression", sa.String(200), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("job_kind", sa.String(5), nullable=False),
        sa.Column("job_target", sa.String(500), nullable=False),
        sa.Column("job_data", sa.Text(), nullable=True),
        sa.Column("api_method", sa.String(10), nullable=False),
        sa.Column("api_headers", sa.Text(), nullable=True),
        sa.Column("api_body", sa.Text(), nullable=True),
        sa.Column("api_timeout", sa.Integer(), nullable=False),
        sa.Column("skip_ssl_validation", sa.Boolean(), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=True),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(9), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("next_run_time", sa.DateTime(), nullable=True),
        sa.Column("previous_run_time", sa.DateTime(), nullable=True),
        sa.Column("remark", sa.String(500), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("updated_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("job_name", "job_group", name="uq_jw_jobs_identity"),
    )
    op.create_index("ix_jw_jobs_job_group", "jw_jobs", ["job_group"])
    op.create_index("ix_jw_jobs_status", "jw_jobs", ["status"])
    op.create_index("ix_jw_jobs_created_at", "jw_jobs", ["created_at"])

    op.create_table(
        "jw_job_logs",
        sa.Column("log_id", sa.String(36), nullable=False),
        sa.Column("job_name", sa.String(100), nullable=False),
        sa.Column("job_group", sa.String(100), nullable=False),
        sa.Column("status", sa.String(7), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("exception", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_stack_trace", sa.Text(), nullable=True),
        sa.Column("result", sa.Text(), nullable=True),
        sa.Column("trigger_name", sa.String(100), nullable=True),
        sa.Column("trigger_group", sa.String(100), nullable=True),
        sa.Column("job_data", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("log_id"),
    )
    op.create_index("ix_jw_job_logs_job_name", "jw_job_logs", ["job_name"])
    op.create_index("ix_jw_job_logs_job_group", "jw_job_logs", ["job_group"])
    op.create_index("ix_jw_job_logs_start_time", "jw_job_logs", ["start_time"])
    op.create_index("ix_jw_job_logs_created_at", "jw_job_logs", ["created_at"])

    op.create_table(
        "jw_notifications",
        sa.Column("notification_id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(7), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("triggered_by", sa.String(200), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("notification_id"),
    )
    op.create_index("ix_jw_notifications_created_at", "jw_notifications", ["created_at"])

    op.create_table(
        "jw_settings",
        sa.Column("setting_id", sa.String(36), nullable=False),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("setting_id"),
        sa.UniqueConstraint("key"),
    )
    op.create_index("ix_jw_settings_created_at", "jw_settings", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_jw_settings_created_at", table_name="jw_settings")
    op.drop_table("jw_settings")

    op.drop_index("ix_jw_notifications_created_at", table_name="jw_notifications")
    op.drop_table("jw_notifications")

    op.drop_index("ix_jw_job_logs_created_at", table_name="jw_job_logs")
    op.drop_index("ix_jw_job_logs_start_time", table_name="jw_job_logs")
    op.drop_index("ix_jw_job_logs_job_group", table_name="jw_job_logs")
    op.drop_index("ix_jw_job_logs_job_name", table_name="jw_job_logs")
    op.drop_table("jw_job_logs")

    op.drop_index("ix_jw_jobs_created_at", table_name="jw_jobs")
    op.drop_index("ix_jw_jobs_status", table_name="jw_jobs")
    op.drop_index("ix_jw_jobs_job_group", table_name="jw_jobs")
    op.drop_table("jw_jobs")
