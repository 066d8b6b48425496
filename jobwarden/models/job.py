"""Persisted job definitions."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Enum, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jobwarden.models.base import Base, TimestampMixin
from jobwarden.schemas.job import JobKind, JobStatus


class JobRecord(Base, TimestampMixin):
    """One row per (job_name, job_group) identity."""

    __tablename__ = "jw_jobs"
    __table_args__ = (UniqueConstraint("job_name", "job_group", name="uq_jw_jobs_identity"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    job_name: Mapped[str] = mapped_column(String(100))
    job_group: Mapped[str] = mapped_column(String(100), index=True)
    trigger_name: Mapped[str | None] = mapped_column(String(100))
    trigger_group: Mapped[str | None] = mapped_column(String(100))
    cron_expression: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(String(500))

    job_kind: Mapped[JobKind] = mapped_column(
        Enum(
            JobKind,
            values_callable=lambda e: [x.value for x in e],
            name="jobkind",
            native_enum=False,
        ),
        default=JobKind.CLASS,
    )
    job_target: Mapped[str] = mapped_column(String(500))
    job_data: Mapped[str | None] = mapped_column(Text)

    # HTTP-kind request settings
    api_method: Mapped[str] = mapped_column(String(10), default="GET")
    api_headers: Mapped[str | None] = mapped_column(Text)
    api_body: Mapped[str | None] = mapped_column(Text)
    api_timeout: Mapped[int] = mapped_column(Integer, default=60)
    skip_ssl_validation: Mapped[bool] = mapped_column(Boolean, default=False)

    start_time: Mapped[datetime | None]
    end_time: Mapped[datetime | None]

    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            values_callable=lambda e: [x.value for x in e],
            name="jobstatus",
            native_enum=False,
        ),
        default=JobStatus.NORMAL,
        index=True,
    )
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # Engine-reported fire times, cached for display
    next_run_time: Mapped[datetime | None]
    previous_run_time: Mapped[datetime | None]

    remark: Mapped[str | None] = mapped_column(String(500))
    updated_at: Mapped[datetime | None]
    created_by: Mapped[str | None] = mapped_column(String(100))
    updated_by: Mapped[str | None] = mapped_column(String(100))
