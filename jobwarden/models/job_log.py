"""Job execution history model."""

from datetime import datetime

from sqlalchemy import BigInteger, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobwarden.models.base import Base, TimestampMixin
from jobwarden.schemas.log import LogStatus


class JobLogRecord(Base, TimestampMixin):
    """Records each firing attempt of a job."""

    __tablename__ = "jw_job_logs"

    log_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    job_name: Mapped[str] = mapped_column(String(100), index=True)
    job_group: Mapped[str] = mapped_column(String(100), index=True)
    status: Mapped[LogStatus] = mapped_column(
        Enum(
            LogStatus,
            values_callable=lambda e: [x.value for x in e],
            name="logstatus",
            native_enum=False,
        ),
    )
    start_time: Mapped[datetime] = mapped_column(index=True)
    end_time: Mapped[datetime | None]
    duration_ms: Mapped[int | None] = mapped_column(BigInteger)
    message: Mapped[str | None] = mapped_column(Text)
    exception: Mapped[str | None] = mapped_column(Text)
    error_message: Mapped[str | None] = mapped_column(Text)
    error_stack_trace: Mapped[str | None] = mapped_column(Text)
    result: Mapped[str | None] = mapped_column(Text)
    trigger_name: Mapped[str | None] = mapped_column(String(100))
    trigger_group: Mapped[str | None] = mapped_column(String(100))
    job_data: Mapped[str | None] = mapped_column(Text)
