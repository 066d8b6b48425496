import enum
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobwarden.core.datetime_utils import to_naive_utc_or_none, utc_now
from jobwarden.schemas.common import PageQuery


class LogStatus(str, enum.Enum):
    """Outcome of one firing attempt."""

    RUNNING = "Running"
    SUCCESS = "Success"
    FAILED = "Failed"


class ExecutionLogEntry(BaseModel):
    """One row per firing attempt, written once after the firing."""

    model_config = ConfigDict(from_attributes=True)

    log_id: str = Field(default_factory=lambda: str(uuid4()))
    job_name: str
    job_group: str
    status: LogStatus
    start_time: datetime
    end_time: datetime | None = None
    duration_ms: int | None = None
    message: str | None = None
    exception: str | None = None
    error_message: str | None = None
    error_stack_trace: str | None = None
    result: str | None = None
    trigger_name: str | None = None
    trigger_group: str | None = None
    job_data: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("start_time", "end_time", "created_at", mode="after")
    @classmethod
    def normalize_datetime(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc_or_none(v)


class JobLogQuery(PageQuery):
    """Filter for execution log listings and log clearing."""

    page_size: int = Field(default=10, ge=1, le=500)
    job_name: str | None = None
    job_group: str | None = None
    status: LogStatus | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def normalize_datetime(cls, v: datetime | None) -> datetime | None:
        # Query strings like `...Z` arrive aware; stored values are naive UTC
        return to_naive_utc_or_none(v)

    def is_empty(self) -> bool:
        return not any(
            [self.job_name, self.job_group, self.status, self.start_time, self.end_time]
        )
