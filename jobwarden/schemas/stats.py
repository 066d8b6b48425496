from datetime import datetime

from pydantic import BaseModel, field_validator

from jobwarden.core.datetime_utils import to_naive_utc_or_none


class StatsQuery(BaseModel):
    """Time range for dashboard statistics.

    `time_range_type` is one of today, yesterday, thisWeek, thisMonth,
    last30Days or custom; anything else means the last 7 days.
    """

    time_range_type: str | None = "today"
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def normalize_datetime(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc_or_none(v)


class JobStats(BaseModel):
    total_jobs: int = 0
    enabled_jobs: int = 0
    disabled_jobs: int = 0
    executing_jobs: int = 0
    success_count: int = 0
    failed_count: int = 0
    paused_count: int = 0
    blocked_count: int = 0


class StatusDistribution(BaseModel):
    status: str
    count: int
    percentage: float


class TypeDistribution(BaseModel):
    type: str
    count: int
    percentage: float


class ExecutionTrendPoint(BaseModel):
    time: str
    success_count: int = 0
    failed_count: int = 0
    total_count: int = 0


class ExecutionTimeBucket(BaseModel):
    time_range: str
    count: int = 0
