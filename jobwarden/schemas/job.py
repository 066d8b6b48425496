import enum
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobwarden.core.datetime_utils import to_naive_utc_or_none, utc_now
from jobwarden.schemas.common import PageQuery

DEFAULT_GROUP = "DEFAULT"
DEFAULT_CRON = "0 0/1 * * * ?"


class JobKind(str, enum.Enum):
    """How a job body is executed."""

    CLASS = "class"
    HTTP = "http"


class JobStatus(str, enum.Enum):
    """Durable status of a job definition."""

    NORMAL = "Normal"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    ERROR = "Error"
    BLOCKED = "Blocked"


@dataclass(frozen=True)
class JobKey:
    """Composite job identity shared by the store and the engine."""

    name: str
    group: str = DEFAULT_GROUP

    def __str__(self) -> str:
        return f"{self.group}.{self.name}"

    @classmethod
    def parse(cls, value: str) -> "JobKey":
        """Parse the `group.name` form; the name is whatever follows the last dot.

        Only for text typed by people. Code that has the parts keeps them.
        """
        group, sep, name = value.rpartition(".")
        if not sep or not group or not name:
            raise ValueError(f"Invalid job key: {value!r}")
        return cls(name=name, group=group)


@dataclass(frozen=True)
class TriggerKey:
    """Identity of the single cron trigger attached to a job."""

    name: str
    group: str = DEFAULT_GROUP

    def __str__(self) -> str:
        return f"{self.group}.{self.name}"


class JobDefinition(BaseModel):
    """Durable description of a schedulable unit of work."""

    model_config = ConfigDict(from_attributes=True)

    job_name: str = Field(min_length=1, max_length=100)
    job_group: str = Field(default=DEFAULT_GROUP, min_length=1, max_length=100)
    trigger_name: str | None = Field(default=None, max_length=100)
    trigger_group: str | None = Field(default=None, max_length=100)
    cron_expression: str = Field(default=DEFAULT_CRON, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)

    job_kind: JobKind = JobKind.CLASS
    job_target: str = Field(min_length=1, max_length=500)
    job_data: str | None = None

    # HTTP-kind fields
    api_method: str = Field(default="GET", max_length=10)
    api_headers: str | None = None
    api_body: str | None = None
    api_timeout: int = Field(default=60, ge=1, le=3600)
    skip_ssl_validation: bool = False

    start_time: datetime | None = None
    end_time: datetime | None = None

    status: JobStatus = JobStatus.NORMAL
    is_enabled: bool = True
    next_run_time: datetime | None = None
    previous_run_time: datetime | None = None

    remark: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None

    @field_validator(
        "start_time",
        "end_time",
        "next_run_time",
        "previous_run_time",
        "created_at",
        "updated_at",
        mode="after",
    )
    @classmethod
    def normalize_datetime(cls, v: datetime | None) -> datetime | None:
        # Both backends store and compare naive UTC
        return to_naive_utc_or_none(v)

    @property
    def key(self) -> JobKey:
        return JobKey(self.job_name, self.job_group)

    @property
    def trigger_key(self) -> TriggerKey:
        return TriggerKey(
            name=self.trigger_name or f"{self.job_name}_Trigger",
            group=self.trigger_group or self.job_group,
        )

    def with_trigger_defaults(self) -> "JobDefinition":
        """Fill the identity-derived trigger name and group when not supplied."""
        return self.model_copy(
            update={
                "trigger_name": self.trigger_name or f"{self.job_name}_Trigger",
                "trigger_group": self.trigger_group or self.job_group,
            }
        )


class JobQuery(PageQuery):
    """Filter for job listings."""

    job_name: str | None = None
    job_group: str | None = None
    status: JobStatus | None = None
    is_enabled: bool | None = None


class BatchDeleteResult(BaseModel):
    """Outcome counts of a batch delete."""

    success_count: int = 0
    failed_count: int = 0
    failed_keys: list[str] = Field(default_factory=list)


class SchedulerStatus(BaseModel):
    """Live status of the scheduling engine."""

    scheduler_name: str
    is_started: bool
    is_shutdown: bool
    job_count: int
    executing_jobs: list[str] = Field(default_factory=list)
    max_concurrent_jobs: int
