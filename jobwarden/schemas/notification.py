import enum
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobwarden.core.datetime_utils import to_naive_utc_or_none, utc_now
from jobwarden.schemas.common import PageQuery

NOTIFICATION_CONFIG_KEY = "notification_config"


class NotificationStatus(str, enum.Enum):
    """Delivery state of a notification record."""

    PENDING = "Pending"
    SENT = "Sent"
    FAILED = "Failed"


class NotificationRecord(BaseModel):
    """One outbound notification attempt."""

    model_config = ConfigDict(from_attributes=True)

    notification_id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    content: str
    status: NotificationStatus = NotificationStatus.PENDING
    error_message: str | None = None
    triggered_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    sent_at: datetime | None = None
    duration_ms: int | None = None

    @field_validator("created_at", "sent_at", mode="after")
    @classmethod
    def normalize_datetime(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc_or_none(v)


class NotificationQuery(PageQuery):
    """Filter for notification listings."""

    status: NotificationStatus | None = None
    triggered_by: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def normalize_datetime(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc_or_none(v)


class Setting(BaseModel):
    """Opaque key/value configuration blob, unique by key."""

    model_config = ConfigDict(from_attributes=True)

    setting_id: str = Field(default_factory=lambda: str(uuid4()))
    key: str = Field(min_length=1, max_length=100)
    value: str = ""
    description: str = ""
    enabled: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def normalize_datetime(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc_or_none(v)


class NotificationStrategy(BaseModel):
    """Independent switches for each notification trigger."""

    notify_on_job_success: bool = False
    notify_on_job_failure: bool = True
    notify_on_scheduler_error: bool = True


class NotificationConfig(BaseModel):
    """Persisted notification policy and channel settings."""

    enabled: bool = False
    channel: str = "pushplus"
    token: str = ""
    webhook_url: str = ""
    email_to: list[str] = Field(default_factory=list)
    template: str = "html"
    topic: str = ""
    pushplus_channel: str = "wechat"
    strategy: NotificationStrategy = Field(default_factory=NotificationStrategy)
