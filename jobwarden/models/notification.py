"""Notification history and key/value settings."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobwarden.models.base import Base, TimestampMixin
from jobwarden.schemas.notification import NotificationStatus


class NotificationRecordRow(Base, TimestampMixin):
    """One outbound notification attempt."""

    __tablename__ = "jw_notifications"

    notification_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    content: Mapped[str] = mapped_column(Text)
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(
            NotificationStatus,
            values_callable=lambda e: [x.value for x in e],
            name="notificationstatus",
            native_enum=False,
        ),
        default=NotificationStatus.PENDING,
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    triggered_by: Mapped[str | None] = mapped_column(String(200))
    sent_at: Mapped[datetime | None]
    duration_ms: Mapped[int | None] = mapped_column(BigInteger)


class SettingRecord(Base, TimestampMixin):
    """Opaque configuration blob keyed by a unique name."""

    __tablename__ = "jw_settings"

    setting_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    key: Mapped[str] = mapped_column(String(100), unique=True)
    value: Mapped[str] = mapped_column(Text, default="")
    description: Mapped[str] = mapped_column(String(500), default="")
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime | None]
