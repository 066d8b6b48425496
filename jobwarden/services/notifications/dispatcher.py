"""
Notification dispatcher.

Decides whether a job result or scheduler error should be announced,
records the attempt in the store and delivers it through the configured
channel. The policy lives in the store as the `notification_config`
setting; when it is missing or unreadable, notifications are disabled.
"""

import time
from collections.abc import Callable

import httpx
from pydantic import ValidationError

from jobwarden.config import get_config
from jobwarden.core.datetime_utils import utc_now
from jobwarden.core.logging import get_logger
from jobwarden.schemas.job import JobKey
from jobwarden.schemas.notification import (
    NOTIFICATION_CONFIG_KEY,
    NotificationConfig,
    NotificationRecord,
    NotificationStatus,
    Setting,
)
from jobwarden.storage.base import JobStore

from .base import NotificationChannel
from .email_channel import EmailChannel
from .null import NullChannel
from .pushplus import PushPlusChannel
from .templates import render_job_result, render_scheduler_error
from .webhook import WebhookChannel

logger = get_logger(__name__)

SCHEDULER_SOURCE = "Scheduler"


def create_channel(
    config: NotificationConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> NotificationChannel:
    """Build the channel named by the config, or a NullChannel when unusable."""
    app_config = get_config()
    timeout = app_config.notifications.timeout_seconds

    if config.channel == "pushplus" and config.token:
        return PushPlusChannel(
            token=config.token,
            channel=config.pushplus_channel,
            topic=config.topic,
            timeout_seconds=timeout,
            transport=transport,
        )
    if config.channel == "webhook" and config.webhook_url:
        return WebhookChannel(config.webhook_url, timeout_seconds=timeout, transport=transport)
    if config.channel == "email" and config.email_to and app_config.settings.resend_api_key:
        return EmailChannel(
            api_key=app_config.settings.resend_api_key,
            from_address=app_config.settings.email_from,
            recipients=config.email_to,
        )
    return NullChannel()


class NotificationDispatcher:
    """Policy gate, record keeping and delivery for outbound notifications."""

    def __init__(
        self,
        store: JobStore,
        channel_factory: Callable[[NotificationConfig], NotificationChannel] = create_channel,
    ) -> None:
        self.store = store
        self.channel_factory = channel_factory

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def default_config() -> NotificationConfig:
        defaults = get_config().notifications
        return NotificationConfig(
            enabled=False,
            channel=defaults.channel,
            token=defaults.token,
            webhook_url=defaults.webhook_url,
            email_to=defaults.email_to,
            template=defaults.template,
        )

    async def get_config(self) -> NotificationConfig:
        setting = await self.store.get_setting(NOTIFICATION_CONFIG_KEY)
        if setting is None or not setting.value:
            return self.default_config()
        try:
            return NotificationConfig.model_validate_json(setting.value)
        except ValidationError as e:
            logger.bind(error=str(e)).warning("notification_config_unreadable")
            return self.default_config()

    async def save_config(self, config: NotificationConfig) -> bool:
        saved = await self.store.save_setting(
            Setting(
                key=NOTIFICATION_CONFIG_KEY,
                value=config.model_dump_json(),
                description="Notification channel and policy",
            )
        )
        if saved:
            logger.bind(channel=config.channel, enabled=config.enabled).info(
                "notification_config_saved"
            )
        return saved

    # =========================================================================
    # Triggers
    # =========================================================================

    async def notify_job_result(
        self,
        key: JobKey,
        success: bool,
        message: str,
        duration_ms: int,
        error: str | None = None,
    ) -> None:
        """Announce a finished firing if the policy asks for it."""
        try:
            config = await self.get_config()
            if not config.enabled:
                return
            if success and not config.strategy.notify_on_job_success:
                return
            if not success and not config.strategy.notify_on_job_failure:
                return

            title = f"Job {'succeeded' if success else 'failed'}: {key.name}"
            content = render_job_result(
                config.template, key, success, message, duration_ms, error, utc_now()
            )
            await self._deliver(config, title, content, triggered_by=str(key))
        except Exception as e:
            logger.bind(job=str(key), error=str(e)).error("notification_dispatch_failed")

    async def notify_scheduler_error(self, error: BaseException) -> None:
        """Announce an engine-level failure if the policy asks for it."""
        try:
            config = await self.get_config()
            if not config.enabled or not config.strategy.notify_on_scheduler_error:
                return
            content = render_scheduler_error(config.template, error, utc_now())
            await self._deliver(config, "Scheduler error", content, triggered_by=SCHEDULER_SOURCE)
        except Exception as e:
            logger.bind(error=str(e)).error("notification_dispatch_failed")

    async def send_test(self) -> bool:
        """Send a test message through the configured channel (ignores `enabled`)."""
        config = await self.get_config()
        channel = self.channel_factory(config)
        result = await channel.send(
            "Test notification",
            "This is a test notification to verify the channel configuration.",
            config.template,
        )
        if not result.success:
            logger.bind(channel=channel.channel_name, error=result.error_message).warning(
                "notification_test_failed"
            )
        return result.success

    async def _deliver(
        self,
        config: NotificationConfig,
        title: str,
        content: str,
        triggered_by: str,
    ) -> NotificationRecord:
        record = NotificationRecord(title=title, content=content, triggered_by=triggered_by)
        await self.store.add_notification(record)

        channel = self.channel_factory(config)
        started = time.perf_counter()
        result = await channel.send(title, content, config.template)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        record = record.model_copy(
            update={
                "status": NotificationStatus.SENT if result.success else NotificationStatus.FAILED,
                "error_message": result.error_message,
                "sent_at": utc_now(),
                "duration_ms": elapsed_ms,
            }
        )
        await self.store.update_notification(record)

        logger.bind(
            channel=channel.channel_name,
            triggered_by=triggered_by,
            status=record.status.value,
        ).info("notification_dispatched")
        return record
