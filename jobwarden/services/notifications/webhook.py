"""Discord-style webhook channel (POST JSON with a `content` field)."""

import httpx

from jobwarden.core.logging import get_logger

from .base import ChannelResult, NotificationChannel

logger = get_logger(__name__)

# Discord rejects message content longer than this
MAX_CONTENT_LENGTH = 2000


class WebhookChannel(NotificationChannel):
    """Posts notifications to an incoming webhook URL."""

    channel_name = "webhook"

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def send(self, title: str, content: str, template: str = "html") -> ChannelResult:
        if not self.webhook_url:
            return ChannelResult(success=False, error_message="Webhook URL is not configured")

        text = f"**{title}**\n{content}"[:MAX_CONTENT_LENGTH]

        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            try:
                resp = await client.post(self.webhook_url, json={"content": text})
            except httpx.TimeoutException:
                logger.error("webhook_timeout")
                return ChannelResult(success=False, error_message="Webhook request timed out")
            except httpx.HTTPError as e:
                logger.bind(error=str(e)).error("webhook_send_error")
                return ChannelResult(success=False, error_message=str(e))

        if not resp.is_success:
            logger.bind(status=resp.status_code, body=resp.text[:500]).error("webhook_failed")
            return ChannelResult(success=False, error_message=f"HTTP {resp.status_code}")

        logger.bind(title=title).info("webhook_sent")
        return ChannelResult(success=True)
