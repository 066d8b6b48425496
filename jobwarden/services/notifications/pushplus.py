"""
PushPlus notification channel.

API: POST https://www.pushplus.plus/send with a JSON body
`{token, title, content, template, channel, topic}`. The request succeeded
when the HTTP status is 2xx and the response body has `code == 200`.
"""

import httpx

from jobwarden.core.logging import get_logger

from .base import ChannelResult, NotificationChannel

logger = get_logger(__name__)

PUSHPLUS_API_URL = "https://www.pushplus.plus/send"


class PushPlusChannel(NotificationChannel):
    """Sends notifications through the PushPlus push service."""

    channel_name = "pushplus"

    def __init__(
        self,
        token: str,
        channel: str = "wechat",
        topic: str = "",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.channel = channel
        self.topic = topic
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def send(self, title: str, content: str, template: str = "html") -> ChannelResult:
        if not self.token:
            return ChannelResult(success=False, error_message="PushPlus token is not configured")

        payload = {
            "token": self.token,
            "title": title,
            "content": content,
            "template": template,
            "channel": self.channel,
            "topic": self.topic or None,
        }

        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            try:
                resp = await client.post(PUSHPLUS_API_URL, json=payload)
            except httpx.TimeoutException:
                logger.error("pushplus_timeout")
                return ChannelResult(success=False, error_message="PushPlus request timed out")
            except httpx.HTTPError as e:
                logger.bind(error=str(e)).error("pushplus_send_error")
                return ChannelResult(success=False, error_message=str(e))

        if not resp.is_success:
            logger.bind(status=resp.status_code, body=resp.text[:500]).error("pushplus_http_error")
            return ChannelResult(success=False, error_message=f"HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError:
            return ChannelResult(success=False, error_message="PushPlus returned a non-JSON response")

        code = body.get("code") if isinstance(body, dict) else None
        if code != 200:
            msg = body.get("msg") if isinstance(body, dict) else None
            logger.bind(code=code, msg=msg).warning("pushplus_rejected")
            return ChannelResult(success=False, error_message=f"PushPlus error {code}: {msg}")

        logger.bind(title=title).info("pushplus_sent")
        return ChannelResult(success=True)
