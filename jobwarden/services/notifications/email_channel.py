"""Email channel on the Resend API."""

import asyncio

import resend

from jobwarden.core.logging import get_logger

from .base import ChannelResult, NotificationChannel

logger = get_logger(__name__)


class EmailChannel(NotificationChannel):
    """Sends each notification as one email to a fixed recipient list."""

    channel_name = "email"

    def __init__(self, api_key: str, from_address: str, recipients: list[str]) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.recipients = recipients

    async def send(self, title: str, content: str, template: str = "html") -> ChannelResult:
        if not self.api_key:
            logger.warning("resend_api_key_not_set")
            return ChannelResult(success=False, error_message="Resend API key is not configured")
        if not self.recipients:
            return ChannelResult(success=False, error_message="No email recipients configured")

        resend.api_key = self.api_key
        params: dict = {
            "from": self.from_address,
            "to": self.recipients,
            "subject": title,
        }
        # Markdown goes out as plain text
        params["html" if template == "html" else "text"] = content

        try:
            await asyncio.to_thread(resend.Emails.send, params)
        except Exception as e:
            logger.bind(error=str(e), recipients=len(self.recipients)).error("email_send_error")
            return ChannelResult(success=False, error_message=str(e))

        logger.bind(title=title, recipients=len(self.recipients)).info("email_sent")
        return ChannelResult(success=True)
