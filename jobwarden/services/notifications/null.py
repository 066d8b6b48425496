"""Channel used when notifications are not configured."""

from .base import ChannelResult, NotificationChannel


class NullChannel(NotificationChannel):
    """Accepts nothing; every send fails without network access."""

    channel_name = "null"

    async def send(self, title: str, content: str, template: str = "html") -> ChannelResult:
        return ChannelResult(success=False, error_message="no channel configured")
