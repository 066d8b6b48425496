"""Abstract base class for notification channels."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class ChannelResult:
    """Outcome of one delivery attempt."""

    success: bool
    error_message: str | None = None


class NotificationChannel(ABC):
    """Delivers a rendered notification to one external service."""

    channel_name: str = "unknown"

    @abstractmethod
    async def send(self, title: str, content: str, template: str = "html") -> ChannelResult:
        """
        Send a single notification.

        Args:
            title: Notification title
            content: Rendered body in the given template format
            template: Body format (html, txt or markdown)

        Returns:
            ChannelResult; channels never raise for delivery failures
        """
        pass
