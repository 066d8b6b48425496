"""Notification dispatcher and delivery channels."""

from .base import ChannelResult, NotificationChannel
from .dispatcher import NotificationDispatcher, create_channel
from .email_channel import EmailChannel
from .null import NullChannel
from .pushplus import PUSHPLUS_API_URL, PushPlusChannel
from .webhook import WebhookChannel

__all__ = [
    "PUSHPLUS_API_URL",
    "ChannelResult",
    "EmailChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "NullChannel",
    "PushPlusChannel",
    "WebhookChannel",
    "create_channel",
]
