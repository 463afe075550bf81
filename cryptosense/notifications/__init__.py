"""Alert dispatch and notification delivery."""
from .channels import (
    NotificationChannel,
    EmailChannel,
    SmsChannel,
    PushChannel,
    WebhookChannel,
    build_channels,
)
from .dispatcher import NotificationDispatcher
from .maintenance import AlertRetentionSweeper

__all__ = [
    "NotificationChannel",
    "EmailChannel",
    "SmsChannel",
    "PushChannel",
    "WebhookChannel",
    "build_channels",
    "NotificationDispatcher",
    "AlertRetentionSweeper",
]
