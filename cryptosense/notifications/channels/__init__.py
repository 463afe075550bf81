"""Notification delivery channels."""
from typing import Dict

from cryptosense.core.models.config_schema import NotificationsConfig
from cryptosense.core.models.enums import NotificationMethod

from .base import NotificationChannel, HttpChannel
from .email import EmailChannel
from .sms import SmsChannel
from .push import PushChannel
from .webhook import WebhookChannel, sign_payload


def build_channels(config: NotificationsConfig) -> Dict[NotificationMethod, NotificationChannel]:
    """One channel instance per notification method."""
    return {
        NotificationMethod.EMAIL: EmailChannel(config.email),
        NotificationMethod.SMS: SmsChannel(config.sms),
        NotificationMethod.PUSH: PushChannel(config.push),
        NotificationMethod.WEBHOOK: WebhookChannel(config.webhook),
    }


__all__ = [
    "NotificationChannel",
    "HttpChannel",
    "EmailChannel",
    "SmsChannel",
    "PushChannel",
    "WebhookChannel",
    "sign_payload",
    "build_channels",
]
