"""SMS gateway channel."""
from typing import Any, Dict, Optional

from cryptosense.core.exceptions import ChannelConfigurationError
from cryptosense.core.models.config_schema import SmsConfig
from cryptosense.core.models.enums import NotificationMethod
from .base import HttpChannel

# Single-segment SMS body
MAX_SMS_LENGTH = 160


class SmsChannel(HttpChannel):
    """Sends the alert title and headline to a phone number."""

    method = NotificationMethod.SMS

    def __init__(self, config: SmsConfig, timeout: float = 10):
        headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else None
        super().__init__(timeout=timeout, headers=headers)
        self.config = config

    async def _deliver(self, user, alert, override_config: Dict[str, Any]) -> Optional[int]:
        phone_number = (
            override_config.get("phone_number")
            or user.channel_preferences(self.method.value).get("phone_number")
        )
        if not phone_number:
            raise ChannelConfigurationError("No phone number configured for SMS notifications")
        if not self.config.gateway_url:
            raise ChannelConfigurationError("SMS gateway is not configured")

        return await self._post(self.config.gateway_url, {
            "to": phone_number,
            "from": self.config.sender,
            "body": self.format_text(alert),
        })

    @staticmethod
    def format_text(alert) -> str:
        # Second paragraph holds the type-specific headline
        blocks = alert.message.split("\n\n")
        headline = blocks[1] if len(blocks) > 1 else blocks[0]
        text = f"{alert.title}: {headline}"
        if len(text) > MAX_SMS_LENGTH:
            text = text[:MAX_SMS_LENGTH - 3] + "..."
        return text
