"""Outbound webhook channel with optional HMAC-SHA256 body signing."""
import hashlib
import hmac
import json
from typing import Any, Dict, Optional

from cryptosense.core.exceptions import ChannelConfigurationError
from cryptosense.core.models.config_schema import WebhookConfig
from cryptosense.core.models.enums import NotificationMethod
from .base import HttpChannel


def sign_payload(secret: str, body: str) -> str:
    """Hex HMAC-SHA256 of the exact request body."""
    return hmac.new(
        secret.encode(),
        body.encode(),
        hashlib.sha256
    ).hexdigest()


class WebhookChannel(HttpChannel):
    """POSTs the alert record as JSON to a user-supplied URL."""

    method = NotificationMethod.WEBHOOK

    def __init__(self, config: WebhookConfig):
        super().__init__(timeout=config.timeout_seconds)
        self.config = config

    async def _deliver(self, user, alert, override_config: Dict[str, Any]) -> Optional[int]:
        preferences = user.channel_preferences(self.method.value)
        url = override_config.get("webhook_url") or preferences.get("url")
        if not url:
            raise ChannelConfigurationError("No webhook URL configured for webhook notifications")
        secret = override_config.get("webhook_secret") or preferences.get("secret")

        body = json.dumps({
            "event": "alert.triggered",
            "alert": alert.to_dict(),
        }, default=str, sort_keys=True)

        headers = {"Content-Type": "application/json"}
        if secret:
            headers[self.config.signature_header] = sign_payload(secret, body)

        return await self._post(url, body=body, headers=headers)
