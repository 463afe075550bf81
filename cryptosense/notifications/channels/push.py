"""Push notification gateway channel."""
from typing import Any, Dict, List, Optional

from cryptosense.core.exceptions import ChannelConfigurationError
from cryptosense.core.models.config_schema import PushConfig
from cryptosense.core.models.enums import NotificationMethod
from .base import HttpChannel


class PushChannel(HttpChannel):
    """Fans one alert out to every registered device token in a single call."""

    method = NotificationMethod.PUSH

    def __init__(self, config: PushConfig, timeout: float = 10):
        headers = {"Authorization": f"key={config.api_key}"} if config.api_key else None
        super().__init__(timeout=timeout, headers=headers)
        self.config = config

    def _resolve_tokens(self, user, override_config: Dict[str, Any]) -> List[str]:
        if override_config.get("push_token"):
            return [override_config["push_token"]]
        preferences = getattr(user, "preferences", None)
        return preferences.push_tokens if preferences is not None else []

    async def _deliver(self, user, alert, override_config: Dict[str, Any]) -> Optional[int]:
        tokens = self._resolve_tokens(user, override_config)
        if not tokens:
            raise ChannelConfigurationError("No push tokens configured for push notifications")
        if not self.config.gateway_url:
            raise ChannelConfigurationError("Push gateway is not configured")

        return await self._post(self.config.gateway_url, {
            "registration_ids": tokens,
            "notification": {
                "title": alert.title,
                "body": alert.message,
            },
            "data": {
                "alertId": alert.id,
                "symbol": alert.symbol,
                "severity": alert.severity.value,
            },
        })
