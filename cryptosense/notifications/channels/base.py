"""Uniform delivery contract shared by every notification channel."""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from cryptosense.core.exceptions import ChannelConfigurationError, DeliveryError
from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.data_models import DeliveryResult
from cryptosense.core.models.enums import NotificationMethod
from cryptosense.core.timeutils import utcnow
from cryptosense.market_data.adapters.http_adapter import HTTPAdapter

logger = get_logger(__name__)


class NotificationChannel(ABC):
    """One outbound transport behind ``send``.

    ``send`` never raises: configuration and transport errors are turned
    into a failed ``DeliveryResult`` carrying the error text.
    """

    method: NotificationMethod

    async def send(self, user, alert, override_config: Optional[Dict[str, Any]] = None) -> DeliveryResult:
        try:
            status_code = await self._deliver(user, alert, override_config or {})
        except ChannelConfigurationError as e:
            return self._failure(str(e))
        except DeliveryError as e:
            return self._failure(str(e), e.status_code)
        except Exception as e:
            logger.error(f"Unexpected {self.method.value} delivery error", {
                "history_id": getattr(alert, "id", None)
            }, error=e)
            return self._failure(str(e) or type(e).__name__)

        return DeliveryResult(
            success=True,
            method=self.method,
            delivered_at=utcnow(),
            status_code=status_code,
        )

    def _failure(self, error: str, status_code: Optional[int] = None) -> DeliveryResult:
        return DeliveryResult(
            success=False,
            method=self.method,
            delivered_at=utcnow(),
            error=error,
            status_code=status_code,
        )

    @abstractmethod
    async def _deliver(self, user, alert, override_config: Dict[str, Any]) -> Optional[int]:
        """Resolve the destination and hand the alert to the transport.

        Returns:
            Transport status code when the transport has one

        Raises:
            ChannelConfigurationError: no destination or gateway configured
            DeliveryError: transport rejected the message
        """

    async def close(self) -> None:
        """Release transport resources."""


class HttpChannel(NotificationChannel):
    """Channel whose transport is an HTTP POST to a gateway or endpoint."""

    def __init__(self, timeout: float = 10, headers: Optional[Dict[str, str]] = None):
        # One attempt per delivery; failed deliveries are recorded, not retried
        self.http = HTTPAdapter(timeout=timeout, max_retries=1, headers=headers)

    async def _post(self, url: str, payload: Any = None, body: Optional[str] = None,
                    headers: Optional[Dict[str, str]] = None) -> int:
        """POST and return the status code; non-2xx becomes ``DeliveryError``."""
        try:
            if body is not None:
                status, _ = await self.http.post(url, data=body, headers=headers)
            else:
                status, _ = await self.http.post(url, json=payload, headers=headers)
        except aiohttp.ClientResponseError as e:
            raise DeliveryError(f"{self.method.value} endpoint returned HTTP {e.status}", e.status) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DeliveryError(f"{self.method.value} request failed: {str(e) or type(e).__name__}") from e
        return status

    async def close(self) -> None:
        await self.http.close()
