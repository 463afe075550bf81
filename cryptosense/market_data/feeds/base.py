"""Feed abstractions run by the feed supervisor."""
import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Optional

from ..adapters.ws_adapter import WebSocketAdapter
from ..normalizer import DataNormalizer
from ...core.exceptions import FeedMessageError

Publish = Callable[[Any], Awaitable[None]]


class Feed(ABC):
    """One upstream source for one kind of market data.

    ``run_once`` performs a single connection lifetime (stream feeds) or a
    single poll (polling feeds). The supervisor repeats it forever.
    """

    name: str = "feed"

    def __init__(self, normalizer: Optional[DataNormalizer] = None):
        self.normalizer = normalizer or DataNormalizer()

    @property
    def restart_delay(self) -> Optional[float]:
        """Seconds between runs; None means the supervisor's reconnect delay."""
        return None

    @abstractmethod
    async def run_once(self, publish: Publish) -> None:
        ...

    async def close(self) -> None:
        """Release client resources."""


class StreamFeed(Feed):
    """Long-lived WebSocket stream; returns when the upstream closes."""

    def __init__(self, url: str, normalizer: Optional[DataNormalizer] = None):
        super().__init__(normalizer)
        self.url = url
        self.adapter: Optional[WebSocketAdapter] = None
        self._publish: Optional[Publish] = None

    def create_adapter(self) -> WebSocketAdapter:
        return WebSocketAdapter(self.url, on_message=self._on_message)

    async def on_open(self, adapter: WebSocketAdapter) -> None:
        """Hook for feeds that subscribe after connecting."""

    async def run_once(self, publish: Publish) -> None:
        self._publish = publish
        self.adapter = self.create_adapter()
        try:
            await self.adapter.connect()
            await self.on_open(self.adapter)
            await self.adapter.wait_closed()
        finally:
            await self.adapter.disconnect()
            self.adapter = None

    async def _on_message(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except ValueError as e:
            raise FeedMessageError(f"{self.name}: message is not JSON") from e

        events = self.parse(message)
        for event in events:
            await self._publish(event)

    @abstractmethod
    def parse(self, message: Any) -> List[Any]:
        """Normalize one decoded message; raise ``FeedMessageError`` if invalid."""

    @property
    def is_connected(self) -> bool:
        return self.adapter is not None and self.adapter.is_connected


class PollingFeed(Feed):
    """Periodic REST poll; each run publishes whatever the poll returned."""

    def __init__(self, interval_seconds: float, normalizer: Optional[DataNormalizer] = None):
        super().__init__(normalizer)
        self.interval_seconds = interval_seconds

    @property
    def restart_delay(self) -> Optional[float]:
        return self.interval_seconds

    async def run_once(self, publish: Publish) -> None:
        for event in await self.poll():
            await publish(event)

    @abstractmethod
    async def poll(self) -> List[Any]:
        ...
