"""In-process fan-out of normalized market events to their consumers."""
import asyncio
from typing import Any, Callable, List

from ..core.logging.structured_logger import get_logger

logger = get_logger(__name__)


class MarketEventHub:
    """Delivers each event to every registered handler in order.

    A failing handler is logged and the remaining handlers still run.
    """

    def __init__(self):
        self._handlers: List[Callable[[Any], Any]] = []

    def subscribe(self, handler: Callable[[Any], Any]) -> None:
        """Register handler (sync or async) for every event."""
        self._handlers.append(handler)

    async def publish(self, event: Any) -> None:
        for handler in self._handlers:
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(event)
                else:
                    result = handler(event)
                    if asyncio.iscoroutine(result):
                        await result
            except Exception as e:
                logger.error("Market event handler failed", {
                    "handler": getattr(handler, "__qualname__", repr(handler)),
                    "event": type(event).__name__
                }, error=e)
