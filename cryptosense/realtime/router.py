"""
Broadcast Router

Fans normalized market events out to the rooms that match them. Every event
goes to its broad category room plus, where it has one, the symbol room;
a connection in both receives the frame once.
"""

import asyncio
from typing import Any, Iterable, List

from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.data_models import (
    CorrelationUpdate,
    FundingRateUpdate,
    LiquidationEvent,
    PriceUpdate,
    SentimentUpdate,
    StablecoinUpdate,
)
from . import topics
from .connection import Connection
from .registry import ConnectionRegistry

logger = get_logger(__name__)

# Server -> client event names
PRICE_UPDATE = "price:update"
FUNDING_UPDATE = "funding:update"
LIQUIDATION_ALERT = "liquidation:alert"
LARGE_LIQUIDATION = "alert:large_liquidation"
SENTIMENT_UPDATE = "sentiment:update"
STABLECOIN_UPDATE = "stablecoin:update"
CORRELATION_UPDATE = "correlation:update"


class BroadcastRouter:
    """Routes market events to subscribed connections"""

    def __init__(self, registry: ConnectionRegistry,
                 large_liquidation_threshold: float = 1_000_000,
                 send_timeout: float = 5.0):
        self.registry = registry
        self.large_liquidation_threshold = large_liquidation_threshold
        self.send_timeout = send_timeout

    async def publish(self, event: str, data: Any, topic_keys: Iterable[str]) -> int:
        """Send one frame to every member of ``topic_keys``; returns recipients"""
        return await self._send_all(self.registry.subscribers(topic_keys), event, data)

    async def broadcast_all(self, event: str, data: Any) -> int:
        return await self._send_all(self.registry.all_connections(), event, data)

    async def _send_all(self, connections: List[Connection], event: str, data: Any) -> int:
        if not connections:
            return 0

        results = await asyncio.gather(
            *(asyncio.wait_for(connection.send(event, data), self.send_timeout)
              for connection in connections),
            return_exceptions=True
        )

        delivered = 0
        for connection, result in zip(connections, results):
            if isinstance(result, Exception):
                # A socket that cannot take a frame in time is gone
                logger.warning("Dropping connection after failed send", {
                    "connection_id": connection.id,
                    "event": event
                }, error=result)
                self.registry.disconnect(connection.id)
            else:
                delivered += 1
        return delivered

    def is_large_liquidation(self, event: LiquidationEvent) -> bool:
        return event.total_value > self.large_liquidation_threshold

    async def route(self, event: Any) -> None:
        """Dispatch a normalized market event by type"""
        if isinstance(event, PriceUpdate):
            await self.publish(PRICE_UPDATE, event.to_dict(),
                               [topics.PRICES, topics.price_topic(event.symbol)])

        elif isinstance(event, FundingRateUpdate):
            await self.publish(FUNDING_UPDATE, event.to_dict(),
                               [topics.FUNDING, topics.funding_topic(event.symbol)])

        elif isinstance(event, LiquidationEvent):
            await self.route_liquidation(event)

        elif isinstance(event, SentimentUpdate):
            await self.publish(SENTIMENT_UPDATE, event.to_dict(), [topics.SENTIMENT])

        elif isinstance(event, StablecoinUpdate):
            await self.publish(STABLECOIN_UPDATE, event.to_dict(),
                               [topics.STABLECOINS, topics.stablecoin_topic(event.symbol)])

        elif isinstance(event, CorrelationUpdate):
            await self.publish(CORRELATION_UPDATE, event.to_dict(), [topics.CORRELATIONS])

    async def route_liquidation(self, event: LiquidationEvent) -> None:
        is_large = self.is_large_liquidation(event)
        payload = event.to_dict()

        await self.publish(LIQUIDATION_ALERT, {
            **payload,
            "severity": "high" if is_large else "medium",
        }, [topics.LIQUIDATIONS])

        if is_large:
            logger.info("Large liquidation detected", {
                "symbol": event.symbol,
                "side": event.side.value,
                "total_value": event.total_value
            })
            await self.broadcast_all(LARGE_LIQUIDATION, payload)
