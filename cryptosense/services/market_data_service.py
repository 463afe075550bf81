"""
Market Data Service for CryptoSense

Keeps the latest state of every feed in memory. Serves:
- the one-time market snapshot sent to realtime clients on connect
- the read-only REST overview endpoints
- the price history used by indicators and the correlation feed
"""

import asyncio
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

import aiohttp

from cryptosense.alerts.indicators import PriceHistory
from cryptosense.core.exceptions import FeedMessageError
from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.data_models import (
    CorrelationUpdate,
    FundingRateUpdate,
    LiquidationEvent,
    OpenInterestUpdate,
    PriceUpdate,
    SentimentUpdate,
    StablecoinUpdate,
    now_ms,
)
from cryptosense.market_data.clients import BinanceClient, FearGreedClient

logger = get_logger(__name__)

# Fear & greed history is refreshed at most hourly
FEAR_GREED_TTL_SECONDS = 3600


class MarketDataService:
    """In-memory cache of normalized market state"""

    def __init__(self, history: Optional[PriceHistory] = None,
                 fear_greed_client: Optional[FearGreedClient] = None,
                 max_liquidations: int = 100):
        """
        Args:
            history: shared price buffers; created when omitted
            fear_greed_client: source for multi-day sentiment history
            max_liquidations: recent liquidations kept for the derivatives view
        """
        self.history = history or PriceHistory()
        self.fear_greed_client = fear_greed_client

        self.prices: Dict[str, Dict[str, PriceUpdate]] = {}
        self.funding_rates: Dict[str, FundingRateUpdate] = {}
        self.open_interest: Dict[str, OpenInterestUpdate] = {}
        self.stablecoins: Dict[str, StablecoinUpdate] = {}
        self.liquidations: Deque[LiquidationEvent] = deque(maxlen=max_liquidations)
        self.sentiment: Optional[SentimentUpdate] = None
        self.correlation: Optional[CorrelationUpdate] = None

        self._fear_greed_cache: Dict[int, Tuple[float, List[Dict]]] = {}

    # ==================== Ingestion ====================

    def update(self, event: Any) -> None:
        """Record one normalized event"""
        if isinstance(event, PriceUpdate):
            self.prices.setdefault(event.source, {})[event.symbol] = event
            if event.source == "binance":
                self.history.add(event.symbol, event.price)
        elif isinstance(event, FundingRateUpdate):
            self.funding_rates[event.symbol] = event
        elif isinstance(event, OpenInterestUpdate):
            self.open_interest[event.symbol] = event
        elif isinstance(event, StablecoinUpdate):
            self.stablecoins[event.symbol] = event
        elif isinstance(event, LiquidationEvent):
            self.liquidations.appendleft(event)
        elif isinstance(event, SentimentUpdate):
            self.sentiment = event
        elif isinstance(event, CorrelationUpdate):
            self.correlation = event

    async def warm_up(self, client: BinanceClient, symbols: Sequence[str]) -> int:
        """Seed prices and funding rates over REST before the streams deliver

        Returns:
            Number of events recorded
        """
        events: List[Any] = []
        try:
            events.extend(await client.get_tickers(symbols))
            events.extend(await client.get_funding_rates(symbols))
        except (aiohttp.ClientError, asyncio.TimeoutError, FeedMessageError) as e:
            logger.warning("Market data warm-up failed", {"symbols": list(symbols)}, error=e)

        for event in events:
            self.update(event)
        return len(events)

    def latest_price(self, symbol: str) -> Optional[PriceUpdate]:
        for source in ("binance", "coinbase"):
            update = self.prices.get(source, {}).get(symbol.upper())
            if update is not None:
                return update
        return None

    # ==================== Views ====================

    async def snapshot(self) -> Dict[str, Any]:
        """Market snapshot sent to a realtime client on connect"""
        return {
            "prices": {
                source: [update.to_dict() for update in updates.values()]
                for source, updates in self.prices.items()
            },
            "fundingRates": [update.to_dict() for update in self.funding_rates.values()],
            "openInterest": [update.to_dict() for update in self.open_interest.values()],
            "stablecoins": {symbol: update.to_dict() for symbol, update in self.stablecoins.items()},
            "timestamp": now_ms(),
        }

    def market_overview(self) -> Dict[str, Any]:
        assets = {}
        for symbol in sorted({s for updates in self.prices.values() for s in updates}):
            update = self.latest_price(symbol)
            assets[symbol] = update.to_dict()
        return {
            "assets": assets,
            "sentiment": self.sentiment.to_dict() if self.sentiment else None,
            "timestamp": now_ms(),
        }

    def derivatives_overview(self) -> Dict[str, Any]:
        funding = {}
        for symbol, update in self.funding_rates.items():
            funding[symbol] = {**update.to_dict(), "annualizedPercent": update.annualized_percent}

        long_value = sum(e.total_value for e in self.liquidations if e.side.value == "long")
        short_value = sum(e.total_value for e in self.liquidations if e.side.value == "short")
        return {
            "fundingRates": funding,
            "openInterest": {symbol: update.to_dict() for symbol, update in self.open_interest.items()},
            "liquidations": {
                "recent": [event.to_dict() for event in list(self.liquidations)[:20]],
                "longValue": long_value,
                "shortValue": short_value,
            },
            "timestamp": now_ms(),
        }

    def stablecoin_overview(self) -> Dict[str, Any]:
        return {
            "stablecoins": {symbol: update.to_dict() for symbol, update in self.stablecoins.items()},
            "timestamp": now_ms(),
        }

    def cross_asset_overview(self) -> Dict[str, Any]:
        return {
            "correlations": self.correlation.to_dict()["matrix"] if self.correlation else {},
            "assets": {
                symbol: {"price": update.price, "changePercent24h": update.change_percent_24h}
                for symbol, update in self.prices.get("binance", {}).items()
            },
            "lastUpdate": self.correlation.timestamp if self.correlation else None,
        }

    async def fear_greed(self, days: int = 1) -> Dict[str, Any]:
        """Current index plus ``days`` of history, cached for an hour"""
        cached = self._fear_greed_cache.get(days)
        if cached and time.monotonic() - cached[0] < FEAR_GREED_TTL_SECONDS:
            history = cached[1]
        elif self.fear_greed_client is not None:
            updates = await self.fear_greed_client.get_history(days)
            history = [update.to_dict() for update in updates]
            self._fear_greed_cache[days] = (time.monotonic(), history)
            if updates and (self.sentiment is None or updates[0].timestamp >= self.sentiment.timestamp):
                self.sentiment = updates[0]
        else:
            history = [self.sentiment.to_dict()] if self.sentiment else []

        return {
            "current": self.sentiment.to_dict() if self.sentiment else None,
            "history": history,
            "days": days,
        }
