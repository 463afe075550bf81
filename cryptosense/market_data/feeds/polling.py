"""Polled feeds: stablecoin pegs, open interest, fear & greed, correlations."""
import asyncio
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import numpy as np

from .base import PollingFeed
from ..clients import BinanceClient, FearGreedClient, quote_pair
from ...alerts.indicators import PriceHistory
from ...core.exceptions import FeedMessageError
from ...core.logging.structured_logger import get_logger
from ...core.models.data_models import CorrelationUpdate, now_ms

logger = get_logger(__name__)

# USDT is the quote asset everywhere else, so its peg is read against DAI
STABLECOIN_PAIRS = {"USDT": "USDTDAI"}

UPSTREAM_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, FeedMessageError)


class StablecoinFeed(PollingFeed):
    name = "binance:stablecoins"

    def __init__(self, client: BinanceClient, stablecoins: Sequence[str], interval_seconds: float = 30):
        super().__init__(interval_seconds, client.normalizer)
        self.client = client
        self.stablecoins = [s.upper() for s in stablecoins]

    async def poll(self) -> List[Any]:
        updates = []
        for symbol in self.stablecoins:
            pair = STABLECOIN_PAIRS.get(symbol, quote_pair(symbol))
            try:
                ticker = await self.client.get_24h_ticker(pair)
                updates.append(self.normalizer.parse_stablecoin(symbol, ticker))
            except UPSTREAM_ERRORS as e:
                logger.warning(f"Failed to get stablecoin data for {symbol}", {"pair": pair}, error=e)
        return updates


class OpenInterestFeed(PollingFeed):
    name = "binance:open_interest"

    def __init__(self, client: BinanceClient, symbols: Sequence[str], interval_seconds: float = 60):
        super().__init__(interval_seconds, client.normalizer)
        self.client = client
        self.symbols = [s.upper() for s in symbols]

    async def poll(self) -> List[Any]:
        updates = []
        for symbol in self.symbols:
            try:
                updates.append(await self.client.get_open_interest(symbol))
            except UPSTREAM_ERRORS as e:
                logger.warning(f"Failed to get open interest for {symbol}", error=e)
        return updates


class FearGreedFeed(PollingFeed):
    name = "alternative:fear_greed"

    def __init__(self, client: FearGreedClient, interval_seconds: float = 3600):
        super().__init__(interval_seconds, client.normalizer)
        self.client = client

    async def poll(self) -> List[Any]:
        return [await self.client.get_current()]


def correlation_matrix(history: PriceHistory, symbols: Sequence[str],
                       min_points: int = 10) -> Dict[str, Dict[str, float]]:
    """Pearson correlation of tick-to-tick returns for every symbol pair.

    The diagonal is 1.0; pairs without ``min_points`` aligned prices, or
    with a flat series, fall back to 0.5.
    """
    matrix: Dict[str, Dict[str, float]] = {}
    for asset in symbols:
        matrix[asset] = {}
        for other in symbols:
            if asset == other:
                matrix[asset][other] = 1.0
                continue

            a = history.prices(asset)
            b = history.prices(other)
            n = min(len(a), len(b))
            if n < min_points:
                matrix[asset][other] = 0.5
                continue

            returns_a = np.diff(a[-n:]) / a[-n:-1]
            returns_b = np.diff(b[-n:]) / b[-n:-1]
            if np.std(returns_a) == 0 or np.std(returns_b) == 0:
                matrix[asset][other] = 0.5
                continue

            value = float(np.corrcoef(returns_a, returns_b)[0, 1])
            matrix[asset][other] = round(value, 4) if np.isfinite(value) else 0.5
    return matrix


class CorrelationFeed(PollingFeed):
    """Recomputes the correlation matrix from buffered prices."""

    name = "correlations"

    def __init__(self, history: PriceHistory, symbols: Sequence[str],
                 interval_seconds: float = 300, min_points: int = 10):
        super().__init__(interval_seconds)
        self.history = history
        self.symbols = [s.upper() for s in symbols]
        self.min_points = min_points

    async def poll(self) -> List[Any]:
        return [CorrelationUpdate(
            matrix=correlation_matrix(self.history, self.symbols, self.min_points),
            timestamp=now_ms(),
        )]
