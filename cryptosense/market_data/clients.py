"""REST clients for the market-data providers."""
import json
from typing import Any, Dict, List, Sequence

from .adapters.http_adapter import HTTPAdapter
from .normalizer import DataNormalizer
from ..core.exceptions import FeedMessageError
from ..core.models.data_models import (
    FundingRateUpdate,
    OpenInterestUpdate,
    PriceUpdate,
    SentimentUpdate,
)


def quote_pair(symbol: str, quote: str = "USDT") -> str:
    return f"{symbol.upper()}{quote}"


class BinanceClient:
    """Binance spot and USD-M futures REST endpoints."""

    def __init__(self, spot_url: str = "https://api.binance.com",
                 futures_url: str = "https://fapi.binance.com",
                 timeout: int = 30):
        self.spot = HTTPAdapter(spot_url, timeout=timeout)
        self.futures = HTTPAdapter(futures_url, timeout=timeout)
        self.normalizer = DataNormalizer()

    async def get_24h_ticker(self, pair: str) -> Dict[str, Any]:
        return await self.spot.get("/api/v3/ticker/24hr", params={"symbol": pair})

    async def get_tickers(self, symbols: Sequence[str]) -> List[PriceUpdate]:
        pairs = json.dumps([quote_pair(s) for s in symbols], separators=(",", ":"))
        data = await self.spot.get("/api/v3/ticker/24hr", params={"symbols": pairs})
        return [self.normalizer.parse_binance_rest_ticker(entry) for entry in data]

    async def get_funding_rates(self, symbols: Sequence[str]) -> List[FundingRateUpdate]:
        updates = []
        for symbol in symbols:
            entry = await self.futures.get("/fapi/v1/premiumIndex", params={"symbol": quote_pair(symbol)})
            try:
                message = {
                    "s": entry["symbol"],
                    "r": entry["lastFundingRate"],
                    "T": entry["nextFundingTime"],
                    "p": entry["markPrice"],
                    "E": entry.get("time"),
                }
            except (KeyError, TypeError) as e:
                raise FeedMessageError(f"Invalid premium index for {symbol}: {e}") from e
            updates.append(self.normalizer.parse_binance_mark_price(message))
        return updates

    async def get_open_interest(self, symbol: str) -> OpenInterestUpdate:
        data = await self.futures.get("/fapi/v1/openInterest", params={"symbol": quote_pair(symbol)})
        return self.normalizer.parse_open_interest(data)

    async def close(self) -> None:
        await self.spot.close()
        await self.futures.close()


class FearGreedClient:
    """alternative.me Fear & Greed index."""

    def __init__(self, base_url: str = "https://api.alternative.me", timeout: int = 30):
        self.http = HTTPAdapter(base_url, timeout=timeout)
        self.normalizer = DataNormalizer()

    async def get_history(self, days: int = 1) -> List[SentimentUpdate]:
        """Most recent ``days`` readings, newest first."""
        data = await self.http.get("/fng/", params={"limit": str(days)})
        if isinstance(data, str):
            # Served as text/html on some edges
            try:
                data = json.loads(data)
            except ValueError as e:
                raise FeedMessageError(f"Invalid fear & greed response: {e}") from e
        return [self.normalizer.parse_fear_greed(entry) for entry in data.get("data", [])]

    async def get_current(self) -> SentimentUpdate:
        history = await self.get_history(1)
        if not history:
            raise FeedMessageError("Fear & greed response contained no readings")
        return history[0]

    async def close(self) -> None:
        await self.http.close()
