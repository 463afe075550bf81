"""Normalization of upstream exchange payloads into market events."""
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.exceptions import FeedMessageError
from ..core.logging.structured_logger import get_logger
from ..core.models.data_models import (
    FundingRateUpdate,
    LiquidationEvent,
    OpenInterestUpdate,
    PriceUpdate,
    SentimentUpdate,
    StablecoinUpdate,
    now_ms,
)
from ..core.models.enums import LiquidationSide

QUOTE_SUFFIXES = ("USDT", "BUSD", "USDC", "USD")


class DataNormalizer:
    """Turns Binance, Coinbase and alternative.me payloads into events.

    Every ``parse_*`` method raises ``FeedMessageError`` when the payload is
    missing fields or carries non-numeric values.
    """

    def __init__(self):
        self.logger = get_logger(__name__)

    @staticmethod
    def base_asset(symbol: str) -> str:
        """BTCUSDT / BTC-USD / btcusdt -> BTC."""
        symbol = symbol.upper()
        if '-' in symbol:
            return symbol.split('-', 1)[0]
        for suffix in QUOTE_SUFFIXES:
            if symbol.endswith(suffix) and len(symbol) > len(suffix):
                return symbol[:-len(suffix)]
        return symbol

    @staticmethod
    def _unwrap(message: Dict[str, Any]) -> Dict[str, Any]:
        # Combined streams wrap each payload as {"stream": ..., "data": ...}
        if isinstance(message, dict) and "data" in message and "stream" in message:
            return message["data"]
        return message

    def parse_binance_ticker(self, message: Dict[str, Any]) -> PriceUpdate:
        data = self._unwrap(message)
        try:
            return PriceUpdate(
                symbol=self.base_asset(data["s"]),
                price=float(data["c"]),
                change_24h=float(data["p"]),
                change_percent_24h=float(data["P"]),
                volume_24h=float(data["v"]),
                high_24h=float(data["h"]),
                low_24h=float(data["l"]),
                timestamp=int(data.get("E") or now_ms()),
                source="binance",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FeedMessageError(f"Invalid Binance ticker payload: {e}") from e

    def parse_binance_mark_price(self, message: Dict[str, Any]) -> FundingRateUpdate:
        data = self._unwrap(message)
        try:
            return FundingRateUpdate(
                symbol=self.base_asset(data["s"]),
                funding_rate=float(data["r"]),
                next_funding_time=int(data["T"]),
                mark_price=float(data["p"]),
                timestamp=int(data.get("E") or now_ms()),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FeedMessageError(f"Invalid Binance mark price payload: {e}") from e

    def parse_binance_force_order(self, message: Dict[str, Any]) -> LiquidationEvent:
        data = self._unwrap(message)
        try:
            order = data["o"]
            side = LiquidationSide.LONG if order["S"].upper() == "BUY" else LiquidationSide.SHORT
            return LiquidationEvent(
                symbol=self.base_asset(order["s"]),
                side=side,
                price=float(order["p"]),
                quantity=float(order["q"]),
                timestamp=int(order.get("T") or now_ms()),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise FeedMessageError(f"Invalid Binance force order payload: {e}") from e

    def parse_binance_rest_ticker(self, ticker: Dict[str, Any]) -> PriceUpdate:
        """REST ``/api/v3/ticker/24hr`` entry."""
        try:
            return PriceUpdate(
                symbol=self.base_asset(ticker["symbol"]),
                price=float(ticker["lastPrice"]),
                change_24h=float(ticker["priceChange"]),
                change_percent_24h=float(ticker["priceChangePercent"]),
                volume_24h=float(ticker["volume"]),
                high_24h=float(ticker["highPrice"]),
                low_24h=float(ticker["lowPrice"]),
                timestamp=int(ticker.get("closeTime") or now_ms()),
                source="binance",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FeedMessageError(f"Invalid Binance REST ticker: {e}") from e

    def parse_coinbase_ticker(self, message: Dict[str, Any]) -> Optional[PriceUpdate]:
        """Ticker channel message; None for subscription acks and heartbeats."""
        if not isinstance(message, dict) or message.get("type") != "ticker":
            return None
        try:
            price = float(message["price"])
            open_24h = float(message.get("open_24h") or price)
            change = price - open_24h
            timestamp = now_ms()
            if message.get("time"):
                parsed = datetime.fromisoformat(message["time"].replace("Z", "+00:00"))
                timestamp = int(parsed.timestamp() * 1000)
            return PriceUpdate(
                symbol=self.base_asset(message["product_id"]),
                price=price,
                change_24h=change,
                change_percent_24h=(change / open_24h * 100) if open_24h else 0.0,
                volume_24h=float(message.get("volume_24h") or 0),
                high_24h=float(message.get("high_24h") or price),
                low_24h=float(message.get("low_24h") or price),
                timestamp=timestamp,
                source="coinbase",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FeedMessageError(f"Invalid Coinbase ticker payload: {e}") from e

    def parse_stablecoin(self, symbol: str, ticker: Dict[str, Any]) -> StablecoinUpdate:
        """Peg health from a 24h ticker that carries best bid/ask."""
        try:
            price = float(ticker["lastPrice"])
            bid = float(ticker["bidPrice"])
            ask = float(ticker["askPrice"])
            return StablecoinUpdate(
                symbol=symbol.upper(),
                price=price,
                deviation=(price - 1.0) * 100,
                volume_24h=float(ticker.get("volume") or 0),
                liquidity=float(ticker.get("bidQty") or 0) + float(ticker.get("askQty") or 0),
                spread=((ask - bid) / bid) * 100 if bid else 0.0,
                timestamp=int(ticker.get("closeTime") or now_ms()),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FeedMessageError(f"Invalid stablecoin ticker for {symbol}: {e}") from e

    def parse_open_interest(self, data: Dict[str, Any]) -> OpenInterestUpdate:
        try:
            return OpenInterestUpdate(
                symbol=self.base_asset(data["symbol"]),
                open_interest=float(data["openInterest"]),
                timestamp=int(data.get("time") or now_ms()),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FeedMessageError(f"Invalid open interest payload: {e}") from e

    def parse_fear_greed(self, entry: Dict[str, Any]) -> SentimentUpdate:
        """alternative.me ``/fng/`` entry; timestamps arrive in seconds."""
        try:
            return SentimentUpdate(
                fear_greed_index=int(entry["value"]),
                fear_greed_classification=entry["value_classification"],
                timestamp=int(entry["timestamp"]) * 1000,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FeedMessageError(f"Invalid fear & greed entry: {e}") from e
