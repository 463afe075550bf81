"""WebSocket stream feeds for Binance and Coinbase."""
import json
from typing import Any, List, Optional, Sequence

from .base import StreamFeed
from ..adapters.ws_adapter import WebSocketAdapter
from ..normalizer import DataNormalizer


def combined_stream_url(base_url: str, symbols: Sequence[str], stream: str) -> str:
    """``.../stream?streams=btcusdt@ticker/ethusdt@ticker``"""
    streams = "/".join(f"{symbol.lower()}usdt@{stream}" for symbol in symbols)
    return f"{base_url.rstrip('/')}?streams={streams}"


class BinanceTickerFeed(StreamFeed):
    """Spot 24h rolling ticker stream."""

    name = "binance:ticker"

    def __init__(self, base_url: str, symbols: Sequence[str],
                 normalizer: Optional[DataNormalizer] = None):
        super().__init__(combined_stream_url(base_url, symbols, "ticker"), normalizer)
        self.symbols = list(symbols)

    def parse(self, message: Any) -> List[Any]:
        return [self.normalizer.parse_binance_ticker(message)]


class BinanceFundingFeed(StreamFeed):
    """USD-M futures mark price stream carrying the funding rate."""

    name = "binance:funding"

    def __init__(self, base_url: str, symbols: Sequence[str],
                 normalizer: Optional[DataNormalizer] = None):
        super().__init__(combined_stream_url(base_url, symbols, "markPrice"), normalizer)
        self.symbols = list(symbols)

    def parse(self, message: Any) -> List[Any]:
        return [self.normalizer.parse_binance_mark_price(message)]


class BinanceLiquidationFeed(StreamFeed):
    """USD-M futures forced liquidation order stream."""

    name = "binance:liquidations"

    def __init__(self, base_url: str, symbols: Sequence[str],
                 normalizer: Optional[DataNormalizer] = None):
        super().__init__(combined_stream_url(base_url, symbols, "forceOrder"), normalizer)
        self.symbols = list(symbols)

    def parse(self, message: Any) -> List[Any]:
        return [self.normalizer.parse_binance_force_order(message)]


class CoinbaseTickerFeed(StreamFeed):
    """Coinbase Exchange ticker channel; subscribes after connecting."""

    name = "coinbase:ticker"

    def __init__(self, url: str, symbols: Sequence[str],
                 normalizer: Optional[DataNormalizer] = None):
        super().__init__(url, normalizer)
        self.product_ids = [f"{symbol.upper()}-USD" for symbol in symbols]

    async def on_open(self, adapter: WebSocketAdapter) -> None:
        await adapter.send(json.dumps({
            "type": "subscribe",
            "product_ids": self.product_ids,
            "channels": ["ticker"],
        }))

    def parse(self, message: Any) -> List[Any]:
        update = self.normalizer.parse_coinbase_ticker(message)
        return [update] if update is not None else []
