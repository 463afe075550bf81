"""Upstream market-data feeds."""
from .base import Feed, StreamFeed, PollingFeed, Publish
from .streams import (
    BinanceTickerFeed,
    BinanceFundingFeed,
    BinanceLiquidationFeed,
    CoinbaseTickerFeed,
    combined_stream_url,
)
from .polling import (
    StablecoinFeed,
    OpenInterestFeed,
    FearGreedFeed,
    CorrelationFeed,
    correlation_matrix,
)

__all__ = [
    "Feed",
    "StreamFeed",
    "PollingFeed",
    "Publish",
    "BinanceTickerFeed",
    "BinanceFundingFeed",
    "BinanceLiquidationFeed",
    "CoinbaseTickerFeed",
    "combined_stream_url",
    "StablecoinFeed",
    "OpenInterestFeed",
    "FearGreedFeed",
    "CorrelationFeed",
    "correlation_matrix",
]
