"""Upstream market-data collection, normalization and supervision."""
from .normalizer import DataNormalizer
from .hub import MarketEventHub

__all__ = [
    'DataNormalizer',
    'MarketEventHub',
]
