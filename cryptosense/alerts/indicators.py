"""Technical indicators evaluated by technical_indicator alert rules."""
from collections import deque
from typing import Deque, Dict, Iterable, Optional

import numpy as np


def _rsi_value(up: float, down: float) -> float:
    if down == 0:
        return 100.0
    return 100. - 100. / (1. + up / down)


def calculate_rsi(prices: np.ndarray, period: int = 14) -> np.ndarray:
    """Calculate Relative Strength Index (Wilder smoothing).

    The first ``period`` deltas seed the averages; values up to index
    ``period`` repeat the seed RSI.
    """
    deltas = np.diff(prices)
    seed = deltas[:period]
    up = seed[seed >= 0].sum() / period
    down = -seed[seed < 0].sum() / period

    rsi = np.zeros(len(prices), dtype=float)
    rsi[:period + 1] = _rsi_value(up, down)

    for i in range(period + 1, len(prices)):
        delta = deltas[i - 1]
        upval = max(delta, 0.)
        downval = max(-delta, 0.)

        up = (up * (period - 1) + upval) / period
        down = (down * (period - 1) + downval) / period
        rsi[i] = _rsi_value(up, down)

    return rsi


def calculate_sma(values: np.ndarray, period: int) -> np.ndarray:
    """Calculate Simple Moving Average."""
    if len(values) < period:
        return np.array([np.mean(values)])
    return np.convolve(values, np.ones(period) / period, mode="valid")


class PriceHistory:
    """Bounded per-symbol price buffers feeding indicator calculations."""

    def __init__(self, max_length: int = 200):
        self.max_length = max_length
        self._prices: Dict[str, Deque[float]] = {}

    def add(self, symbol: str, price: float) -> None:
        self._prices.setdefault(symbol, deque(maxlen=self.max_length)).append(float(price))

    def extend(self, symbol: str, prices: Iterable[float]) -> None:
        for price in prices:
            self.add(symbol, price)

    def prices(self, symbol: str) -> np.ndarray:
        return np.array(self._prices.get(symbol, ()), dtype=float)

    def rsi(self, symbol: str, period: int = 14) -> Optional[float]:
        """Latest RSI value, or None until ``period + 1`` prices are buffered."""
        prices = self.prices(symbol)
        if len(prices) <= period:
            return None
        return float(calculate_rsi(prices, period)[-1])

    def sma(self, symbol: str, period: int = 20) -> Optional[float]:
        prices = self.prices(symbol)
        if len(prices) == 0:
            return None
        return float(calculate_sma(prices, period)[-1])
