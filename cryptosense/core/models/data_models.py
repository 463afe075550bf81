"""Normalized market events and alerting value objects."""
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from .enums import LiquidationSide, NotificationMethod


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class PriceUpdate:
    """Spot ticker update for one asset."""
    symbol: str
    price: float
    change_24h: float
    change_percent_24h: float
    volume_24h: float
    high_24h: float
    low_24h: float
    timestamp: int
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "change24h": self.change_24h,
            "changePercent24h": self.change_percent_24h,
            "volume24h": self.volume_24h,
            "high24h": self.high_24h,
            "low24h": self.low_24h,
            "timestamp": self.timestamp,
            "source": self.source,
        }


@dataclass
class FundingRateUpdate:
    """Perpetual futures funding rate tick."""
    symbol: str
    funding_rate: float
    next_funding_time: int
    mark_price: float
    timestamp: int

    @property
    def annualized_percent(self) -> float:
        # Three funding windows per day.
        return self.funding_rate * 3 * 365 * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "fundingRate": self.funding_rate,
            "nextFundingTime": self.next_funding_time,
            "markPrice": self.mark_price,
            "timestamp": self.timestamp,
        }


@dataclass
class LiquidationEvent:
    """Forced liquidation order observed on a derivatives venue."""
    symbol: str
    side: LiquidationSide
    price: float
    quantity: float
    timestamp: int
    total_value: float = field(init=False)

    def __post_init__(self):
        self.total_value = self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "price": self.price,
            "quantity": self.quantity,
            "totalValue": self.total_value,
            "timestamp": self.timestamp,
        }


@dataclass
class SentimentUpdate:
    """Fear & greed index plus ETF flow figures."""
    fear_greed_index: int
    fear_greed_classification: str
    timestamp: int
    etf_net_flow: float = 0.0
    etf_cumulative_flow: Dict[str, float] = field(
        default_factory=lambda: {"7d": 0.0, "30d": 0.0, "total": 0.0}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fearGreedIndex": self.fear_greed_index,
            "fearGreedClassification": self.fear_greed_classification,
            "etfNetFlow": self.etf_net_flow,
            "etfCumulativeFlow": dict(self.etf_cumulative_flow),
            "timestamp": self.timestamp,
        }


@dataclass
class StablecoinUpdate:
    """Peg health of a stablecoin."""
    symbol: str
    price: float
    deviation: float
    volume_24h: float
    liquidity: float
    spread: float
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "deviation": self.deviation,
            "volume24h": self.volume_24h,
            "liquidity": self.liquidity,
            "spread": self.spread,
            "timestamp": self.timestamp,
        }


@dataclass
class OpenInterestUpdate:
    """Open interest snapshot for a perpetual contract."""
    symbol: str
    open_interest: float
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "openInterest": self.open_interest,
            "timestamp": self.timestamp,
        }


@dataclass
class CorrelationUpdate:
    """Pairwise correlation matrix across tracked assets."""
    matrix: Dict[str, Dict[str, float]]
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matrix": {k: dict(v) for k, v in self.matrix.items()},
            "timestamp": self.timestamp,
        }


@dataclass
class MarketObservation:
    """Freshly observed value an alert rule is evaluated against."""
    symbol: str
    current_value: float
    percentage: Optional[float] = None
    price_change: Optional[float] = None
    volume: Optional[float] = None
    indicator: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryResult:
    """Outcome of one notification channel attempt."""
    success: bool
    method: NotificationMethod
    delivered_at: Optional[datetime] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
