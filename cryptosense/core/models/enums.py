"""Core enumerations for the CryptoSense alerting backend."""
from enum import Enum


class AlertType(str, Enum):
    """Alert rule condition types."""
    PRICE_ABOVE = "price_above"
    PRICE_BELOW = "price_below"
    PRICE_CHANGE = "price_change"
    VOLUME_SPIKE = "volume_spike"
    FUNDING_RATE = "funding_rate"
    LIQUIDATION = "liquidation"
    SENTIMENT = "sentiment"
    ETF_FLOW = "etf_flow"
    CROSS_ASSET = "cross_asset"
    TECHNICAL_INDICATOR = "technical_indicator"


class AlertSeverity(str, Enum):
    """Alert severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationMethod(str, Enum):
    """Notification delivery channels."""
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"


class AlertStatus(str, Enum):
    """Alert history lifecycle status."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"


class DeliveryState(str, Enum):
    """Outcome of one channel delivery attempt."""
    SENT = "sent"
    FAILED = "failed"


class Comparison(str, Enum):
    """Comparison operator stored in rule conditions."""
    ABOVE = "above"
    BELOW = "below"
    EQUAL = "equal"


class LiquidationSide(str, Enum):
    """Side of the liquidated position."""
    LONG = "long"
    SHORT = "short"
