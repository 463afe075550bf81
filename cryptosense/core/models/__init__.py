"""Core models module for CryptoSense."""

from .enums import (
    AlertType,
    AlertSeverity,
    NotificationMethod,
    AlertStatus,
    DeliveryState,
    Comparison,
    LiquidationSide,
)

from .data_models import (
    now_ms,
    PriceUpdate,
    FundingRateUpdate,
    LiquidationEvent,
    SentimentUpdate,
    StablecoinUpdate,
    OpenInterestUpdate,
    CorrelationUpdate,
    MarketObservation,
    DeliveryResult,
)

from .config_schema import (
    ApiConfig,
    DatabaseConfig,
    RealtimeConfig,
    FeedsConfig,
    AlertsConfig,
    EmailConfig,
    SmsConfig,
    PushConfig,
    WebhookConfig,
    NotificationsConfig,
    AppConfig,
)

__all__ = [
    # Enums
    "AlertType",
    "AlertSeverity",
    "NotificationMethod",
    "AlertStatus",
    "DeliveryState",
    "Comparison",
    "LiquidationSide",
    # Data Models
    "now_ms",
    "PriceUpdate",
    "FundingRateUpdate",
    "LiquidationEvent",
    "SentimentUpdate",
    "StablecoinUpdate",
    "OpenInterestUpdate",
    "CorrelationUpdate",
    "MarketObservation",
    "DeliveryResult",
    # Config Schemas
    "ApiConfig",
    "DatabaseConfig",
    "RealtimeConfig",
    "FeedsConfig",
    "AlertsConfig",
    "EmailConfig",
    "SmsConfig",
    "PushConfig",
    "WebhookConfig",
    "NotificationsConfig",
    "AppConfig",
]
