"""
Core module for CryptoSense.

Exports:
- config: configuration manager and loader
- exceptions: error hierarchy
- logging: structured JSON logger
"""

from .config import ConfigManager, load_config
from .exceptions import (
    CryptoSenseError,
    ConfigValidationError,
    PersistenceError,
    ChannelConfigurationError,
    DeliveryError,
    FeedMessageError,
)
from .logging.structured_logger import get_logger

__all__ = [
    "ConfigManager",
    "load_config",
    "CryptoSenseError",
    "ConfigValidationError",
    "PersistenceError",
    "ChannelConfigurationError",
    "DeliveryError",
    "FeedMessageError",
    "get_logger",
]
