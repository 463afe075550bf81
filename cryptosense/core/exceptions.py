"""Exception hierarchy for CryptoSense."""


class CryptoSenseError(Exception):
    """Base class for all application errors."""


class ConfigValidationError(CryptoSenseError):
    """Raised when configuration is invalid."""


class PersistenceError(CryptoSenseError):
    """Raised when the rule or history store cannot complete an operation."""


class ChannelConfigurationError(CryptoSenseError):
    """Raised inside a channel adapter when no destination is configured."""


class DeliveryError(CryptoSenseError):
    """Raised inside a channel adapter when the transport rejects a message."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class FeedMessageError(CryptoSenseError):
    """Raised when an upstream feed message cannot be parsed."""
