"""Application services."""
from .market_data_service import MarketDataService

__all__ = ["MarketDataService"]
