"""API routers."""
from . import alerts, market_data, realtime

__all__ = ["alerts", "market_data", "realtime"]
