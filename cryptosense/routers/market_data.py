"""
Market Data API Router
Read-only views over the cached market state
"""
import asyncio

import aiohttp
from fastapi import APIRouter, Depends, HTTPException, Query

from cryptosense.core.exceptions import FeedMessageError
from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.data_models import now_ms
from cryptosense.market_data.supervisor import FeedSupervisor
from cryptosense.realtime.registry import ConnectionRegistry
from cryptosense.services.market_data_service import MarketDataService
from .dependencies import get_market_data, get_registry, get_supervisor

logger = get_logger(__name__)

router = APIRouter(tags=["Market Data"])


@router.get("/market/overview")
async def market_overview(market: MarketDataService = Depends(get_market_data)):
    """Latest spot prices per asset plus current sentiment."""
    return market.market_overview()


@router.get("/derivatives/overview")
async def derivatives_overview(market: MarketDataService = Depends(get_market_data)):
    """Funding rates, open interest and recent liquidations."""
    return market.derivatives_overview()


@router.get("/stablecoins/overview")
async def stablecoins_overview(market: MarketDataService = Depends(get_market_data)):
    return market.stablecoin_overview()


@router.get("/sentiment/fear-greed")
async def fear_greed(
    days: int = Query(1, ge=1, le=365, description="Days of history"),
    market: MarketDataService = Depends(get_market_data)
):
    """Fear & greed index history."""
    try:
        return await market.fear_greed(days)
    except (aiohttp.ClientError, asyncio.TimeoutError, FeedMessageError) as e:
        logger.warning("Fear & greed upstream unavailable", {"days": days}, error=e)
        raise HTTPException(status_code=503, detail="Fear & greed data unavailable")


@router.get("/cross-asset/overview")
async def cross_asset_overview(market: MarketDataService = Depends(get_market_data)):
    """Latest correlation matrix across tracked assets."""
    return market.cross_asset_overview()


@router.get("/health", tags=["Health"])
async def health_check(
    registry: ConnectionRegistry = Depends(get_registry),
    supervisor: FeedSupervisor = Depends(get_supervisor)
):
    """Service health with realtime connection and feed status."""
    return {
        "status": "healthy",
        "timestamp": now_ms(),
        "realtime": registry.stats(),
        "feeds": supervisor.stats(),
    }
