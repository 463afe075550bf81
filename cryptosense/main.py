"""FastAPI application entry point for CryptoSense"""
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cryptosense.alerts.monitor import AlertMonitor
from cryptosense.core.config import load_config
from cryptosense.core.exceptions import PersistenceError
from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.config_schema import AppConfig
from cryptosense.database import RuleStore, close_db, create_engine, create_session_factory, init_db
from cryptosense.market_data.clients import BinanceClient, FearGreedClient
from cryptosense.market_data.feeds import (
    BinanceFundingFeed,
    BinanceLiquidationFeed,
    BinanceTickerFeed,
    CoinbaseTickerFeed,
    CorrelationFeed,
    FearGreedFeed,
    Feed,
    OpenInterestFeed,
    StablecoinFeed,
)
from cryptosense.market_data.hub import MarketEventHub
from cryptosense.market_data.supervisor import FeedSupervisor
from cryptosense.middleware.request_id import RequestIDMiddleware
from cryptosense.notifications import AlertRetentionSweeper, NotificationDispatcher, build_channels
from cryptosense.realtime import BroadcastRouter, ConnectionRegistry, RealtimeGateway, TopicResolver
from cryptosense.routers import alerts, market_data, realtime
from cryptosense.services.market_data_service import MarketDataService

logger = get_logger(__name__)

VERSION = "1.0.0"


def build_feeds(config: AppConfig, binance: BinanceClient, fear_greed: FearGreedClient,
                market: MarketDataService) -> List[Feed]:
    """Upstream feeds for the configured assets."""
    feeds_config = config.feeds
    symbols = config.realtime.price_symbols

    feeds: List[Feed] = [
        BinanceTickerFeed(feeds_config.binance_ws_url, symbols),
        BinanceFundingFeed(feeds_config.binance_futures_ws_url, symbols),
        BinanceLiquidationFeed(feeds_config.binance_futures_ws_url, symbols),
        StablecoinFeed(binance, config.realtime.stablecoins, feeds_config.stablecoin_poll_seconds),
        OpenInterestFeed(binance, symbols, feeds_config.open_interest_poll_seconds),
        FearGreedFeed(fear_greed, feeds_config.sentiment_poll_seconds),
        CorrelationFeed(market.history, symbols, feeds_config.correlation_interval_seconds),
    ]
    if feeds_config.coinbase_enabled:
        feeds.append(CoinbaseTickerFeed(feeds_config.coinbase_ws_url, symbols))
    return feeds


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the application; services are wired in the lifespan."""
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting CryptoSense backend", {"environment": config.environment})

        engine = create_engine(config.database.url, echo=config.database.echo)
        await init_db(engine)
        store = RuleStore(create_session_factory(engine))

        dispatcher = NotificationDispatcher(store, build_channels(config.notifications))
        sweeper = AlertRetentionSweeper(
            dispatcher,
            retention_days=config.alerts.retention_days,
            interval_seconds=config.alerts.sweep_interval_seconds
        )

        binance = BinanceClient(
            config.feeds.binance_rest_url,
            config.feeds.binance_futures_rest_url,
            timeout=config.feeds.request_timeout
        )
        fear_greed = FearGreedClient(config.feeds.fear_greed_url, timeout=config.feeds.request_timeout)
        market = MarketDataService(fear_greed_client=fear_greed)

        registry = ConnectionRegistry()
        broadcast = BroadcastRouter(
            registry,
            config.realtime.large_liquidation_threshold,
            send_timeout=config.realtime.send_timeout_seconds
        )
        gateway = RealtimeGateway(
            registry,
            TopicResolver(config.realtime.price_symbols, config.realtime.stablecoins),
            snapshot_provider=market.snapshot
        )
        monitor = AlertMonitor(store, dispatcher, history=market.history)

        hub = MarketEventHub()
        hub.subscribe(market.update)
        hub.subscribe(monitor.on_event)
        hub.subscribe(broadcast.route)

        supervisor = FeedSupervisor(hub.publish, reconnect_delay=config.feeds.reconnect_delay_seconds)
        if config.feeds.enabled:
            await market.warm_up(binance, config.realtime.price_symbols)
            for feed in build_feeds(config, binance, fear_greed, market):
                supervisor.add(feed)

        app.state.config = config
        app.state.store = store
        app.state.dispatcher = dispatcher
        app.state.market_data = market
        app.state.registry = registry
        app.state.router = broadcast
        app.state.gateway = gateway
        app.state.hub = hub
        app.state.monitor = monitor
        app.state.supervisor = supervisor

        monitor.start()
        sweeper.start()
        supervisor.start()
        logger.info("CryptoSense backend ready", {"feeds": len(supervisor.feeds)})

        yield

        logger.info("Shutting down CryptoSense backend")
        await supervisor.stop()
        await monitor.stop()
        await sweeper.stop()
        await dispatcher.close()
        await binance.close()
        await fear_greed.close()
        await close_db(engine)
        logger.info("Database connections closed")

    app = FastAPI(
        title="CryptoSense",
        description="Crypto market dashboard backend with realtime alerts",
        version=VERSION,
        lifespan=lifespan,
        docs_url=f"{config.api.prefix}/docs",
        openapi_url=f"{config.api.prefix}/openapi.json"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error("Request failed on persistence", {"path": request.url.path}, error=exc)
        return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})

    app.include_router(market_data.router, prefix=config.api.prefix)
    app.include_router(alerts.router, prefix=config.api.prefix)
    app.include_router(realtime.router)

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "status": "online",
            "service": "CryptoSense",
            "version": VERSION,
            "docs": f"{config.api.prefix}/docs"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.config if hasattr(app.state, "config") else load_config()
    uvicorn.run(
        "cryptosense.main:app",
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower()
    )
