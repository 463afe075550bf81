"""Request-scoped access to the services held on ``app.state``."""
from fastapi import Request

from cryptosense.market_data.supervisor import FeedSupervisor
from cryptosense.notifications.dispatcher import NotificationDispatcher
from cryptosense.realtime.registry import ConnectionRegistry
from cryptosense.services.market_data_service import MarketDataService


def get_market_data(request: Request) -> MarketDataService:
    return request.app.state.market_data


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_supervisor(request: Request) -> FeedSupervisor:
    return request.app.state.supervisor
