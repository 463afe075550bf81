"""WebSocket realtime fan-out layer."""
from .connection import Connection, WebSocketConnection
from .registry import ConnectionRegistry
from .router import BroadcastRouter
from .gateway import RealtimeGateway
from .topics import TopicResolver

__all__ = [
    "Connection",
    "WebSocketConnection",
    "ConnectionRegistry",
    "BroadcastRouter",
    "RealtimeGateway",
    "TopicResolver",
]
