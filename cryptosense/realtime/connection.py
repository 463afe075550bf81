"""Realtime client connection handles."""
import uuid
from abc import ABC, abstractmethod
from typing import Any

from starlette.websockets import WebSocket, WebSocketState


class Connection(ABC):
    """Opaque handle for one connected client."""

    def __init__(self, connection_id: str = None):
        self.id = connection_id or uuid.uuid4().hex

    @abstractmethod
    async def send(self, event: str, data: Any) -> None:
        """Deliver one ``{"event", "data"}`` frame."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


class WebSocketConnection(Connection):
    """Connection backed by a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket, connection_id: str = None):
        super().__init__(connection_id)
        self.websocket = websocket

    async def send(self, event: str, data: Any) -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            raise ConnectionError(f"WebSocket {self.id} is closed")
        await self.websocket.send_json({"event": event, "data": data})
