"""WebSocket endpoint for the realtime channel."""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.realtime.connection import WebSocketConnection

logger = get_logger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/realtime")
async def realtime(websocket: WebSocket):
    """Realtime market stream; frames are ``{"event", "data"}`` JSON objects."""
    gateway = websocket.app.state.gateway
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    try:
        await gateway.handle_connect(connection)
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                logger.warning("Ignoring non-text realtime frame", {"connection_id": connection.id})
                continue
            await gateway.handle_message(connection, text)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.handle_disconnect(connection.id)
