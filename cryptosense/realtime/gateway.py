"""Realtime gateway: per-connection protocol handling for ``/realtime``."""
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.data_models import now_ms
from . import topics
from .connection import Connection
from .registry import ConnectionRegistry
from .topics import TopicResolver

logger = get_logger(__name__)

SnapshotProvider = Callable[[], Awaitable[Dict[str, Any]]]


class RealtimeGateway:
    """Handles connect, client frames and disconnect for realtime clients.

    Client frames are JSON objects ``{"event": <name>, "data": <payload>}``;
    anything else is logged and ignored without closing the connection.
    """

    def __init__(self, registry: ConnectionRegistry, resolver: TopicResolver,
                 snapshot_provider: Optional[SnapshotProvider] = None):
        self.registry = registry
        self.resolver = resolver
        self.snapshot_provider = snapshot_provider

    async def handle_connect(self, connection: Connection) -> None:
        self.registry.register(connection)
        logger.info("Realtime client connected", {"connection_id": connection.id})

        await connection.send("connection:status", {
            "status": "connected",
            "clientId": connection.id,
            "timestamp": now_ms(),
        })
        await self.send_snapshot(connection)

    async def send_snapshot(self, connection: Connection) -> None:
        if self.snapshot_provider is None:
            return
        try:
            snapshot = await self.snapshot_provider()
        except Exception as e:
            logger.error("Failed to build market snapshot", {"connection_id": connection.id}, error=e)
            return
        await connection.send("market:snapshot", snapshot)

    def handle_disconnect(self, connection_id: str) -> None:
        topics_held = self.registry.disconnect(connection_id)
        logger.info("Realtime client disconnected", {
            "connection_id": connection_id,
            "topics": sorted(topics_held)
        })

    async def handle_message(self, connection: Connection, raw: Union[str, bytes, Dict]) -> None:
        frame = self._parse(connection, raw)
        if frame is None:
            return

        event = frame["event"]
        data = frame.get("data")

        if event == "ping":
            await connection.send("pong", {"timestamp": now_ms()})
        elif event.startswith("subscribe:"):
            await self.handle_subscribe(connection, event.split(":", 1)[1], data)
        elif event == "unsubscribe":
            await self.handle_unsubscribe(connection, data)
        else:
            logger.debug("Ignoring unknown realtime event", {
                "connection_id": connection.id,
                "event": event
            })

    def _parse(self, connection: Connection, raw: Union[str, bytes, Dict]) -> Optional[Dict]:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError:
                logger.warning("Ignoring malformed realtime frame", {"connection_id": connection.id})
                return None
        if not isinstance(raw, dict) or not isinstance(raw.get("event"), str):
            logger.warning("Ignoring realtime frame without event name", {"connection_id": connection.id})
            return None
        return raw

    async def handle_subscribe(self, connection: Connection, sub_type: str, data: Any) -> None:
        assets = self._asset_list(data)
        try:
            valid, resolved = self.resolver.resolve(sub_type, assets or [])
        except ValueError:
            logger.debug("Ignoring unknown subscription type", {
                "connection_id": connection.id,
                "type": sub_type
            })
            return
        if assets is None:
            logger.debug("Subscription assets are not a list", {"connection_id": connection.id})
            valid, resolved = [], []

        self.registry.subscribe(connection.id, resolved)
        logger.debug("Realtime client subscribed", {
            "connection_id": connection.id,
            "type": sub_type,
            "topics": resolved
        })

        await connection.send("subscription:confirmed", {
            "type": sub_type,
            "assets": valid,
            "topics": resolved,
        })

    async def handle_unsubscribe(self, connection: Connection, data: Any) -> None:
        if not isinstance(data, dict) or data.get("type") not in topics.SUBSCRIPTION_TYPES:
            logger.debug("Ignoring malformed unsubscribe", {"connection_id": connection.id})
            return

        sub_type = data["type"]
        assets = self._asset_list(data.get("assets"))
        if assets is None:
            valid, resolved = [], []
        else:
            valid, resolved = self.resolver.resolve(sub_type, assets)
        self.registry.unsubscribe(connection.id, resolved)

        await connection.send("unsubscribe:confirmed", {
            "type": sub_type,
            "assets": valid,
            "topics": resolved,
        })

    @staticmethod
    def _asset_list(data: Any) -> Optional[List]:
        """Requested assets; None when the payload is present but not a list."""
        if data is None:
            return []
        return data if isinstance(data, list) else None
