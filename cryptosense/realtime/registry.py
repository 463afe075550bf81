"""
Connection Registry

Tracks connected realtime clients with two indices kept consistent by a
single mutating API (register/subscribe/unsubscribe/disconnect):
- connection id -> subscribed topic keys
- topic key -> connection ids (rooms)

All methods are synchronous, so each call is atomic on the event loop.
"""

from typing import Dict, Iterable, List, Optional, Set

from cryptosense.core.logging.structured_logger import get_logger
from .connection import Connection

logger = get_logger(__name__)


class ConnectionRegistry:
    """Owned registry of live connections and their rooms"""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._topics_by_conn: Dict[str, Set[str]] = {}
        self._conns_by_topic: Dict[str, Set[str]] = {}

    def register(self, connection: Connection) -> None:
        """Add a connection with an empty subscription set"""
        self._connections[connection.id] = connection
        self._topics_by_conn.setdefault(connection.id, set())

    def subscribe(self, connection_id: str, topics: Iterable[str]) -> List[str]:
        """Join rooms; returns the topics that were newly joined"""
        if connection_id not in self._connections:
            return []

        current = self._topics_by_conn[connection_id]
        added = []
        for topic in topics:
            if topic in current:
                continue
            current.add(topic)
            self._conns_by_topic.setdefault(topic, set()).add(connection_id)
            added.append(topic)
        return added

    def unsubscribe(self, connection_id: str, topics: Iterable[str]) -> List[str]:
        """Leave rooms; returns the topics that were actually left"""
        current = self._topics_by_conn.get(connection_id)
        if current is None:
            return []

        removed = []
        for topic in topics:
            if topic not in current:
                continue
            current.discard(topic)
            self._leave_room(topic, connection_id)
            removed.append(topic)
        return removed

    def disconnect(self, connection_id: str) -> Set[str]:
        """Drop a connection and every room membership it held"""
        self._connections.pop(connection_id, None)
        topics = self._topics_by_conn.pop(connection_id, set())
        for topic in topics:
            self._leave_room(topic, connection_id)
        return topics

    def _leave_room(self, topic: str, connection_id: str) -> None:
        members = self._conns_by_topic.get(topic)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._conns_by_topic[topic]

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def topics_for(self, connection_id: str) -> Set[str]:
        return set(self._topics_by_conn.get(connection_id, ()))

    def subscribers(self, topics: Iterable[str]) -> List[Connection]:
        """Union of room members across ``topics``, each connection once"""
        seen: Set[str] = set()
        result = []
        for topic in topics:
            for connection_id in self._conns_by_topic.get(topic, ()):
                if connection_id in seen:
                    continue
                seen.add(connection_id)
                connection = self._connections.get(connection_id)
                if connection is not None:
                    result.append(connection)
        return result

    def all_connections(self) -> List[Connection]:
        return list(self._connections.values())

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def stats(self) -> Dict:
        return {
            "connections": len(self._connections),
            "topics": {topic: len(members) for topic, members in sorted(self._conns_by_topic.items())},
        }
