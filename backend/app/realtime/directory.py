# backend/app/realtime/directory.py
"""
Connection Directory.

Process-local registry of live connections, keyed by namespace. Closed
connections are never enumerated, so pushes to a client that went away
mid-handler become no-ops. There is no cross-process state here; see
``relay.py`` for multi-process delivery.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from ..core.constants import CHAT_NAMESPACE, NOTIFICATION_NAMESPACE
from ..monitoring.prometheus_metrics import prometheus_metrics
from .connection import Connection

logger = logging.getLogger(__name__)


class ConnectionDirectory:
    """Addresses live connections by namespace, user and room."""

    def __init__(self, namespaces: Iterable[str] = (CHAT_NAMESPACE, NOTIFICATION_NAMESPACE)):
        self._connections: Dict[str, Dict[str, Connection]] = {ns: {} for ns in namespaces}

    def _bucket(self, namespace: str) -> Dict[str, Connection]:
        return self._connections.setdefault(namespace, {})

    def _report(self, namespace: str) -> None:
        prometheus_metrics.set_ws_connections(namespace, self.count(namespace))

    def register(self, connection: Connection) -> None:
        self._bucket(connection.namespace)[connection.id] = connection
        self._report(connection.namespace)
        logger.debug(
            f"[DIRECTORY] Registered {connection.id}",
            extra={"connection_id": connection.id, "namespace": connection.namespace},
        )

    def unregister(self, connection: Connection) -> None:
        removed = self._bucket(connection.namespace).pop(connection.id, None)
        if removed is not None:
            self._report(connection.namespace)
            logger.debug(
                f"[DIRECTORY] Unregistered {connection.id}",
                extra={"connection_id": connection.id, "namespace": connection.namespace},
            )

    def get(self, namespace: str, connection_id: str) -> Optional[Connection]:
        connection = self._bucket(namespace).get(connection_id)
        if connection is None or connection.closed:
            return None
        return connection

    def list_connections(
        self, namespace: str, user_ids: Optional[Iterable[str]] = None
    ) -> List[Connection]:
        """
        Live connections in a namespace.

        Args:
            namespace: Namespace name
            user_ids: When given, only connections bound to one of these users;
                unbound connections are excluded

        Returns:
            List of open connections
        """
        live = [c for c in self._bucket(namespace).values() if not c.closed]
        if user_ids is None:
            return live
        wanted: Set[str] = set(user_ids)
        return [c for c in live if c.user_id is not None and c.user_id in wanted]

    def room_connections(self, namespace: str, room_id: str) -> List[Connection]:
        return [c for c in self.list_connections(namespace) if c.is_bound and c.in_room(room_id)]

    def user_ids_in_room(self, namespace: str, room_id: str) -> Set[str]:
        return {c.user_id for c in self.room_connections(namespace, room_id) if c.user_id}

    def count(self, namespace: str) -> int:
        return len(self.list_connections(namespace))

    async def emit_to_connections(
        self, connections: Iterable[Connection], event: str, data: Any
    ) -> int:
        """Send to each connection; returns how many sends succeeded."""
        targets = list(connections)
        if not targets:
            return 0
        results = await asyncio.gather(*(c.emit(event, data) for c in targets))
        return sum(1 for ok in results if ok)

    async def emit_to_users(
        self, namespace: str, user_ids: Iterable[str], event: str, data: Any
    ) -> int:
        return await self.emit_to_connections(
            self.list_connections(namespace, user_ids), event, data
        )

    async def emit_to_room(
        self,
        namespace: str,
        room_id: str,
        event: str,
        data: Any,
        exclude: Optional[str] = None,
    ) -> int:
        """
        Send to every connection joined to a room.

        Args:
            exclude: Connection id to skip
        """
        targets = [c for c in self.room_connections(namespace, room_id) if c.id != exclude]
        return await self.emit_to_connections(targets, event, data)

    async def close_user_connections(
        self, namespace: str, user_id: str, exclude: Optional[str] = None
    ) -> int:
        """
        Force-close every connection of a user in a namespace.

        Closed connections are unregistered first so nothing pushes to them
        while the close handshake is in flight.
        """
        targets = [c for c in self.list_connections(namespace, [user_id]) if c.id != exclude]
        for connection in targets:
            self.unregister(connection)
        for connection in targets:
            await connection.close(reason="Session closed")
        if targets:
            logger.info(
                f"[DIRECTORY] Closed {len(targets)} sibling connection(s) for {user_id}",
                extra={"user_id": user_id, "namespace": namespace},
            )
        return len(targets)
