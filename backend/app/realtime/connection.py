# backend/app/realtime/connection.py
"""
A live WebSocket connection and the user identity bound to it.

Connections are process-local and never persisted. A connection starts
unbound; a successful ``login`` binds a user snapshot. Rooms are the room
keys the connection joined with ``joinRoom``.
"""

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any, Optional, Set, Tuple

import ulid

from ..schemas.chat import ConnectionUserOut
from .events import build_frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionUser:
    """Identity snapshot taken at login; not refreshed while the connection lives."""

    id: str
    username: str
    email: Optional[str] = None
    roles: Tuple[str, ...] = field(default_factory=tuple)

    def to_payload(self) -> ConnectionUserOut:
        return ConnectionUserOut(id=self.id, username=self.username, email=self.email, roles=list(self.roles))


class Connection:
    """
    Wraps a Starlette WebSocket.

    Sends are serialized per connection; sending on a closed connection is a
    no-op that returns False.
    """

    def __init__(self, websocket: Any, namespace: str):
        self.id = str(ulid.ULID())
        self.websocket = websocket
        self.namespace = namespace
        self.user: Optional[ConnectionUser] = None
        self.rooms: Set[str] = set()
        self.closed = False
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<Connection {self.id} ns={self.namespace} user={self.user_id}>"

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def is_bound(self) -> bool:
        return self.user is not None

    def bind(self, user: ConnectionUser) -> None:
        if self.user is not None and self.user.id != user.id:
            # Rooms were joined on behalf of the previous identity
            self.rooms.clear()
        self.user = user

    def join(self, room_id: str) -> None:
        self.rooms.add(room_id)

    def leave(self, room_id: str) -> None:
        self.rooms.discard(room_id)

    def in_room(self, room_id: str) -> bool:
        return room_id in self.rooms

    async def emit(self, event: str, data: Any) -> bool:
        if self.closed:
            return False
        frame = build_frame(event, data)
        try:
            async with self._send_lock:
                await self.websocket.send_json(frame)
            return True
        except Exception as exc:
            logger.warning(
                f"[WS] Send failed, dropping connection {self.id}: {exc}",
                extra={"connection_id": self.id, "event": frame["event"]},
            )
            self.closed = True
            return False

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as exc:
            logger.debug(f"[WS] Close on {self.id} failed: {exc}")
