# backend/app/realtime/relay.py
"""
Cross-process relay for user- and room-addressed pushes.

Each process subscribes to one Broadcaster channel. A push published by any
process is delivered by every process to the matching connections in its own
Connection Directory, so a user connected to several workers still sees
every push.

Envelope (JSON on the channel):
{
    "kind": "users" | "room",
    "namespace": str,
    "user_ids": [str],        # kind == "users"
    "room_id": str,           # kind == "room"
    "exclude": str | None,    # connection id to skip (room pushes)
    "event": str,
    "data": Any               # already JSON-encoded payload
}
"""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, Optional

from fastapi.encoders import jsonable_encoder

from ..core.broadcast import connect_broadcast, disconnect_broadcast
from ..core.config import settings
from ..monitoring.prometheus_metrics import prometheus_metrics
from .directory import ConnectionDirectory

logger = logging.getLogger(__name__)


class ChatRelay:
    def __init__(
        self,
        directory: ConnectionDirectory,
        channel: Optional[str] = None,
        url: Optional[str] = None,
    ):
        self.directory = directory
        self.channel = channel or settings.chat_relay_channel
        self.url = url
        self._broadcast = None
        self._task: Optional[asyncio.Task] = None
        self._ready = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._broadcast is not None and self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._broadcast = await connect_broadcast(self.url)
        self._ready = asyncio.Event()
        self._task = asyncio.create_task(self._listen())
        await self._ready.wait()
        logger.info(f"[RELAY] Listening on {self.channel}")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._broadcast is not None:
            await disconnect_broadcast()
            self._broadcast = None
        logger.info("[RELAY] Stopped")

    async def _listen(self) -> None:
        async with self._broadcast.subscribe(channel=self.channel) as subscriber:
            self._ready.set()
            async for event in subscriber:
                try:
                    envelope = json.loads(event.message)
                except json.JSONDecodeError as e:
                    logger.warning(f"[RELAY] Dropping undecodable envelope: {e}")
                    continue
                try:
                    await self.deliver(envelope)
                except Exception as e:
                    logger.error(f"[RELAY] Delivery failed: {e}", exc_info=True)

    async def _publish(self, envelope: Dict[str, Any]) -> None:
        if self._broadcast is None:
            raise RuntimeError("Relay not started")
        await self._broadcast.publish(channel=self.channel, message=json.dumps(envelope))
        prometheus_metrics.record_relay("published")

    async def publish_to_users(
        self, namespace: str, user_ids: Iterable[str], event: str, data: Any
    ) -> None:
        await self._publish(
            {
                "kind": "users",
                "namespace": namespace,
                "user_ids": list(user_ids),
                "event": event,
                "data": jsonable_encoder(data),
            }
        )

    async def publish_to_room(
        self,
        namespace: str,
        room_id: str,
        event: str,
        data: Any,
        exclude: Optional[str] = None,
    ) -> None:
        await self._publish(
            {
                "kind": "room",
                "namespace": namespace,
                "room_id": room_id,
                "exclude": exclude,
                "event": event,
                "data": jsonable_encoder(data),
            }
        )

    async def deliver(self, envelope: Dict[str, Any]) -> int:
        """Deliver one envelope to local connections; returns frames sent."""
        prometheus_metrics.record_relay("received")
        kind = envelope.get("kind")
        namespace = envelope.get("namespace")
        event = envelope.get("event")
        if not namespace or not event:
            logger.warning(f"[RELAY] Envelope missing namespace or event: {envelope!r}")
            return 0
        if kind == "users":
            return await self.directory.emit_to_users(
                namespace, envelope.get("user_ids") or [], event, envelope.get("data")
            )
        if kind == "room":
            return await self.directory.emit_to_room(
                namespace,
                envelope.get("room_id") or "",
                event,
                envelope.get("data"),
                exclude=envelope.get("exclude"),
            )
        logger.warning(f"[RELAY] Unknown envelope kind: {kind}")
        return 0
