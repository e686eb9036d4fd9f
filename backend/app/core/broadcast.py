# backend/app/core/broadcast.py
"""
Shared Broadcaster for the cross-process chat relay.

Architecture:
- One Broadcaster instance per worker process, opened by the realtime hub
- Broadcaster internally maintains ONE Redis PubSub connection
- Every worker subscribes to the relay channel and delivers each relayed
  push to the connections it holds locally

Pushes fan-out from worker A → Redis → Broadcaster (every worker) → local sockets.
"""
import logging
from typing import Optional

from broadcaster import Broadcast

from .config import settings

logger = logging.getLogger(__name__)

# Single broadcast instance per worker process
_broadcast: Optional[Broadcast] = None


async def connect_broadcast(url: Optional[str] = None) -> Broadcast:
    """
    Connect the shared Broadcaster, or return the one already connected.

    ``url`` overrides ``settings.redis_url``; tests pass ``memory://``.
    """
    global _broadcast

    if _broadcast is not None:
        return _broadcast

    backend_url = url or settings.redis_url
    _broadcast = Broadcast(backend_url)
    await _broadcast.connect()
    logger.info("[BROADCAST] Connected relay backend: %s", backend_url.split("@")[-1])
    return _broadcast


async def disconnect_broadcast() -> None:
    """Disconnect the shared Broadcaster (hub shutdown)."""
    global _broadcast

    if _broadcast is not None:
        await _broadcast.disconnect()
        _broadcast = None
        logger.info("[BROADCAST] Disconnected relay backend")
