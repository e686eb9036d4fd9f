# backend/app/realtime/hub.py
"""
Real-time hub: one Connection Directory, authenticator, notifier and
gateway per namespace, started and stopped with the application.
"""

import logging
from typing import Optional

from ..core.config import settings
from ..database import session_scope
from .authenticator import SessionAuthenticator
from .directory import ConnectionDirectory
from .gateway import ChatGateway, NotificationGateway
from .notifier import FanoutNotifier
from .relay import ChatRelay
from .store import SessionFactory

logger = logging.getLogger(__name__)


class RealtimeHub:
    def __init__(
        self,
        session_factory: SessionFactory = session_scope,
        relay_enabled: Optional[bool] = None,
        relay_url: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.directory = ConnectionDirectory()
        enabled = settings.chat_relay_enabled if relay_enabled is None else relay_enabled
        self.relay: Optional[ChatRelay] = ChatRelay(self.directory, url=relay_url) if enabled else None
        self.authenticator = SessionAuthenticator(session_factory)
        self.notifier = FanoutNotifier(self.directory, session_factory, relay=self.relay)
        self.chat = ChatGateway(self.directory, self.authenticator, self.notifier, session_factory)
        self.notifications = NotificationGateway(
            self.directory, self.authenticator, self.notifier, session_factory
        )

    async def start(self) -> None:
        if self.relay is not None:
            await self.relay.start()
        logger.info(f"[WS] Realtime hub started (relay={'on' if self.relay else 'off'})")

    async def stop(self) -> None:
        for gateway in (self.chat, self.notifications):
            for connection in self.directory.list_connections(gateway.namespace):
                self.directory.unregister(connection)
                await connection.close(code=1001, reason="Server shutting down")
        if self.relay is not None:
            await self.relay.stop()
        logger.info("[WS] Realtime hub stopped")
