# backend/app/realtime/notifier.py
"""
Fan-out Notifier.

After any write that changes what a conversation looks like (members, name,
mute, new message, read state) every ACTIVE member of that conversation gets
a freshly computed chat list on each of their chat connections, not just the
user who acted. Push failures are logged and never reach the actor.

When the cross-process relay is running, user- and room-addressed pushes go
through it so connections held by other workers receive them too. Pushes to
one specific connection are always local.
"""

import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import CHAT_NAMESPACE, NOTIFICATION_NAMESPACE
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.chat import ConversationSummary, MemberOut
from ..services.chat_list_service import ChatListService
from ..services.conversation_service import ConversationService
from ..services.read_state_service import ReadStateService
from .connection import Connection
from .directory import ConnectionDirectory
from .events import ServerEvent
from .relay import ChatRelay
from .store import SessionFactory, run_in_session

logger = logging.getLogger(__name__)


def _chat_list_sync(db: Session, user_id: str) -> List[ConversationSummary]:
    """NOTE: sync, call via run_in_session()."""
    return ChatListService(db).chat_list_for(user_id)


def _is_active_member_sync(db: Session, conversation_id: str, user_id: str) -> bool:
    return ChatListService(db).is_active_member(conversation_id, user_id)


def _active_user_ids_sync(db: Session, conversation_id: str) -> List[str]:
    return ConversationService(db).active_user_ids(conversation_id)


def _mark_read_sync(db: Session, user_id: str, conversation_id: str) -> Optional[MemberOut]:
    member = ReadStateService(db).mark_read(user_id, conversation_id)
    return MemberOut.model_validate(member) if member is not None else None


class FanoutNotifier:
    def __init__(
        self,
        directory: ConnectionDirectory,
        session_factory: SessionFactory,
        relay: Optional[ChatRelay] = None,
    ):
        self.directory = directory
        self.session_factory = session_factory
        self.relay = relay

    @property
    def relayed(self) -> bool:
        return self.relay is not None and self.relay.running

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    async def emit_to_users(
        self, namespace: str, user_ids: Iterable[str], event: str, data: Any
    ) -> int:
        """
        Push to every connection of the given users.

        Returns:
            Frames sent locally (0 when handed to the relay)
        """
        user_ids = list(user_ids)
        if not user_ids:
            return 0
        if self.relayed:
            await self.relay.publish_to_users(namespace, user_ids, event, data)
            return 0
        sent = await self.directory.emit_to_users(namespace, user_ids, event, data)
        prometheus_metrics.record_fanout_push(namespace, event, sent)
        return sent

    async def emit_to_room(
        self,
        room_id: str,
        event: str,
        data: Any,
        exclude: Optional[str] = None,
        namespace: str = CHAT_NAMESPACE,
    ) -> int:
        if self.relayed:
            await self.relay.publish_to_room(namespace, room_id, event, data, exclude=exclude)
            return 0
        sent = await self.directory.emit_to_room(namespace, room_id, event, data, exclude=exclude)
        prometheus_metrics.record_fanout_push(namespace, event, sent)
        return sent

    # ------------------------------------------------------------------
    # Chat lists
    # ------------------------------------------------------------------

    async def push_chat_list(
        self,
        user_id: str,
        conversation_id: Optional[str] = None,
        connection: Optional[Connection] = None,
    ) -> int:
        """
        Recompute a user's chat list and push it.

        Args:
            user_id: Whose list to push
            conversation_id: When given, the push only happens if the user is
                an ACTIVE member of it
            connection: Push to this connection only (must be bound to
                ``user_id``); otherwise every chat connection of the user

        Returns:
            Frames sent locally
        """
        if connection is not None and connection.user_id != user_id:
            logger.warning(
                f"[FANOUT] Refusing push for {user_id} to connection {connection.id}",
                extra={"user_id": user_id, "connection_id": connection.id},
            )
            return 0
        if conversation_id is not None:
            is_member = await run_in_session(
                self.session_factory, _is_active_member_sync, conversation_id, user_id
            )
            if not is_member:
                logger.debug(f"[FANOUT] Skipping {user_id}: not active in {conversation_id}")
                return 0

        chats = await run_in_session(self.session_factory, _chat_list_sync, user_id)
        if connection is not None:
            sent = 1 if await connection.emit(ServerEvent.GET_CHATS.value, chats) else 0
            prometheus_metrics.record_fanout_push(CHAT_NAMESPACE, ServerEvent.GET_CHATS.value, sent)
            return sent
        return await self.emit_to_users(CHAT_NAMESPACE, [user_id], ServerEvent.GET_CHATS.value, chats)

    async def refresh_user(self, user_id: str) -> int:
        """Push a user's list without a membership check (e.g. after removal)."""
        try:
            return await self.push_chat_list(user_id)
        except Exception as e:
            logger.warning(f"[FANOUT] Refresh for {user_id} failed: {e}", extra={"user_id": user_id})
            return 0

    async def notify_members(
        self, conversation_id: str, extra_user_ids: Iterable[str] = ()
    ) -> int:
        """
        Push fresh chat lists to every ACTIVE member of a conversation.

        Args:
            extra_user_ids: Users no longer active (removed, left) who should
                still get a refreshed list

        Returns:
            Frames sent locally
        """
        try:
            user_ids = await run_in_session(
                self.session_factory, _active_user_ids_sync, conversation_id
            )
        except Exception as e:
            logger.warning(
                f"[FANOUT] Could not load members of {conversation_id}: {e}",
                extra={"conversation_id": conversation_id},
            )
            return 0

        sent = 0
        for user_id in user_ids:
            try:
                sent += await self.push_chat_list(user_id, conversation_id)
            except Exception as e:
                logger.warning(
                    f"[FANOUT] Push to {user_id} for {conversation_id} failed: {e}",
                    extra={"user_id": user_id, "conversation_id": conversation_id},
                )
        for user_id in extra_user_ids:
            if user_id not in user_ids:
                sent += await self.refresh_user(user_id)
        return sent

    # ------------------------------------------------------------------
    # Read state
    # ------------------------------------------------------------------

    async def auto_read_present(self, conversation_id: str, room_id: str) -> List[MemberOut]:
        """
        Mark read for every user with a local connection joined to the room,
        then announce each updated member with ``newRead``.
        """
        updated: List[MemberOut] = []
        # Presence is process-local even when relayed; members joined on other
        # workers stay unread until their own read or joinRoom
        for user_id in sorted(self.directory.user_ids_in_room(CHAT_NAMESPACE, room_id)):
            try:
                member = await run_in_session(
                    self.session_factory, _mark_read_sync, user_id, conversation_id
                )
            except Exception as e:
                logger.warning(
                    f"[FANOUT] Auto-read for {user_id} in {conversation_id} failed: {e}",
                    extra={"user_id": user_id, "conversation_id": conversation_id},
                )
                continue
            if member is None:
                continue
            updated.append(member)
            await self.emit_to_room(room_id, ServerEvent.NEW_READ.value, member)
        return updated

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def notify_user(self, user_id: str, data: Any) -> int:
        """Push a ``notification`` frame to every notification connection of a user."""
        return await self.emit_to_users(
            NOTIFICATION_NAMESPACE, [user_id], ServerEvent.NOTIFICATION.value, data
        )
