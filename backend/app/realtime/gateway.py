# backend/app/realtime/gateway.py
"""
WebSocket gateways for the ``chat`` and ``notification`` namespaces.

Every client event runs inside ``_run``: a failure is reported as
``{"error": message, "code": code}`` on the same event name to the same
connection and never affects other connections. Events other than
``login`` require a bound connection.

sendMessage flow:
    MessageService.send_message (RECEIVED → READMARKS_CREATED, one transaction)
    → newMessage to the room (BROADCAST)
    → auto-read for users present in the room, chat lists to all active
      members (FANOUT_COMPLETE)
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.constants import CHAT_NAMESPACE, NOTIFICATION_NAMESPACE
from ..core.exceptions import DomainException, UnauthorizedException, ValidationException
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.chat import (
    ChatDetail,
    ConversationSummary,
    GetChatPayload,
    LoginPayload,
    MemberOut,
    ReadPayload,
    RoomPayload,
    SendMessagePayload,
    SuccessOut,
)
from ..services.chat_list_service import ChatListService
from ..services.conversation_service import ConversationService
from ..services.message_service import MessageService, SendMessageStage, SentMessage
from ..services.read_state_service import ReadStateService
from .authenticator import SessionAuthenticator
from .connection import Connection
from .directory import ConnectionDirectory
from .events import ClientEvent, ServerEvent, error_payload, parse_frame
from .notifier import FanoutNotifier
from .store import SessionFactory, run_in_session

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]


# ----------------------------------------------------------------------
# Store calls (sync, run via run_in_session)
# ----------------------------------------------------------------------


def _chat_list_sync(db: Session, user_id: str) -> List[ConversationSummary]:
    return ChatListService(db).chat_list_for(user_id)


def _get_chat_sync(
    db: Session, user_id: str, conversation_id: str, limit: Optional[int], offset: Optional[int]
) -> ChatDetail:
    return MessageService(db).get_chat(user_id, conversation_id, limit, offset)


def _join_room_sync(db: Session, user_id: str, room_id: str) -> Tuple[str, Optional[MemberOut]]:
    conversation, _ = ConversationService(db).get_by_room_for_member(room_id, user_id)
    member = ReadStateService(db).mark_read(user_id, conversation.id)
    return conversation.id, MemberOut.model_validate(member) if member is not None else None


def _out_room_sync(db: Session, user_id: str, room_id: str) -> None:
    ConversationService(db).get_by_room_for_member(room_id, user_id)


def _read_sync(db: Session, user_id: str, conversation_id: str) -> Tuple[str, Optional[MemberOut]]:
    conversation, _ = ConversationService(db).get_for_member(conversation_id, user_id)
    member = ReadStateService(db).mark_read(user_id, conversation.id)
    return conversation.room_id, MemberOut.model_validate(member) if member is not None else None


def _force_read_sync(db: Session, user_id: str) -> List[Tuple[str, str, MemberOut]]:
    members = ReadStateService(db).force_read_all(user_id)
    return [
        (m.conversation_id, m.conversation.room_id, MemberOut.model_validate(m)) for m in members
    ]


def _send_message_sync(db: Session, user_id: str, payload: SendMessagePayload) -> SentMessage:
    return MessageService(db).send_message(
        user_id,
        payload.id,
        payload.content,
        attachment_ids=payload.attachments,
        target_message_id=payload.target_message_id,
    )


# ----------------------------------------------------------------------
# Gateways
# ----------------------------------------------------------------------


class RealtimeGateway:
    """
    Connection lifecycle shared by both namespaces: login and the
    single-session disconnect policy.
    """

    def __init__(
        self,
        namespace: str,
        directory: ConnectionDirectory,
        authenticator: SessionAuthenticator,
        notifier: FanoutNotifier,
        session_factory: SessionFactory,
    ):
        self.namespace = namespace
        self.directory = directory
        self.authenticator = authenticator
        self.notifier = notifier
        self.session_factory = session_factory
        self._handlers: Dict[str, Handler] = {ClientEvent.LOGIN.value: self.handle_login}

    @property
    def events(self) -> List[str]:
        return list(self._handlers)

    async def serve(self, websocket: WebSocket) -> None:
        """Accept a socket and pump its frames until it goes away."""
        await websocket.accept()
        connection = Connection(websocket, self.namespace)
        self.directory.register(connection)
        logger.info(
            f"[WS] Connected {connection.id}",
            extra={"connection_id": connection.id, "namespace": self.namespace},
        )
        try:
            while not connection.closed:
                raw = await websocket.receive_text()
                await self.dispatch(connection, raw)
        except WebSocketDisconnect:
            pass
        except RuntimeError as e:
            # Socket closed under us (e.g. sibling close on another handler)
            logger.debug(f"[WS] Receive on {connection.id} stopped: {e}")
        finally:
            await self.on_disconnect(connection)

    async def dispatch(self, connection: Connection, raw: str) -> None:
        try:
            event, data = parse_frame(raw)
        except ValidationException as exc:
            prometheus_metrics.record_ws_event(self.namespace, "malformed", "error")
            await connection.emit(ServerEvent.ERROR.value, exc.to_error_payload())
            return

        handler = self._handlers.get(event)
        if handler is None:
            prometheus_metrics.record_ws_event(self.namespace, "unknown", "error")
            await connection.emit(
                ServerEvent.ERROR.value, error_payload(f"Unknown event: {event}", "UNKNOWN_EVENT")
            )
            return
        await self._run(connection, event, handler, data)

    async def _run(self, connection: Connection, event: str, handler: Handler, data: Any) -> None:
        status = "success"
        try:
            if event != ClientEvent.LOGIN.value and not connection.is_bound:
                raise UnauthorizedException("Login required")
            await handler(connection, data)
        except DomainException as exc:
            status = "error"
            logger.info(
                f"[WS] {event} rejected: {exc.message}",
                extra={"connection_id": connection.id, "event": event, "code": exc.code},
            )
            await connection.emit(event, exc.to_error_payload())
        except ValidationError as exc:
            status = "error"
            first = exc.errors()[0] if exc.errors() else {}
            message = first.get("msg", "Invalid payload")
            await connection.emit(event, error_payload(message, "VALIDATION_ERROR"))
        except Exception as exc:
            status = "error"
            logger.error(
                f"[WS] Unhandled error in {event}: {exc}",
                exc_info=True,
                extra={"connection_id": connection.id, "event": event},
            )
            await connection.emit(event, error_payload("Internal server error", "INTERNAL_ERROR"))
        finally:
            prometheus_metrics.record_ws_event(self.namespace, event, status)

    async def on_disconnect(self, connection: Connection) -> None:
        """
        Drop the connection and force-close the user's other connections in
        this namespace. Other namespaces are left alone.
        """
        self.directory.unregister(connection)
        connection.closed = True
        logger.info(
            f"[WS] Disconnected {connection.id}",
            extra={"connection_id": connection.id, "user_id": connection.user_id},
        )
        if connection.user_id is not None:
            await self.directory.close_user_connections(
                self.namespace, connection.user_id, exclude=connection.id
            )

    # ------------------------------------------------------------------

    async def handle_login(self, connection: Connection, data: Any) -> None:
        payload = LoginPayload.model_validate(data or {})
        user = await self.authenticator.authenticate(payload.access_token)
        connection.bind(user)
        logger.info(
            f"[WS] {connection.id} logged in as {user.id}",
            extra={"connection_id": connection.id, "user_id": user.id},
        )
        await self.after_login(connection)
        await connection.emit(ClientEvent.LOGIN.value, {"user": user.to_payload()})

    async def after_login(self, connection: Connection) -> None:
        return None


class NotificationGateway(RealtimeGateway):
    def __init__(self, directory, authenticator, notifier, session_factory):
        super().__init__(NOTIFICATION_NAMESPACE, directory, authenticator, notifier, session_factory)


class ChatGateway(RealtimeGateway):
    """Chat namespace: chat lists, history, rooms, read state and sending."""

    def __init__(self, directory, authenticator, notifier, session_factory):
        super().__init__(CHAT_NAMESPACE, directory, authenticator, notifier, session_factory)
        self._handlers.update(
            {
                ClientEvent.GET_CHATS.value: self.handle_get_chats,
                ClientEvent.GET_CHAT.value: self.handle_get_chat,
                ClientEvent.JOIN_ROOM.value: self.handle_join_room,
                ClientEvent.OUT_ROOM.value: self.handle_out_room,
                ClientEvent.READ.value: self.handle_read,
                ClientEvent.FORCE_READ.value: self.handle_force_read,
                ClientEvent.SEND_MESSAGE.value: self.handle_send_message,
            }
        )

    async def after_login(self, connection: Connection) -> None:
        # Initial snapshot
        await self.notifier.push_chat_list(connection.user_id, connection=connection)

    async def handle_get_chats(self, connection: Connection, data: Any) -> None:
        chats = await run_in_session(self.session_factory, _chat_list_sync, connection.user_id)
        await connection.emit(ClientEvent.GET_CHATS.value, chats)

    async def handle_get_chat(self, connection: Connection, data: Any) -> None:
        payload = GetChatPayload.model_validate(data or {})
        detail = await run_in_session(
            self.session_factory,
            _get_chat_sync,
            connection.user_id,
            payload.id,
            payload.limit,
            payload.offset,
        )
        await connection.emit(ClientEvent.GET_CHAT.value, detail)

    async def handle_join_room(self, connection: Connection, data: Any) -> None:
        payload = RoomPayload.model_validate(data or {})
        conversation_id, member = await run_in_session(
            self.session_factory, _join_room_sync, connection.user_id, payload.id
        )
        connection.join(payload.id)
        await connection.emit(ClientEvent.JOIN_ROOM.value, SuccessOut())
        if member is not None:
            await self.notifier.emit_to_room(
                payload.id, ServerEvent.NEW_READ.value, member, exclude=connection.id
            )
        await self.notifier.notify_members(conversation_id)

    async def handle_out_room(self, connection: Connection, data: Any) -> None:
        payload = RoomPayload.model_validate(data or {})
        await run_in_session(self.session_factory, _out_room_sync, connection.user_id, payload.id)
        connection.leave(payload.id)
        await connection.emit(ClientEvent.OUT_ROOM.value, SuccessOut())

    async def handle_read(self, connection: Connection, data: Any) -> None:
        payload = ReadPayload.model_validate(data or {})
        room_id, member = await run_in_session(
            self.session_factory, _read_sync, connection.user_id, payload.id
        )
        await connection.emit(ClientEvent.READ.value, SuccessOut())
        if member is not None:
            await self.notifier.emit_to_room(
                room_id, ServerEvent.NEW_READ.value, member, exclude=connection.id
            )
        await self.notifier.notify_members(payload.id)

    async def handle_force_read(self, connection: Connection, data: Any) -> None:
        touched = await run_in_session(self.session_factory, _force_read_sync, connection.user_id)
        await connection.emit(ClientEvent.FORCE_READ.value, SuccessOut())
        for conversation_id, room_id, member in touched:
            await self.notifier.emit_to_room(
                room_id, ServerEvent.NEW_READ.value, member, exclude=connection.id
            )
            await self.notifier.notify_members(conversation_id)

    async def handle_send_message(self, connection: Connection, data: Any) -> None:
        payload = SendMessagePayload.model_validate(data or {})
        sent = await run_in_session(
            self.session_factory, _send_message_sync, connection.user_id, payload
        )

        await self.notifier.emit_to_room(sent.room_id, ServerEvent.NEW_MESSAGE.value, sent.message)
        sent.stage = SendMessageStage.BROADCAST

        try:
            await self.notifier.auto_read_present(sent.conversation_id, sent.room_id)
            await self.notifier.notify_members(sent.conversation_id)
        except Exception as e:
            # The message is stored and broadcast; the sender is not told about fan-out trouble
            logger.warning(
                f"[FANOUT] Fan-out for message {sent.message.id} incomplete: {e}",
                extra={"conversation_id": sent.conversation_id, "message_id": sent.message.id},
            )
            return
        sent.stage = SendMessageStage.FANOUT_COMPLETE
        logger.debug(
            f"[WS] Message {sent.message.id} {sent.stage.value}",
            extra={"conversation_id": sent.conversation_id, "connection_id": connection.id},
        )
