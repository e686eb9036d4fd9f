# backend/app/services/message_service.py
"""
Message Service for the chat core.

Handles:
- Paging a conversation's history (``getChat``)
- The send-message protocol up to READMARKS_CREATED

Send protocol:
    RECEIVED → PERSISTED → ATTACHMENTS_LINKED → REPLY_LINKED (optional)
    → READMARKS_CREATED → BROADCAST → FANOUT_COMPLETE

Every check (membership, attachments, reply target) runs before the first
write, and persist, attachment linking, reply linking and read marks share
one transaction, so a failed send leaves nothing behind. BROADCAST and
FANOUT_COMPLETE are carried out by the real-time layer once the hydrated
message is returned.
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..repositories.chat_member_repository import ChatMemberRepository
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.message_repository import MessageRepository
from ..schemas.chat import ChatDetail, ConversationOut, MessageOut
from ..utils.profanity import mask_profanity
from .base import BaseService
from .read_state_service import ReadStateService

logger = logging.getLogger(__name__)


class SendMessageStage(str, Enum):
    RECEIVED = "received"
    PERSISTED = "persisted"
    ATTACHMENTS_LINKED = "attachments_linked"
    REPLY_LINKED = "reply_linked"
    READMARKS_CREATED = "readmarks_created"
    BROADCAST = "broadcast"
    FANOUT_COMPLETE = "fanout_complete"


@dataclass
class SentMessage:
    """Outcome of a send, handed to the real-time layer for broadcast and fan-out."""

    message: MessageOut
    conversation_id: str
    room_id: str
    stage: SendMessageStage = SendMessageStage.READMARKS_CREATED


class MessageService(BaseService):
    """Service for message history and sending."""

    def __init__(
        self,
        db: Session,
        conversation_repository: Optional[ConversationRepository] = None,
        member_repository: Optional[ChatMemberRepository] = None,
        message_repository: Optional[MessageRepository] = None,
        read_state_service: Optional[ReadStateService] = None,
    ):
        super().__init__(db)
        self.conversation_repository = (
            conversation_repository or RepositoryFactory.create_conversation_repository(db)
        )
        self.member_repository = member_repository or RepositoryFactory.create_chat_member_repository(
            db
        )
        self.message_repository = message_repository or RepositoryFactory.create_message_repository(
            db
        )
        self.read_state_service = read_state_service or ReadStateService(
            db,
            member_repository=self.member_repository,
            message_repository=self.message_repository,
        )

    @BaseService.measure_operation("get_chat")
    def get_chat(
        self,
        user_id: str,
        conversation_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> ChatDetail:
        """
        Newest-first page of a conversation's messages.

        Args:
            limit: Page size, defaults to CHAT_PAGE_LIMIT, clamped to CHAT_MAX_PAGE_LIMIT
            offset: Messages to skip, defaults to CHAT_PAGE_OFFSET

        Returns:
            ChatDetail where ``remaining`` is True if older messages exist past this page
        """
        conversation = self.conversation_repository.get_by_id(conversation_id)
        if conversation is None:
            raise NotFoundException("Conversation not found", code="CONVERSATION_NOT_FOUND")
        if self.member_repository.get_active_membership(conversation_id, user_id) is None:
            raise ForbiddenException("You are not a member of this conversation", code="NOT_A_MEMBER")

        page_limit = settings.chat_page_limit if limit is None else limit
        page_limit = max(1, min(page_limit, settings.chat_max_page_limit))
        page_offset = settings.chat_page_offset if offset is None else max(0, offset)

        total = self.message_repository.count_for_conversation(conversation_id)
        messages = self.message_repository.list_page(conversation_id, page_limit, page_offset)
        return ChatDetail(
            chat=ConversationOut.from_conversation(conversation),
            messages=[MessageOut.model_validate(m) for m in messages],
            remaining=total > page_offset + page_limit,
        )

    def get_message(self, user_id: str, message_id: str) -> MessageOut:
        """Hydrated message; the caller must be an active member of its conversation."""
        message = self.message_repository.get_hydrated(message_id)
        if message is None:
            raise NotFoundException("Message not found", code="MESSAGE_NOT_FOUND")
        if self.member_repository.get_active_membership(message.conversation_id, user_id) is None:
            raise ForbiddenException("You are not a member of this conversation", code="NOT_A_MEMBER")
        return MessageOut.model_validate(message)

    def _mask(self, content: str) -> str:
        try:
            return mask_profanity(content)
        except Exception as exc:
            # Masking must never block a send
            self.logger.warning(f"Profanity masking failed, storing raw content: {exc}")
            return content

    @BaseService.measure_operation("send_message")
    def send_message(
        self,
        sender_id: str,
        conversation_id: str,
        content: str,
        attachment_ids: Optional[List[str]] = None,
        target_message_id: Optional[str] = None,
    ) -> SentMessage:
        """
        Persist a message with its attachments, reply link and read marks.

        Raises:
            NotFoundException: conversation, attachment or reply target missing
            ForbiddenException: sender is not an active member
            ValidationException: nothing to send
        """
        stage = SendMessageStage.RECEIVED
        attachment_ids = list(dict.fromkeys(attachment_ids or []))

        conversation = self.conversation_repository.get_by_id(conversation_id, load_relationships=False)
        if conversation is None:
            raise NotFoundException(
                "Conversation not found", code="CONVERSATION_NOT_FOUND", details={"stage": stage.value}
            )
        sender = self.member_repository.get_active_membership(conversation_id, sender_id)
        if sender is None:
            raise ForbiddenException(
                "You are not a member of this conversation",
                code="NOT_A_MEMBER",
                details={"stage": stage.value},
            )
        if not (content or "").strip() and not attachment_ids:
            raise ValidationException("Message is empty", details={"stage": stage.value})

        attachments = self.message_repository.get_attachments(attachment_ids)
        found = {a.id for a in attachments}
        missing = [a for a in attachment_ids if a not in found]
        if missing:
            raise NotFoundException(
                "Attachment not found",
                code="ATTACHMENT_NOT_FOUND",
                details={"stage": stage.value, "attachment_ids": missing},
            )

        target = None
        if target_message_id:
            target = self.message_repository.get_in_conversation(target_message_id, conversation_id)
            if target is None:
                raise NotFoundException(
                    "Reply target not found",
                    code="TARGET_MESSAGE_NOT_FOUND",
                    details={"stage": stage.value},
                )

        members = self.member_repository.list_active_members(conversation_id)
        with self.transaction():
            message = self.message_repository.create(
                conversation_id=conversation_id,
                sender_id=sender_id,
                chat_member_id=sender.id,
                content=self._mask(content or ""),
            )
            stage = SendMessageStage.PERSISTED
            self.logger.debug(f"[SEND] {message.id} {stage.value}")

            if attachments:
                self.message_repository.link_attachments(attachments, message.id, conversation_id)
            stage = SendMessageStage.ATTACHMENTS_LINKED

            if target is not None:
                message.target_message = target
                self.db.flush()
                stage = SendMessageStage.REPLY_LINKED

            self.read_state_service.on_message_created(message, members)
            stage = SendMessageStage.READMARKS_CREATED

        hydrated = self.message_repository.get_hydrated(message.id)
        self.log_operation(
            "send_message",
            conversation_id=conversation_id,
            message_id=message.id,
            stage=stage.value,
            recipients=len(members),
        )
        return SentMessage(
            message=MessageOut.model_validate(hydrated),
            conversation_id=conversation_id,
            room_id=conversation.room_id,
            stage=stage,
        )
