# backend/app/services/chat_list_service.py
"""
Chat List Service.

Builds a user's chat list: every conversation with an ACTIVE membership
(course chats only while the course is approved), with the member's unread
count and the last message plus its seen-by-all flag.

Ordering: entries with a last message by that message's update time,
newest first; conversations never messaged follow, in no particular order.
"""

from datetime import datetime, timezone
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..repositories.chat_member_repository import ChatMemberRepository
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.message_repository import MessageRepository
from ..repositories.read_mark_repository import ReadMarkRepository
from ..schemas.chat import ConversationOut, ConversationSummary, LastMessageOut, MessageOut
from .base import BaseService

logger = logging.getLogger(__name__)


def _sort_key(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; freshly written rows are aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ChatListService(BaseService):
    """Computes chat-list views for the fan-out notifier and the HTTP API."""

    def __init__(
        self,
        db: Session,
        conversation_repository: Optional[ConversationRepository] = None,
        member_repository: Optional[ChatMemberRepository] = None,
        message_repository: Optional[MessageRepository] = None,
        read_mark_repository: Optional[ReadMarkRepository] = None,
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
        self.read_mark_repository = (
            read_mark_repository or RepositoryFactory.create_read_mark_repository(db)
        )

    @BaseService.measure_operation("chat_list_for")
    def chat_list_for(self, user_id: str) -> List[ConversationSummary]:
        conversations = [
            c for c in self.conversation_repository.list_for_member(user_id) if c.is_visible
        ]
        memberships = {}
        for conversation in conversations:
            member = conversation.member_for(user_id)
            if member is not None and member.is_active:
                memberships[conversation.id] = member
        unread = self.read_mark_repository.unread_counts([m.id for m in memberships.values()])

        with_messages: List[ConversationSummary] = []
        without_messages: List[ConversationSummary] = []
        for conversation in conversations:
            member = memberships.get(conversation.id)
            if member is None:
                continue
            last = self.message_repository.get_latest(conversation.id)
            summary = ConversationSummary(
                conversation=ConversationOut.from_conversation(conversation),
                unread_count=unread.get(member.id, 0),
                is_mute=member.is_mute,
                last_message=self._last_message(last) if last is not None else None,
            )
            if summary.last_message is None:
                without_messages.append(summary)
            else:
                with_messages.append(summary)

        with_messages.sort(key=lambda s: _sort_key(s.last_message.updated_at), reverse=True)
        return with_messages + without_messages

    def _last_message(self, message) -> LastMessageOut:
        payload = MessageOut.model_validate(message).model_dump()
        return LastMessageOut(**payload, seen_by_all=self.read_mark_repository.all_read(message.id))

    def is_active_member(self, conversation_id: str, user_id: str) -> bool:
        return self.member_repository.get_active_membership(conversation_id, user_id) is not None
