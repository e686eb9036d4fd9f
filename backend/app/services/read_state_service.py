# backend/app/services/read_state_service.py
"""
Read-State Service for the chat core.

Owns the ReadMark rows: one per (message, member) created when a message is
sent, flipped to read by explicit reads, bulk force-reads and auto-read for
members present in the room. Unread counts and "seen by all" are derived
on demand.

Lookups on a conversation or membership that does not exist return an empty
result instead of raising; these paths run from fire-and-forget event
handlers.
"""

from datetime import datetime, timezone
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import MemberStatus, UserView
from ..models.conversation import ChatMember
from ..models.message import Message, ReadMark
from ..repositories.chat_member_repository import ChatMemberRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.message_repository import MessageRepository
from ..repositories.read_mark_repository import ReadMarkRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class ReadStateService(BaseService):
    """Maintains ReadMark rows and derives unread counts / seen-by-all flags."""

    def __init__(
        self,
        db: Session,
        read_mark_repository: Optional[ReadMarkRepository] = None,
        member_repository: Optional[ChatMemberRepository] = None,
        message_repository: Optional[MessageRepository] = None,
    ):
        super().__init__(db)
        self.read_mark_repository = (
            read_mark_repository or RepositoryFactory.create_read_mark_repository(db)
        )
        self.member_repository = member_repository or RepositoryFactory.create_chat_member_repository(
            db
        )
        self.message_repository = message_repository or RepositoryFactory.create_message_repository(
            db
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @BaseService.measure_operation("on_message_created")
    def on_message_created(self, message: Message, members: Iterable[ChatMember]) -> List[ReadMark]:
        """
        Create one ReadMark per ACTIVE member for a freshly persisted message.

        The author's mark is pre-read (sender view, force_read); every other
        active member gets an unread receiver mark. Does not commit: runs
        inside the caller's send transaction.
        """
        now = datetime.now(timezone.utc)
        rows = []
        for member in members:
            if member.status != MemberStatus.ACTIVE.value:
                continue
            if member.user_id == message.sender_id:
                rows.append(
                    {
                        "message_id": message.id,
                        "chat_member_id": member.id,
                        "view": UserView.SENDER.value,
                        "read": True,
                        "read_at": now,
                        "force_read": True,
                    }
                )
            else:
                rows.append(
                    {
                        "message_id": message.id,
                        "chat_member_id": member.id,
                        "view": UserView.RECEIVER.value,
                        "read": False,
                        "read_at": None,
                        "force_read": False,
                    }
                )
        return self.read_mark_repository.bulk_create(rows)

    @BaseService.measure_operation("backfill_for_member")
    def backfill_for_member(self, member: ChatMember) -> int:
        """
        Give a newly added member pre-read receiver marks for existing history.

        Messages that already have a mark for this member (a re-activated
        member) are left alone. Does not commit.
        """
        existing = {mark.message_id for mark in self.read_mark_repository.find_by(chat_member_id=member.id)}
        now = datetime.now(timezone.utc)
        rows = [
            {
                "message_id": message_id,
                "chat_member_id": member.id,
                "view": UserView.RECEIVER.value,
                "read": True,
                "read_at": now,
                "force_read": False,
            }
            for message_id in self.message_repository.list_ids_for_conversation(member.conversation_id)
            if message_id not in existing
        ]
        if rows:
            self.read_mark_repository.bulk_create(rows)
        return len(rows)

    @BaseService.measure_operation("mark_read")
    def mark_read(self, user_id: str, conversation_id: str) -> Optional[ChatMember]:
        """
        Mark every unread mark of the user's membership in a conversation as read.

        Returns:
            The membership (the ``newRead`` payload), or None when the user is
            not an active member
        """
        member = self.member_repository.get_active_membership(conversation_id, user_id)
        if member is None:
            self.logger.debug(f"mark_read skipped: {user_id} not active in {conversation_id}")
            return None
        with self.transaction():
            updated = self.read_mark_repository.mark_read([member.id], datetime.now(timezone.utc))
        self.logger.debug(f"Marked {updated} messages read for {user_id} in {conversation_id}")
        return member

    @BaseService.measure_operation("force_read_all")
    def force_read_all(self, user_id: str) -> List[ChatMember]:
        """
        Bulk mark-as-read across every ACTIVE membership of the user.

        Returns:
            The memberships that were touched
        """
        members = self.member_repository.list_active_for_user(user_id)
        if not members:
            return []
        with self.transaction():
            updated = self.read_mark_repository.mark_read(
                [m.id for m in members], datetime.now(timezone.utc)
            )
        self.log_operation("force_read_all", user_id=user_id, updated=updated)
        return members

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def unread_count(self, user_id: str, conversation_id: str) -> int:
        member = self.member_repository.get_membership(conversation_id, user_id)
        if member is None:
            return 0
        return self.read_mark_repository.count_unread(member.id)

    def seen_by_all(self, message_id: str) -> bool:
        """True iff every ReadMark of the message is read."""
        return self.read_mark_repository.all_read(message_id)
