# backend/app/repositories/conversation_repository.py
"""
Conversation Repository for the chat core.

Provides the lookups the conversation resolver and the fan-out notifier
need: by room key, by participant set, and by active membership.
"""

from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from ..core.enums import ConversationType, MemberStatus
from ..core.exceptions import RepositoryException
from ..models.conversation import ChatMember, Conversation
from .base_repository import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    """
    Repository for Conversation entity operations.

    Handles:
    - Room-key lookups (direct, course and group rooms)
    - Self-archive lookup by owner
    - Group candidates for participant-set matching
    - Listing the conversations a user is an active member of
    """

    def __init__(self, db: Session):
        """Initialize with database session."""
        super().__init__(db, Conversation)

    def _apply_eager_loading(self, query):
        return query.options(selectinload(Conversation.members), joinedload(Conversation.course))

    def get_by_room_id(self, room_id: str) -> Optional[Conversation]:
        """Find a conversation by its room key."""
        try:
            result = (
                self._apply_eager_loading(self.db.query(Conversation))
                .filter(Conversation.room_id == room_id)
                .first()
            )
            return cast(Optional[Conversation], result)
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding conversation by room {room_id}: {str(e)}")
            raise RepositoryException(f"Failed to find conversation: {str(e)}")

    def find_self_archive(self, user_id: str) -> Optional[Conversation]:
        """
        Find the user's self-archive conversation.

        Matched by type and membership rather than room key so a renamed or
        migrated room is still found.
        """
        try:
            result = (
                self._apply_eager_loading(self.db.query(Conversation))
                .join(ChatMember, ChatMember.conversation_id == Conversation.id)
                .filter(
                    Conversation.conversation_type == ConversationType.SELF_ARCHIVE.value,
                    ChatMember.user_id == user_id,
                )
                .first()
            )
            return cast(Optional[Conversation], result)
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding self archive for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to find conversation: {str(e)}")

    def find_groups_for_member(self, user_id: str) -> List[Conversation]:
        """GROUP conversations where the user is an ACTIVE member, members loaded."""
        try:
            return cast(
                List[Conversation],
                self._apply_eager_loading(self.db.query(Conversation))
                .join(ChatMember, ChatMember.conversation_id == Conversation.id)
                .filter(
                    Conversation.conversation_type == ConversationType.GROUP.value,
                    ChatMember.user_id == user_id,
                    ChatMember.status == MemberStatus.ACTIVE.value,
                )
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing groups for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list conversations: {str(e)}")

    def list_for_member(self, user_id: str) -> List[Conversation]:
        """Every conversation the user is an ACTIVE member of."""
        try:
            return cast(
                List[Conversation],
                self._apply_eager_loading(self.db.query(Conversation))
                .join(ChatMember, ChatMember.conversation_id == Conversation.id)
                .filter(
                    ChatMember.user_id == user_id,
                    ChatMember.status == MemberStatus.ACTIVE.value,
                )
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing conversations for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list conversations: {str(e)}")

    def list_by_course(self, course_id: str) -> List[Conversation]:
        """COURSE_GROUP conversations bound to a course."""
        try:
            return cast(
                List[Conversation],
                self._apply_eager_loading(self.db.query(Conversation))
                .filter(
                    Conversation.course_id == course_id,
                    Conversation.conversation_type == ConversationType.COURSE_GROUP.value,
                )
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing course conversations for {course_id}: {str(e)}")
            raise RepositoryException(f"Failed to list conversations: {str(e)}")
