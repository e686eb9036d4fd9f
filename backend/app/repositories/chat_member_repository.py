# backend/app/repositories/chat_member_repository.py
"""
ChatMember Repository.

Membership lookups always go through here so the ACTIVE filter is applied
in one place.
"""

from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import MemberStatus
from ..core.exceptions import RepositoryException
from ..models.conversation import ChatMember
from .base_repository import BaseRepository


class ChatMemberRepository(BaseRepository[ChatMember]):
    """Repository for ChatMember entity operations."""

    def __init__(self, db: Session):
        super().__init__(db, ChatMember)

    def get_membership(self, conversation_id: str, user_id: str) -> Optional[ChatMember]:
        """Membership row in any status, or None."""
        try:
            return cast(
                Optional[ChatMember],
                self.db.query(ChatMember)
                .filter(ChatMember.conversation_id == conversation_id, ChatMember.user_id == user_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading membership {conversation_id}/{user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load membership: {str(e)}")

    def get_active_membership(self, conversation_id: str, user_id: str) -> Optional[ChatMember]:
        member = self.get_membership(conversation_id, user_id)
        if member is None or member.status != MemberStatus.ACTIVE.value:
            return None
        return member

    def list_active_members(self, conversation_id: str) -> List[ChatMember]:
        try:
            return cast(
                List[ChatMember],
                self.db.query(ChatMember)
                .filter(
                    ChatMember.conversation_id == conversation_id,
                    ChatMember.status == MemberStatus.ACTIVE.value,
                )
                .order_by(ChatMember.created_at)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing members of {conversation_id}: {str(e)}")
            raise RepositoryException(f"Failed to list members: {str(e)}")

    def list_active_for_user(self, user_id: str) -> List[ChatMember]:
        try:
            return cast(
                List[ChatMember],
                self.db.query(ChatMember)
                .filter(
                    ChatMember.user_id == user_id,
                    ChatMember.status == MemberStatus.ACTIVE.value,
                )
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing memberships of {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list memberships: {str(e)}")
