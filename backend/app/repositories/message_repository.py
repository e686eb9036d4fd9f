# backend/app/repositories/message_repository.py
"""
Message Repository for the chat core.

Paging, last-message lookup and the hydrated message shape sent to
clients (member, sender, attachments, hearts, reply target).
"""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.conversation import ChatMember
from ..models.message import Attachment, Message
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository[Message]):
    """Repository for Message entity operations."""

    def __init__(self, db: Session):
        super().__init__(db, Message)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(Message.member).joinedload(ChatMember.user),
            selectinload(Message.sender),
            selectinload(Message.attachments),
            selectinload(Message.hearts),
            selectinload(Message.target_message),
        )

    def get_hydrated(self, message_id: str) -> Optional[Message]:
        return self.get_by_id(message_id, load_relationships=True)

    def get_in_conversation(self, message_id: str, conversation_id: str) -> Optional[Message]:
        """Message by id, only if it belongs to the given conversation."""
        try:
            return cast(
                Optional[Message],
                self.db.query(Message)
                .filter(Message.id == message_id, Message.conversation_id == conversation_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading message {message_id}: {str(e)}")
            raise RepositoryException(f"Failed to load message: {str(e)}")

    def count_for_conversation(self, conversation_id: str) -> int:
        try:
            return cast(
                int,
                self.db.query(Message).filter(Message.conversation_id == conversation_id).count(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting messages in {conversation_id}: {str(e)}")
            raise RepositoryException(f"Failed to count messages: {str(e)}")

    def list_page(self, conversation_id: str, limit: int, offset: int) -> List[Message]:
        """Newest first."""
        try:
            query = (
                self._apply_eager_loading(self.db.query(Message))
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.desc(), Message.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return cast(List[Message], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error paging messages in {conversation_id}: {str(e)}")
            raise RepositoryException(f"Failed to list messages: {str(e)}")

    def get_latest(self, conversation_id: str) -> Optional[Message]:
        try:
            return cast(
                Optional[Message],
                self._apply_eager_loading(self.db.query(Message))
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.desc(), Message.id.desc())
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading last message of {conversation_id}: {str(e)}")
            raise RepositoryException(f"Failed to load message: {str(e)}")

    def list_ids_for_conversation(self, conversation_id: str) -> List[str]:
        try:
            rows = (
                self.db.query(Message.id)
                .filter(Message.conversation_id == conversation_id)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing message ids in {conversation_id}: {str(e)}")
            raise RepositoryException(f"Failed to list messages: {str(e)}")

    def get_attachments(self, attachment_ids: List[str]) -> List[Attachment]:
        if not attachment_ids:
            return []
        try:
            return cast(
                List[Attachment],
                self.db.query(Attachment).filter(Attachment.id.in_(attachment_ids)).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading attachments: {str(e)}")
            raise RepositoryException(f"Failed to load attachments: {str(e)}")

    def link_attachments(
        self, attachments: List[Attachment], message_id: str, conversation_id: str
    ) -> None:
        for attachment in attachments:
            attachment.message_id = message_id
            attachment.conversation_id = conversation_id
        self.db.flush()
