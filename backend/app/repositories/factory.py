# backend/app/repositories/factory.py
"""
Repository Factory for Coursehub chat

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .chat_member_repository import ChatMemberRepository
    from .conversation_repository import ConversationRepository
    from .course_repository import CourseRepository
    from .heart_repository import HeartRepository
    from .message_repository import MessageRepository
    from .read_mark_repository import ReadMarkRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """
        Create a generic base repository for any model.

        Args:
            db: Database session
            model: SQLAlchemy model class

        Returns:
            BaseRepository instance
        """
        return BaseRepository(db, model)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        """Create repository for user lookups."""
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_course_repository(db: Session) -> "CourseRepository":
        """Create repository for course and lesson lookups."""
        from .course_repository import CourseRepository

        return CourseRepository(db)

    @staticmethod
    def create_conversation_repository(db: Session) -> "ConversationRepository":
        """Create repository for conversation operations."""
        from .conversation_repository import ConversationRepository

        return ConversationRepository(db)

    @staticmethod
    def create_chat_member_repository(db: Session) -> "ChatMemberRepository":
        """Create repository for membership operations."""
        from .chat_member_repository import ChatMemberRepository

        return ChatMemberRepository(db)

    @staticmethod
    def create_message_repository(db: Session) -> "MessageRepository":
        """Create repository for message operations."""
        from .message_repository import MessageRepository

        return MessageRepository(db)

    @staticmethod
    def create_read_mark_repository(db: Session) -> "ReadMarkRepository":
        """Create repository for read-state operations."""
        from .read_mark_repository import ReadMarkRepository

        return ReadMarkRepository(db)

    @staticmethod
    def create_heart_repository(db: Session) -> "HeartRepository":
        """Create repository for heart operations."""
        from .heart_repository import HeartRepository

        return HeartRepository(db)
