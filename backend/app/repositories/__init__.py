# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for Coursehub chat

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- IRepository: Interface defining required methods for all repositories
- RepositoryFactory: Factory for creating repository instances
- ConversationRepository / ChatMemberRepository: conversations and memberships
- MessageRepository / ReadMarkRepository: messages, attachments and read state

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_conversation_repository(db)
    conversation = repository.get_by_room_id(room_id)
"""

from .base_repository import BaseRepository, IRepository
from .chat_member_repository import ChatMemberRepository
from .conversation_repository import ConversationRepository
from .course_repository import CourseRepository
from .factory import RepositoryFactory
from .heart_repository import HeartRepository
from .message_repository import MessageRepository
from .read_mark_repository import ReadMarkRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ChatMemberRepository",
    "ConversationRepository",
    "CourseRepository",
    "HeartRepository",
    "IRepository",
    "MessageRepository",
    "ReadMarkRepository",
    "RepositoryFactory",
    "UserRepository",
]
