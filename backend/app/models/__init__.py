"""
Database models for Coursehub chat.

The models are organized by functionality:
- Users and platform roles
- Courses and lessons (read by the chat core)
- Conversations and memberships
- Messages, read marks and attachments
- Hearts
"""

from .conversation import ChatMember, Conversation
from .course import Course, Lesson
from .heart import Heart
from .message import Attachment, Message, ReadMark
from .rbac import Role, UserRole
from .user import User

__all__ = [
    "Attachment",
    "ChatMember",
    "Conversation",
    "Course",
    "Heart",
    "Lesson",
    "Message",
    "ReadMark",
    "Role",
    "User",
    "UserRole",
]
