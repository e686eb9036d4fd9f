# backend/app/core/enums.py
"""
Core enums for the chat platform.

Stored as plain strings in the database so values stay readable in SQL
and portable across dialects.
"""

from enum import Enum


class RoleName(str, Enum):
    """Platform roles carried on the authenticated user snapshot."""

    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


class ConversationType(str, Enum):
    """
    Kind of conversation.

    SELF_ARCHIVE: a user's private notes-to-self thread (exactly one member)
    DIRECT: one-to-one thread (exactly two members)
    GROUP: ad-hoc multi-user thread
    COURSE_GROUP: thread bound to a course, joined on purchase
    """

    SELF_ARCHIVE = "self_archive"
    DIRECT = "direct"
    GROUP = "group"
    COURSE_GROUP = "course_group"


class MemberRole(str, Enum):
    """Role of a member inside a conversation."""

    ADMIN = "admin"
    REGULAR = "regular"


class MemberStatus(str, Enum):
    """Lifecycle status of a conversation member. Only ACTIVE receives fan-out."""

    ACTIVE = "active"
    PENDING = "pending"
    REMOVED = "removed"


class UserView(str, Enum):
    """How a member relates to a message in its read mark."""

    SENDER = "sender"
    RECEIVER = "receiver"


class CourseStatus(str, Enum):
    """Publication status of a course."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class HeartTarget(str, Enum):
    """Entities that can receive a heart."""

    LESSON = "lesson"
    COURSE = "course"
    MESSAGE = "message"
