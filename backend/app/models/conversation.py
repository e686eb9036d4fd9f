# backend/app/models/conversation.py
"""
Conversation and membership models for the chat core.

A conversation is addressed on the wire by its room key, a stable string
derived from its participants (direct, self-archive) or its course, or
generated once (group). Membership rows carry a role, a lifecycle status
and a mute flag; there is at most one row per (conversation, user) so a
removed member coming back reuses its row.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import ConversationType, MemberRole, MemberStatus
from ..database import Base
from ..database.soft_delete import SoftDeleteMixin


class Conversation(SoftDeleteMixin, Base):
    """
    Chat thread.

    Attributes:
        id: ULID primary key
        room_id: Room key used to address live connections
        conversation_type: ConversationType value
        conversation_name: Display name
        course_id: Owning course for COURSE_GROUP conversations
        avatar_file_id: Optional avatar file reference
    """

    __tablename__ = "conversations"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    room_id = Column(String(120), nullable=False, unique=True)
    conversation_type = Column(String(20), nullable=False, default=ConversationType.GROUP.value)
    conversation_name = Column(String(120), nullable=False, default="")
    course_id = Column(String(26), ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    avatar_file_id = Column(String(255), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    course = relationship("Course")
    members = relationship(
        "ChatMember",
        back_populates="conversation",
        order_by="ChatMember.created_at",
        cascade="all, delete-orphan",
    )
    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_conversations_type", "conversation_type"),
        Index("idx_conversations_course", "course_id"),
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, room={self.room_id}, type={self.conversation_type})>"

    @property
    def active_members(self) -> List["ChatMember"]:
        return [m for m in self.members if m.status == MemberStatus.ACTIVE.value]

    @property
    def active_user_ids(self) -> List[str]:
        return [m.user_id for m in self.active_members]

    def member_for(self, user_id: str) -> Optional["ChatMember"]:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    @property
    def is_visible(self) -> bool:
        """Course-bound conversations are only listed while their course is approved."""
        if self.course_id is None:
            return True
        return self.course is not None and self.course.is_approved


class ChatMember(Base):
    """
    A user's membership in one conversation.

    Attributes:
        role: MemberRole value
        status: MemberStatus value; only ACTIVE members receive fan-out
        is_mute: Member muted notifications for this conversation
    """

    __tablename__ = "chat_members"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    conversation_id = Column(
        String(26), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False, default=MemberRole.REGULAR.value)
    status = Column(String(20), nullable=False, default=MemberStatus.ACTIVE.value)
    is_mute = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    conversation = relationship("Conversation", back_populates="members")
    user = relationship("User", lazy="joined")
    read_marks = relationship("ReadMark", back_populates="member", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_chat_members_conversation_user"),
        Index("idx_chat_members_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<ChatMember(conversation={self.conversation_id}, user={self.user_id}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE.value

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN.value
