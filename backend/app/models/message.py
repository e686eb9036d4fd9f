# backend/app/models/message.py
"""
Message, read-mark and attachment models for the chat core.

Every message gets exactly one ReadMark per member that was ACTIVE when it
was sent. Unread counts and the "seen by all" flag are derived from those
rows, never stored.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import UserView
from ..database import Base
from ..database.soft_delete import SoftDeleteMixin


class Message(SoftDeleteMixin, Base):
    """
    Chat message.

    Immutable after creation apart from ``recalled`` and the attachment
    links set while the message is being sent.
    """

    __tablename__ = "messages"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    conversation_id = Column(
        String(26), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    chat_member_id = Column(
        String(26), ForeignKey("chat_members.id", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=False, default="")
    recalled = Column(Boolean, nullable=False, default=False)
    target_message_id = Column(
        String(26), ForeignKey("messages.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])
    member = relationship("ChatMember", foreign_keys=[chat_member_id])
    target_message = relationship(
        "Message", remote_side=[id], back_populates="replies", foreign_keys=[target_message_id]
    )
    replies = relationship("Message", back_populates="target_message")
    attachments = relationship("Attachment", back_populates="message")
    read_marks = relationship("ReadMark", back_populates="message", cascade="all, delete-orphan")
    hearts = relationship(
        "Heart",
        primaryjoin="and_(foreign(Heart.target_id) == Message.id, Heart.target_type == 'message')",
        viewonly=True,
    )

    __table_args__ = (
        Index("idx_messages_conversation_created", "conversation_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conversation={self.conversation_id})>"


class ReadMark(Base):
    """
    Read state of one message for one member.

    Attributes:
        view: UserView value (sender or receiver)
        read: Whether the member has read the message
        read_at: When it was read
        force_read: Read was recorded by an explicit read action rather than delivery
    """

    __tablename__ = "read_marks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    message_id = Column(String(26), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    chat_member_id = Column(
        String(26), ForeignKey("chat_members.id", ondelete="CASCADE"), nullable=False
    )
    view = Column(String(20), nullable=False, default=UserView.RECEIVER.value)
    read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    force_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    message = relationship("Message", back_populates="read_marks")
    member = relationship("ChatMember", back_populates="read_marks")

    __table_args__ = (
        UniqueConstraint("message_id", "chat_member_id", name="uq_read_marks_message_member"),
        Index("idx_read_marks_member_read", "chat_member_id", "read"),
    )


class Attachment(SoftDeleteMixin, Base):
    """Uploaded file reference, linked to a message once it is sent."""

    __tablename__ = "attachments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    file_id = Column(String(255), nullable=False)
    mimetype = Column(String(120), nullable=True)
    original_name = Column(String(255), nullable=True)
    conversation_id = Column(
        String(26), ForeignKey("conversations.id", ondelete="SET NULL"), nullable=True
    )
    message_id = Column(String(26), ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    message = relationship("Message", back_populates="attachments")
