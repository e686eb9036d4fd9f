# backend/app/schemas/chat.py
"""
Pydantic schemas for the chat core.

Inputs are the payloads clients send on the real-time events and HTTP
routes; outputs are the shapes pushed back (chat list entries, hydrated
messages, member read updates).
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, field_validator

from ..core.constants import MAX_CONVERSATION_NAME_LENGTH, MAX_MESSAGE_LENGTH
from .base import InputModel, StandardizedModel

# ---------------------------------------------------------------------------
# Outgoing
# ---------------------------------------------------------------------------


class UserBrief(StandardizedModel):
    """Public user info embedded in members and messages."""

    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ConnectionUserOut(StandardizedModel):
    """Identity bound to a connection, returned by ``login``."""

    id: str
    username: str
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)


class MemberOut(StandardizedModel):
    """Membership row; also the payload of ``newRead``."""

    id: str
    conversation_id: str
    user_id: str
    role: str
    status: str
    is_mute: bool = False
    user: Optional[UserBrief] = None


class AttachmentOut(StandardizedModel):
    id: str
    file_id: str
    mimetype: Optional[str] = None
    original_name: Optional[str] = None


class HeartOut(StandardizedModel):
    id: str
    user_id: str


class ReplyTargetOut(StandardizedModel):
    id: str
    sender_id: str
    content: str
    recalled: bool = False


class MessageOut(StandardizedModel):
    """Hydrated message as broadcast on ``newMessage``."""

    id: str
    conversation_id: str
    sender_id: str
    chat_member_id: str
    content: str
    recalled: bool = False
    target_message_id: Optional[str] = None
    target_message: Optional[ReplyTargetOut] = None
    created_at: datetime
    updated_at: datetime
    member: Optional[MemberOut] = None
    attachments: List[AttachmentOut] = Field(default_factory=list)
    hearts: List[HeartOut] = Field(default_factory=list)


class LastMessageOut(MessageOut):
    """Last message of a chat list entry; ``seen_by_all`` is computed per read."""

    seen_by_all: bool = False


class ConversationOut(StandardizedModel):
    id: str
    room_id: str
    conversation_type: str
    conversation_name: str
    course_id: Optional[str] = None
    avatar_file_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    members: List[MemberOut] = Field(default_factory=list)

    @classmethod
    def from_conversation(cls, conversation: Any) -> "ConversationOut":
        """Build from an ORM Conversation listing only ACTIVE members."""
        return cls(
            id=conversation.id,
            room_id=conversation.room_id,
            conversation_type=conversation.conversation_type,
            conversation_name=conversation.conversation_name,
            course_id=conversation.course_id,
            avatar_file_id=conversation.avatar_file_id,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
            members=[MemberOut.model_validate(m) for m in conversation.active_members],
        )


class ConversationSummary(StandardizedModel):
    """One entry of a user's chat list."""

    conversation: ConversationOut
    unread_count: int = 0
    is_mute: bool = False
    last_message: Optional[LastMessageOut] = None


class ChatDetail(StandardizedModel):
    """Result of ``getChat``: newest-first page plus whether older messages remain."""

    chat: ConversationOut
    messages: List[MessageOut] = Field(default_factory=list)
    remaining: bool = False


class SuccessOut(StandardizedModel):
    success: bool = True


class ErrorOut(StandardizedModel):
    error: str
    code: Optional[str] = None


# ---------------------------------------------------------------------------
# Incoming (real-time events)
# ---------------------------------------------------------------------------


class LoginPayload(InputModel):
    access_token: str = Field(alias="accessToken", min_length=1)


class GetChatPayload(InputModel):
    id: str = Field(min_length=1)
    limit: Optional[int] = Field(default=None, ge=1)
    offset: Optional[int] = Field(default=None, ge=0)


class RoomPayload(InputModel):
    """``joinRoom`` / ``outRoom``: id is the room key."""

    id: str = Field(min_length=1)


class ReadPayload(InputModel):
    """``read``: id is the conversation id."""

    id: str = Field(min_length=1)


class SendMessagePayload(InputModel):
    id: str = Field(min_length=1)
    content: str = Field(default="", max_length=MAX_MESSAGE_LENGTH)
    attachments: List[str] = Field(default_factory=list)
    target_message_id: Optional[str] = Field(default=None, alias="targetMessageId")

    @field_validator("attachments", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


# ---------------------------------------------------------------------------
# Incoming (HTTP)
# ---------------------------------------------------------------------------


class CreateChatRequest(InputModel):
    """Participant ids; the caller is always added. Shape is checked by the resolver."""

    user_ids: Any = Field(default=None, alias="userIds")


class UpdateChatRequest(InputModel):
    conversation_name: Optional[str] = Field(
        default=None, alias="conversationName", max_length=MAX_CONVERSATION_NAME_LENGTH
    )
    avatar_file_id: Optional[str] = Field(default=None, alias="avatarFileId")


class NewMember(InputModel):
    id: str = Field(min_length=1)
    role: Optional[str] = None


class AddMembersRequest(InputModel):
    users: List[NewMember] = Field(min_length=1)


class HeartRequest(InputModel):
    target: str
    target_id: str = Field(alias="targetId", min_length=1)


class HeartToggleOut(StandardizedModel):
    hearted: bool
    count: int


class EnrollRequest(InputModel):
    user_id: str = Field(alias="userId", min_length=1)


class CreateChatOut(StandardizedModel):
    chat: ConversationOut
    created: bool = False


class ChatListOut(StandardizedModel):
    chats: List[ConversationSummary] = Field(default_factory=list)
    total: int = 0
