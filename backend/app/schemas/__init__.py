# backend/app/schemas/__init__.py
"""
Pydantic schemas for Coursehub chat.

Outgoing shapes read straight from ORM rows (StandardizedModel); incoming
payloads drop unknown keys and accept camelCase aliases (InputModel).
"""

from .base import InputModel, StandardizedModel

# Chat schemas - real-time events and HTTP routes
from .chat import (
    AddMembersRequest,
    AttachmentOut,
    ChatDetail,
    ChatListOut,
    ConnectionUserOut,
    ConversationOut,
    ConversationSummary,
    CreateChatOut,
    CreateChatRequest,
    EnrollRequest,
    ErrorOut,
    GetChatPayload,
    HeartOut,
    HeartRequest,
    HeartToggleOut,
    LastMessageOut,
    LoginPayload,
    MemberOut,
    MessageOut,
    NewMember,
    ReadPayload,
    ReplyTargetOut,
    RoomPayload,
    SendMessagePayload,
    SuccessOut,
    UpdateChatRequest,
    UserBrief,
)

__all__ = [
    # Base
    "InputModel",
    "StandardizedModel",
    # Outgoing
    "AttachmentOut",
    "ChatDetail",
    "ChatListOut",
    "ConnectionUserOut",
    "ConversationOut",
    "ConversationSummary",
    "CreateChatOut",
    "ErrorOut",
    "HeartOut",
    "HeartToggleOut",
    "LastMessageOut",
    "MemberOut",
    "MessageOut",
    "ReplyTargetOut",
    "SuccessOut",
    "UserBrief",
    # Real-time input
    "GetChatPayload",
    "LoginPayload",
    "ReadPayload",
    "RoomPayload",
    "SendMessagePayload",
    # HTTP input
    "AddMembersRequest",
    "CreateChatRequest",
    "EnrollRequest",
    "HeartRequest",
    "NewMember",
    "UpdateChatRequest",
]
