# backend/app/routes/v1/chats.py
"""
Chats routes - API v1

Conversation administration under /api/v1/chats. Business logic lives in
the services; after every committed write the fan-out notifier pushes fresh
chat lists to every active member of the conversation.

Endpoints:
    POST /                               -> Resolve/create a conversation for a participant set
    GET /                                -> The caller's chat list (paged after ordering)
    POST /self-archive                   -> Ensure the caller's notes-to-self conversation
    GET /messages/{message_id}           -> One hydrated message
    GET /{conversation_id}               -> Newest-first page of messages
    PATCH /{conversation_id}             -> Rename / change avatar (admin)
    POST /{conversation_id}/members      -> Add members to a group (admin)
    DELETE /{conversation_id}/members/{user_id} -> Remove a regular member (admin)
    POST /{conversation_id}/leave        -> Leave a group or course chat
    POST /{conversation_id}/mute         -> Toggle the caller's mute flag
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import (
    get_chat_list_service,
    get_conversation_service,
    get_current_active_user,
    get_message_service,
    get_notifier,
)
from ...models.user import User
from ...realtime.notifier import FanoutNotifier
from ...schemas.chat import (
    AddMembersRequest,
    ChatDetail,
    ChatListOut,
    ConversationOut,
    CreateChatOut,
    CreateChatRequest,
    MemberOut,
    MessageOut,
    SuccessOut,
    UpdateChatRequest,
)
from ...services.chat_list_service import ChatListService
from ...services.conversation_service import ConversationService
from ...services.message_service import MessageService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["chats-v1"])


# =============================================================================
# Chat list / creation
# =============================================================================


@router.post("", response_model=CreateChatOut)
async def create_chat(
    request: CreateChatRequest,
    current_user: User = Depends(get_current_active_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> CreateChatOut:
    """
    Resolve the conversation for a participant set, creating it if needed.

    The caller is always a participant. A new conversation is pushed to every
    connected member, not just the caller.
    """
    conversation, created = await asyncio.to_thread(
        service.resolve_conversation, current_user.id, request.user_ids
    )
    out = CreateChatOut(chat=ConversationOut.from_conversation(conversation), created=created)
    if created:
        await notifier.notify_members(out.chat.id)
    return out


@router.get("", response_model=ChatListOut)
async def list_chats(
    limit: Optional[int] = Query(None, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_active_user),
    service: ChatListService = Depends(get_chat_list_service),
) -> ChatListOut:
    chats = await asyncio.to_thread(service.chat_list_for, current_user.id)
    page = chats[offset:] if limit is None else chats[offset : offset + limit]
    return ChatListOut(chats=page, total=len(chats))


@router.post("/self-archive", response_model=CreateChatOut)
async def ensure_self_archive(
    current_user: User = Depends(get_current_active_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> CreateChatOut:
    conversation, created = await asyncio.to_thread(service.ensure_self_archive, current_user.id)
    out = CreateChatOut(chat=ConversationOut.from_conversation(conversation), created=created)
    if created:
        await notifier.notify_members(out.chat.id)
    return out


# =============================================================================
# Messages
# =============================================================================


@router.get("/messages/{message_id}", response_model=MessageOut)
async def get_message(
    message_id: str,
    current_user: User = Depends(get_current_active_user),
    service: MessageService = Depends(get_message_service),
) -> MessageOut:
    return await asyncio.to_thread(service.get_message, current_user.id, message_id)


@router.get("/{conversation_id}", response_model=ChatDetail)
async def get_chat(
    conversation_id: str,
    limit: Optional[int] = Query(None, ge=1),
    offset: Optional[int] = Query(None, ge=0),
    current_user: User = Depends(get_current_active_user),
    service: MessageService = Depends(get_message_service),
) -> ChatDetail:
    """Newest-first page; ``remaining`` tells whether older messages exist."""
    return await asyncio.to_thread(service.get_chat, current_user.id, conversation_id, limit, offset)


# =============================================================================
# Administration
# =============================================================================


@router.patch("/{conversation_id}", response_model=ConversationOut)
async def update_chat(
    conversation_id: str,
    request: UpdateChatRequest,
    current_user: User = Depends(get_current_active_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> ConversationOut:
    conversation = await asyncio.to_thread(
        service.update_conversation,
        conversation_id,
        current_user.id,
        request.conversation_name,
        request.avatar_file_id,
    )
    out = ConversationOut.from_conversation(conversation)
    await notifier.notify_members(conversation_id)
    return out


@router.post("/{conversation_id}/members", response_model=List[MemberOut])
async def add_members(
    conversation_id: str,
    request: AddMembersRequest,
    current_user: User = Depends(get_current_active_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> List[MemberOut]:
    added = await asyncio.to_thread(
        service.add_members,
        conversation_id,
        current_user.id,
        [(user.id, user.role) for user in request.users],
    )
    out = [MemberOut.model_validate(member) for member in added]
    if out:
        await notifier.notify_members(conversation_id)
    return out


@router.delete("/{conversation_id}/members/{user_id}", response_model=MemberOut)
async def remove_member(
    conversation_id: str,
    user_id: str,
    current_user: User = Depends(get_current_active_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> MemberOut:
    member = await asyncio.to_thread(service.remove_member, conversation_id, current_user.id, user_id)
    out = MemberOut.model_validate(member)
    await notifier.notify_members(conversation_id, extra_user_ids=[user_id])
    return out


@router.post("/{conversation_id}/leave", response_model=SuccessOut)
async def leave_chat(
    conversation_id: str,
    current_user: User = Depends(get_current_active_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> SuccessOut:
    await asyncio.to_thread(service.leave_conversation, conversation_id, current_user.id)
    await notifier.notify_members(conversation_id, extra_user_ids=[current_user.id])
    return SuccessOut()


@router.post("/{conversation_id}/mute", response_model=MemberOut)
async def toggle_mute(
    conversation_id: str,
    current_user: User = Depends(get_current_active_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> MemberOut:
    member = await asyncio.to_thread(service.toggle_mute, conversation_id, current_user.id)
    out = MemberOut.model_validate(member)
    await notifier.notify_members(conversation_id)
    return out
