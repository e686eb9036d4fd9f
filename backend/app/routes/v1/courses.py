# backend/app/routes/v1/courses.py
"""
Course chat routes - API v1

    POST /{course_id}/chat         -> Owner opens the course group chat
    POST /{course_id}/enrollments  -> Add a buyer to the course chats (admin; called on purchase)
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import (
    get_conversation_service,
    get_current_active_user,
    get_notifier,
    require_roles,
)
from ...core.enums import RoleName
from ...models.user import User
from ...realtime.notifier import FanoutNotifier
from ...schemas.chat import ConversationOut, CreateChatOut, EnrollRequest
from ...services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["courses-v1"])


@router.post("/{course_id}/chat", response_model=CreateChatOut)
async def create_course_chat(
    course_id: str,
    current_user: User = Depends(get_current_active_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> CreateChatOut:
    conversation, created = await asyncio.to_thread(
        service.create_course_group, course_id, current_user.id
    )
    out = CreateChatOut(chat=ConversationOut.from_conversation(conversation), created=created)
    if created:
        await notifier.notify_members(out.chat.id)
    return out


@router.post("/{course_id}/enrollments", response_model=list[ConversationOut])
async def enroll_member(
    course_id: str,
    request: EnrollRequest,
    _admin: User = Depends(require_roles(RoleName.ADMIN.value)),
    service: ConversationService = Depends(get_conversation_service),
    notifier: FanoutNotifier = Depends(get_notifier),
) -> list[ConversationOut]:
    joined = await asyncio.to_thread(service.enroll_course_member, course_id, request.user_id)
    out = [ConversationOut.from_conversation(conversation) for conversation in joined]
    for conversation in out:
        await notifier.notify_members(conversation.id)
    return out
