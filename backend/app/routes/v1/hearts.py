# backend/app/routes/v1/hearts.py
"""
Hearts routes - API v1

    POST /hearts -> Toggle the caller's heart on a lesson, course or message
"""

import asyncio

from fastapi import APIRouter, Depends

from ...api.dependencies import get_current_active_user, get_heart_service
from ...models.user import User
from ...schemas.chat import HeartRequest, HeartToggleOut
from ...services.heart_service import HeartService

router = APIRouter(tags=["hearts-v1"])


@router.post("", response_model=HeartToggleOut)
async def toggle_heart(
    request: HeartRequest,
    current_user: User = Depends(get_current_active_user),
    service: HeartService = Depends(get_heart_service),
) -> HeartToggleOut:
    hearted, count = await asyncio.to_thread(
        service.toggle_heart, current_user.id, request.target, request.target_id
    )
    return HeartToggleOut(hearted=hearted, count=count)
