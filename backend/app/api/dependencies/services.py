# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...realtime.hub import RealtimeHub
from ...realtime.notifier import FanoutNotifier
from ...services.chat_list_service import ChatListService
from ...services.conversation_service import ConversationService
from ...services.heart_service import HeartService
from ...services.message_service import MessageService
from .database import get_db

logger = logging.getLogger(__name__)


def get_conversation_service(db: Session = Depends(get_db)) -> ConversationService:
    """Dependency for ConversationService."""
    return ConversationService(db)


def get_message_service(db: Session = Depends(get_db)) -> MessageService:
    return MessageService(db)


def get_chat_list_service(db: Session = Depends(get_db)) -> ChatListService:
    return ChatListService(db)


def get_heart_service(db: Session = Depends(get_db)) -> HeartService:
    return HeartService(db)


def get_realtime_hub(request: Request) -> RealtimeHub:
    """The hub created by ``create_app``; lives on ``app.state.realtime``."""
    return request.app.state.realtime


def get_notifier(hub: RealtimeHub = Depends(get_realtime_hub)) -> FanoutNotifier:
    return hub.notifier
