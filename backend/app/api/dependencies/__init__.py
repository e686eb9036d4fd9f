# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_active_user, get_current_user, require_roles
from .database import get_db
from .services import (
    get_chat_list_service,
    get_conversation_service,
    get_heart_service,
    get_message_service,
    get_notifier,
    get_realtime_hub,
)

__all__ = [
    # Auth
    "get_current_user",
    "get_current_active_user",
    "require_roles",
    # Database
    "get_db",
    # Services
    "get_chat_list_service",
    "get_conversation_service",
    "get_heart_service",
    "get_message_service",
    # Realtime
    "get_notifier",
    "get_realtime_hub",
]
