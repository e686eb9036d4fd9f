# backend/app/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

Bearer tokens are decoded by ``app.auth``; these wrappers add the active
check and role gates used by the routes.
"""

import logging
from typing import Awaitable, Callable

from fastapi import Depends, HTTPException, status

from ...auth import get_current_user
from ...models.user import User

logger = logging.getLogger(__name__)

__all__ = ["get_current_user", "get_current_active_user", "require_roles"]


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Get the current authenticated and active user.

    Raises:
        HTTPException: If user is not active
    """
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


def require_roles(*roles: str) -> Callable[..., Awaitable[User]]:
    """Ensure the current user possesses at least one of the provided roles."""

    required = {role.lower() for role in roles}

    async def checker(current_user: User = Depends(get_current_active_user)) -> User:
        user_roles = {name.lower() for name in current_user.role_names}
        if not required.intersection(user_roles):
            logger.info(f"User {current_user.id} lacks role(s) {sorted(required)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User lacks required role(s): {', '.join(sorted(required))}",
            )
        return current_user

    return checker
