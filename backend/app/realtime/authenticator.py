# backend/app/realtime/authenticator.py
"""Session Authenticator: bearer credential → identity snapshot for a connection."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..auth import user_id_from_token
from ..core.exceptions import UnauthorizedException
from ..repositories.factory import RepositoryFactory
from .connection import ConnectionUser
from .store import SessionFactory, run_in_session

logger = logging.getLogger(__name__)


def _load_user(db: Session, user_id: str) -> Optional[ConnectionUser]:
    user = RepositoryFactory.create_user_repository(db).get_with_roles(user_id)
    if user is None or not user.is_active:
        return None
    return ConnectionUser(
        id=user.id,
        username=user.username,
        email=user.email,
        roles=tuple(user.role_names),
    )


class SessionAuthenticator:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def authenticate(self, token: Optional[str]) -> ConnectionUser:
        """
        Resolve the user behind an access token.

        Raises:
            UnauthorizedException: bad token, unknown or inactive user
        """
        user_id = user_id_from_token(token)
        user = await run_in_session(self.session_factory, _load_user, user_id)
        if user is None:
            logger.warning(f"[WS] Login for unknown or inactive user {user_id}")
            raise UnauthorizedException("Could not validate credentials")
        return user
