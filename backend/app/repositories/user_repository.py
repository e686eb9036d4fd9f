# backend/app/repositories/user_repository.py
"""
User Repository for Coursehub chat

Handles User lookups needed by the session authenticator and the
conversation resolver.
"""

import logging
from typing import Any, Optional, Sequence, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.rbac import Role
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for User data access."""

    def __init__(self, db: Session):
        """Initialize with User model."""
        super().__init__(db, User)
        self.logger = logging.getLogger(__name__)

    def get_by_id(self, id: Any, load_relationships: bool = True) -> Optional[User]:
        """Get user by ID."""
        if id is None:
            return None
        try:
            return cast(
                Optional[User],
                self.db.query(User).filter(User.id == str(id)).first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting user by ID {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve User: {str(e)}")

    def get_with_roles(self, user_id: str) -> Optional[User]:
        """
        Get user with roles loaded.

        Used by: SessionAuthenticator when binding a connection
        """
        try:
            return cast(
                Optional[User],
                (
                    self.db.query(User)
                    .options(selectinload(User.roles))
                    .filter(User.id == user_id)
                    .first()
                ),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting user with roles {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve User: {str(e)}")

    def get_by_ids(self, user_ids: Sequence[str]) -> list[User]:
        """Get multiple users by IDs."""
        if not user_ids:
            return []
        try:
            return cast(
                list[User],
                self.db.query(User).filter(User.id.in_(list(user_ids))).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting users by IDs: {str(e)}")
            raise RepositoryException(f"Failed to retrieve users: {str(e)}")

    def get_or_create_role(self, name: str) -> Role:
        role = self.db.query(Role).filter(Role.name == name).first()
        if role is None:
            role = Role(name=name)
            self.db.add(role)
            self.db.flush()
        return cast(Role, role)
