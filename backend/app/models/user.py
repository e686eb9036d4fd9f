# backend/app/models/user.py
"""
User model for Coursehub.

Only the fields the chat core reads are modelled here: identity, display
names, the active flag and role memberships.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import Mapped, relationship
import ulid

from ..database import Base
from ..database.soft_delete import SoftDeleteMixin

if TYPE_CHECKING:
    from .rbac import Role


class User(SoftDeleteMixin, Base):
    """
    Platform user.

    Attributes:
        id: ULID primary key
        email: Unique email address used for login
        username: Public handle shown in chats
        first_name / last_name: Display names
        is_active: Deactivated users cannot log in on a connection
        roles: Platform roles (many-to-many through user_roles)
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    roles: Mapped[List["Role"]] = relationship(
        "Role",
        secondary="user_roles",
        back_populates="users",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User {self.id} {self.username}>"

    @property
    def role_names(self) -> List[str]:
        return [role.name for role in self.roles]
