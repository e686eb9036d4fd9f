# backend/app/services/heart_service.py
"""
Heart Service.

A heart targets a lesson, a course or a message. ``HEART_TARGETS`` is the
capability table mapping each HeartTarget tag to the model that must hold
the target id; there is no lookup by attribute name.
"""

import logging
from typing import Dict, Optional, Tuple, Type

from sqlalchemy.orm import Session

from ..core.enums import HeartTarget
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..models.course import Course, Lesson
from ..models.message import Message
from ..repositories.base_repository import BaseRepository
from ..repositories.chat_member_repository import ChatMemberRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.heart_repository import HeartRepository
from .base import BaseService

logger = logging.getLogger(__name__)

HEART_TARGETS: Dict[HeartTarget, Type] = {
    HeartTarget.LESSON: Lesson,
    HeartTarget.COURSE: Course,
    HeartTarget.MESSAGE: Message,
}


class HeartService(BaseService):
    def __init__(
        self,
        db: Session,
        heart_repository: Optional[HeartRepository] = None,
        member_repository: Optional[ChatMemberRepository] = None,
    ):
        super().__init__(db)
        self.heart_repository = heart_repository or RepositoryFactory.create_heart_repository(db)
        self.member_repository = member_repository or RepositoryFactory.create_chat_member_repository(
            db
        )
        self._target_repositories: Dict[HeartTarget, BaseRepository] = {
            tag: RepositoryFactory.create_base_repository(db, model)
            for tag, model in HEART_TARGETS.items()
        }

    @staticmethod
    def parse_target(target: str) -> HeartTarget:
        try:
            return HeartTarget((target or "").strip().lower())
        except ValueError:
            raise ValidationException(
                f"Unknown heart target: {target}",
                code="INVALID_HEART_TARGET",
                details={"allowed": [t.value for t in HeartTarget]},
            )

    @BaseService.measure_operation("toggle_heart")
    def toggle_heart(self, user_id: str, target: str, target_id: str) -> Tuple[bool, int]:
        """
        Add the user's heart to a target, or remove it if already there.

        Message hearts are limited to active members of the message's conversation.

        Returns:
            (hearted, count) after the toggle
        """
        tag = self.parse_target(target)
        entity = self._target_repositories[tag].get_by_id(target_id, load_relationships=False)
        if entity is None:
            raise NotFoundException(f"{tag.value.capitalize()} not found", code="HEART_TARGET_NOT_FOUND")
        if tag is HeartTarget.MESSAGE:
            if self.member_repository.get_active_membership(entity.conversation_id, user_id) is None:
                raise ForbiddenException(
                    "You are not a member of this conversation", code="NOT_A_MEMBER"
                )

        existing = self.heart_repository.find(user_id, tag.value, target_id)
        with self.transaction():
            if existing is not None:
                self.heart_repository.delete(existing.id)
                hearted = False
            else:
                self.heart_repository.create(user_id=user_id, target_type=tag.value, target_id=target_id)
                hearted = True
        if tag is HeartTarget.MESSAGE:
            self.db.expire(entity, ["hearts"])
        count = self.heart_repository.count_for_target(tag.value, target_id)
        return hearted, count
