# backend/app/repositories/heart_repository.py
"""Heart Repository."""

from typing import Optional, cast

from sqlalchemy.orm import Session

from ..models.heart import Heart
from .base_repository import BaseRepository


class HeartRepository(BaseRepository[Heart]):
    def __init__(self, db: Session):
        super().__init__(db, Heart)

    def find(self, user_id: str, target_type: str, target_id: str) -> Optional[Heart]:
        return cast(
            Optional[Heart],
            self.find_one_by(user_id=user_id, target_type=target_type, target_id=target_id),
        )

    def count_for_target(self, target_type: str, target_id: str) -> int:
        return self.count(target_type=target_type, target_id=target_id)
