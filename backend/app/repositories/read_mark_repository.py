# backend/app/repositories/read_mark_repository.py
"""
ReadMark Repository.

All read-state writes load the rows and update them through the ORM so the
session identity map never holds stale read flags.
"""

from datetime import datetime
from typing import Dict, List, Sequence, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.message import ReadMark
from .base_repository import BaseRepository


class ReadMarkRepository(BaseRepository[ReadMark]):
    """Repository for ReadMark entity operations."""

    def __init__(self, db: Session):
        super().__init__(db, ReadMark)

    def list_for_message(self, message_id: str) -> List[ReadMark]:
        return self.find_by(message_id=message_id)

    def count_unread(self, member_id: str) -> int:
        try:
            return cast(
                int,
                self.db.query(ReadMark)
                .filter(ReadMark.chat_member_id == member_id, ReadMark.read.is_(False))
                .count(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting unread for member {member_id}: {str(e)}")
            raise RepositoryException(f"Failed to count read marks: {str(e)}")

    def unread_counts(self, member_ids: Sequence[str]) -> Dict[str, int]:
        """Unread counts keyed by member id; members with nothing unread are omitted."""
        if not member_ids:
            return {}
        try:
            rows = (
                self.db.query(ReadMark.chat_member_id, func.count(ReadMark.id))
                .filter(ReadMark.chat_member_id.in_(list(member_ids)), ReadMark.read.is_(False))
                .group_by(ReadMark.chat_member_id)
                .all()
            )
            return {member_id: int(count) for member_id, count in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting unread marks: {str(e)}")
            raise RepositoryException(f"Failed to count read marks: {str(e)}")

    def all_read(self, message_id: str) -> bool:
        try:
            pending = (
                self.db.query(ReadMark.id)
                .filter(ReadMark.message_id == message_id, ReadMark.read.is_(False))
                .first()
            )
            return pending is None
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking read marks of {message_id}: {str(e)}")
            raise RepositoryException(f"Failed to check read marks: {str(e)}")

    def mark_read(self, member_ids: Sequence[str], read_at: datetime) -> int:
        """Set read/read_at/force_read on every unread mark of the given members."""
        if not member_ids:
            return 0
        try:
            marks = (
                self.db.query(ReadMark)
                .filter(ReadMark.chat_member_id.in_(list(member_ids)), ReadMark.read.is_(False))
                .all()
            )
            for mark in marks:
                mark.read = True
                mark.read_at = read_at
                mark.force_read = True
            self.db.flush()
            return len(marks)
        except SQLAlchemyError as e:
            self.logger.error(f"Error marking read: {str(e)}")
            raise RepositoryException(f"Failed to update read marks: {str(e)}")
