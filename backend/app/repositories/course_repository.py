# backend/app/repositories/course_repository.py
"""
Course Repository for Coursehub chat.

Read-only for the chat core: course ownership and approval status decide
who opens a course chat and whether it shows up in chat lists.
"""

from sqlalchemy.orm import Session

from ..models.course import Course
from .base_repository import BaseRepository


class CourseRepository(BaseRepository[Course]):
    """Repository for Course entity operations."""

    def __init__(self, db: Session):
        super().__init__(db, Course)
