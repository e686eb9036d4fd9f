# backend/app/models/course.py
"""
Course and lesson models.

The chat core only needs them for three things: hiding course chats whose
course is not approved, creating course group chats, and validating heart
targets.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import CourseStatus
from ..database import Base
from ..database.soft_delete import SoftDeleteMixin


class Course(SoftDeleteMixin, Base):
    __tablename__ = "courses"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    course_name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=CourseStatus.DRAFT.value)
    owner_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    owner = relationship("User", foreign_keys=[owner_id])
    lessons = relationship("Lesson", back_populates="course", cascade="all, delete-orphan")

    @property
    def is_approved(self) -> bool:
        return self.status == CourseStatus.APPROVED.value

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, status={self.status})>"


class Lesson(SoftDeleteMixin, Base):
    __tablename__ = "lessons"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    course_id = Column(String(26), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    lesson_name = Column(String(255), nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    course = relationship("Course", back_populates="lessons")
