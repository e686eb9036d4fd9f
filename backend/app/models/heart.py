# backend/app/models/heart.py
"""
Hearts (likes) on lessons, courses and messages.

The target is a tagged reference: ``target_type`` is a HeartTarget value and
``target_id`` points into the table that tag maps to (see
services.heart_service.HEART_TARGETS).
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, UniqueConstraint
import ulid

from ..database import Base


class Heart(Base):
    __tablename__ = "hearts"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    target_type = Column(String(20), nullable=False)
    target_id = Column(String(26), nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("user_id", "target_type", "target_id", name="uq_hearts_user_target"),
        Index("idx_hearts_target", "target_type", "target_id"),
    )
