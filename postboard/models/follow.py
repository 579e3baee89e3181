"""SQLAlchemy ORM model for follower relationships."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, String

from postboard.database import Base
from .base import utcnow


class Follower(Base):
    __tablename__ = "followers"

    follower_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    following_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


__all__ = ["Follower"]
