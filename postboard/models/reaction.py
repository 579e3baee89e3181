"""SQLAlchemy ORM models for like and dislike reactions."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from postboard.database import Base
from .base import utcnow


class Like(Base):
    __tablename__ = "likes"

    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Dislike(Base):
    __tablename__ = "dislikes"

    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


__all__ = ["Like", "Dislike"]
