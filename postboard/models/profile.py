"""SQLAlchemy ORM model for user profiles."""
from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, Date, String, Text
from sqlalchemy.orm import relationship

from postboard.database import Base
from .base import TimestampMixin


def _new_profile_id() -> str:
    return str(uuid.uuid4())


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_new_profile_id)
    email = Column(String(255), unique=True, nullable=True)
    name = Column(String(150), nullable=True)
    first_name = Column(String(150), nullable=True)
    last_name = Column(String(150), nullable=True)
    slug = Column(String(150), unique=True, nullable=True, index=True)
    avatar_url = Column(String(1024), nullable=True)
    banner_url = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)
    role = Column(String(8), nullable=False, server_default="US", default="US")
    position = Column(String(150), nullable=True)
    website = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    birth_date = Column(Date, nullable=True)
    social_media_links = Column(JSON, nullable=True)

    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="author", cascade="all, delete-orphan")


__all__ = ["Profile"]
