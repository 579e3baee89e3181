"""Pydantic schemas for user profiles."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .posts import Post


class Profile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    slug: str | None = None
    avatar_url: str | None = None
    banner_url: str | None = None
    bio: str | None = None
    role: Literal["ADM", "US"] | None = None
    position: str | None = None
    website: str | None = None
    location: str | None = None
    birth_date: date | None = None
    social_media_links: Any = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.slug or self.id


class ProfileUpdate(BaseModel):
    """Editable profile fields. Only fields that were set are sent."""

    name: str | None = Field(default=None, max_length=150)
    first_name: str | None = Field(default=None, max_length=150)
    last_name: str | None = Field(default=None, max_length=150)
    slug: str | None = Field(default=None, max_length=150)
    avatar_url: str | None = None
    banner_url: str | None = None
    bio: str | None = None
    position: str | None = None
    website: str | None = None
    location: str | None = None
    birth_date: date | None = None
    social_media_links: Any = None


class PublicProfile(BaseModel):
    """Everything the public profile screen shows for one user."""

    profile: Profile
    posts: list[Post] = Field(default_factory=list)
    follower_count: int = 0
    following_count: int = 0
    is_following: bool = False


__all__ = ["Profile", "ProfileUpdate", "PublicProfile"]
