"""Pydantic schemas for posts and the rows joined onto them."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PostImage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    image_url: str


class Category(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class Tag(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class AuthorSummary(BaseModel):
    """Embedded author profile shown next to posts and comments."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None = None
    avatar_url: str | None = None
    slug: str | None = None


class Post(BaseModel):
    """Client-side mirror of a post row with its child rows joined."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    content: str = ""
    description: str = ""
    slug: str
    likes_count: int = Field(default=0, ge=0)
    dislikes_count: int = Field(default=0, ge=0)
    views_count: int = Field(default=0, ge=0)
    comments_count: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    post_images: list[PostImage] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)
    author: AuthorSummary | None = None


class PostCreate(BaseModel):
    """Payload used when constructing a post."""

    user_id: str
    title: str = Field(..., min_length=1, max_length=255)
    content: str = ""
    description: str = ""
    slug: str | None = None


class PostUpdate(BaseModel):
    """Partial update of a post row. Unset fields are left untouched."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    content: str | None = None
    description: str | None = None
    slug: str | None = None
    likes_count: int | None = Field(default=None, ge=0)
    dislikes_count: int | None = Field(default=None, ge=0)
    views_count: int | None = Field(default=None, ge=0)
    comments_count: int | None = Field(default=None, ge=0)


__all__ = [
    "AuthorSummary",
    "Category",
    "Post",
    "PostCreate",
    "PostImage",
    "PostUpdate",
    "Tag",
]
