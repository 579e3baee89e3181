"""Pydantic schemas for post comments."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from .posts import AuthorSummary


class Comment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    user_id: str
    content: str
    parent_comment_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    author: AuthorSummary | None = None


__all__ = ["Comment"]
