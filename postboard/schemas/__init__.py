"""Convenience exports for schema layer."""
from .comments import Comment
from .posts import AuthorSummary, Category, Post, PostCreate, PostImage, PostUpdate, Tag
from .profiles import Profile, ProfileUpdate, PublicProfile
from .results import (
    MutationResult,
    ReactionKind,
    ReactionResult,
    ReactionState,
    ServiceError,
    ServiceErrorCode,
)

__all__ = [
    "AuthorSummary",
    "Category",
    "Comment",
    "MutationResult",
    "Post",
    "PostCreate",
    "PostImage",
    "PostUpdate",
    "Profile",
    "ProfileUpdate",
    "PublicProfile",
    "ReactionKind",
    "ReactionResult",
    "ReactionState",
    "ServiceError",
    "ServiceErrorCode",
    "Tag",
]
