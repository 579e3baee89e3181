"""Convenience exports for ORM models."""
from .comment import Comment
from .follow import Follower
from .post import Category, Post, PostCategory, PostImage, PostTag, Tag
from .profile import Profile
from .reaction import Dislike, Like

__all__ = [
    "Category",
    "Comment",
    "Dislike",
    "Follower",
    "Like",
    "Post",
    "PostCategory",
    "PostImage",
    "PostTag",
    "Profile",
    "Tag",
]
