"""Project-wide constant values."""
from __future__ import annotations

POSTS_TABLE = "posts"
POST_IMAGES_TABLE = "post_images"
POST_CATEGORIES_TABLE = "post_categories"
POST_TAGS_TABLE = "post_tags"
CATEGORIES_TABLE = "categories"
TAGS_TABLE = "tags"
LIKES_TABLE = "likes"
DISLIKES_TABLE = "dislikes"
COMMENTS_TABLE = "comments"
PROFILES_TABLE = "profiles"
FOLLOWERS_TABLE = "followers"

AVATARS_BUCKET = "avatars"
BANNERS_BUCKET = "banners"
POSTS_BUCKET = "posts"

INCREMENT_VIEW_COUNT_RPC = "increment_view_count"

__all__ = [
    "POSTS_TABLE",
    "POST_IMAGES_TABLE",
    "POST_CATEGORIES_TABLE",
    "POST_TAGS_TABLE",
    "CATEGORIES_TABLE",
    "TAGS_TABLE",
    "LIKES_TABLE",
    "DISLIKES_TABLE",
    "COMMENTS_TABLE",
    "PROFILES_TABLE",
    "FOLLOWERS_TABLE",
    "AVATARS_BUCKET",
    "BANNERS_BUCKET",
    "POSTS_BUCKET",
    "INCREMENT_VIEW_COUNT_RPC",
]
