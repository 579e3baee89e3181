"""Client-side stores and services."""
from .catalog_store import CatalogStore
from .comment_store import CommentStore
from .follow_service import FollowService
from .post_store import PostStore, slugify
from .profile_store import ProfileStore
from .reaction_store import ReactionStore
from .session import AppSession
from .storage_service import ImageFile, StorageService
from .view_store import ViewStore

__all__ = [
    "AppSession",
    "CatalogStore",
    "CommentStore",
    "FollowService",
    "ImageFile",
    "PostStore",
    "ProfileStore",
    "ReactionStore",
    "StorageService",
    "ViewStore",
    "slugify",
]
