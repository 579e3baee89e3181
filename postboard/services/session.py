"""Wires the stores together for one signed-in (or anonymous) session."""
from __future__ import annotations

import asyncio
import logging

from ..clients.base import RemoteDataService, Subscription
from ..config import Settings, get_settings
from ..schemas import Post
from .catalog_store import CatalogStore
from .comment_store import CommentStore
from .follow_service import FollowService
from .post_store import PostStore
from .profile_store import ProfileStore
from .reaction_store import ReactionStore
from .storage_service import StorageService
from .view_store import ViewStore

logger = logging.getLogger(__name__)


class AppSession:
    def __init__(self, remote: RemoteDataService, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.remote = remote
        self.posts = PostStore(remote)
        self.reactions = ReactionStore(
            remote, self.posts, rollback_on_error=settings.reaction_rollback_on_error
        )
        self.comments = CommentStore(remote, self.posts)
        self.views = ViewStore(remote, self.posts)
        self.profile = ProfileStore(remote)
        self.follows = FollowService(remote, self.posts)
        self.storage = StorageService(remote)
        self.catalog = CatalogStore(remote)
        self._auth_subscription: Subscription | None = None
        self._pending: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Fetch the feed and catalog and, when someone is signed in, their reactions and profile."""

        if self._auth_subscription is None:
            self._auth_subscription = self.remote.on_auth_state_change(self._on_auth_change)
        user_id = await self.remote.get_session_user()
        await asyncio.gather(self.posts.fetch_posts(), self.catalog.fetch_catalog())
        if user_id is not None:
            await self._load_user(user_id)

    async def _load_user(self, user_id: str) -> None:
        await asyncio.gather(self.reactions.load_for_user(user_id), self.profile.load(user_id))

    def _on_auth_change(self, user_id: str | None) -> None:
        if user_id is None:
            logger.info("Signed out; clearing user state")
            self.reactions.clear()
            self.profile.clear()
            self.comments.clear()
            return
        if user_id == self.reactions.user_id:
            return
        logger.info("Signed in as %s; reloading user state", user_id)
        task = asyncio.get_running_loop().create_task(self._load_user(user_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_pending(self) -> None:
        """Wait for reloads scheduled by auth changes."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def open_post(self, slug: str) -> Post | None:
        if self.posts.get_post_by_slug(slug) is None:
            await self.posts.fetch_posts()
        post = self.posts.get_post_by_slug(slug)
        if post is None:
            logger.info("Post %s not found", slug)
            return None
        await asyncio.gather(self.comments.fetch_comments(post.id), self.views.increment_view(slug))
        return self.posts.get_post(post.id)

    async def close(self) -> None:
        if self._auth_subscription is not None:
            self._auth_subscription.unsubscribe()
            self._auth_subscription = None
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)
        self.profile.clear()
        await self.remote.aclose()


__all__ = ["AppSession"]
