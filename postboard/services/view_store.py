"""View counters backed by the ``increment_view_count`` procedure."""
from __future__ import annotations

import logging

from ..clients.base import RemoteDataService, RemoteServiceError
from ..constants import INCREMENT_VIEW_COUNT_RPC, POSTS_TABLE
from .post_store import PostStore

logger = logging.getLogger(__name__)


class ViewStore:
    def __init__(self, remote: RemoteDataService, posts: PostStore) -> None:
        self._remote = remote
        self._posts = posts
        self._view_counts: dict[int, int] = {}
        self.loading = False

    def get_views_count(self, post_id: int) -> int:
        return self._view_counts.get(post_id, 0)

    async def increment_view(self, post_slug: str) -> bool:
        """Record one view server side; mirror it locally when the call succeeds."""

        self.loading = True
        try:
            await self._remote.rpc(INCREMENT_VIEW_COUNT_RPC, {"post_slug": post_slug})
        except RemoteServiceError:
            logger.exception("Error incrementing view count for %s", post_slug)
            return False
        finally:
            self.loading = False

        post = self._posts.get_post_by_slug(post_slug)
        if post is not None:
            self._posts.increment_post_view(post.id)
            if post.id in self._view_counts:
                self._view_counts[post.id] += 1
        return True

    async def fetch_views_count(self, post_id: int) -> int:
        self.loading = True
        try:
            rows = await self._remote.select(
                POSTS_TABLE, columns=["views_count"], filters={"id": post_id}, limit=1
            )
        except RemoteServiceError:
            logger.exception("Error fetching views count for post %s", post_id)
            return 0
        finally:
            self.loading = False

        if not rows:
            return 0
        count = int(rows[0].get("views_count") or 0)
        self._view_counts[post_id] = count
        return count


__all__ = ["ViewStore"]
