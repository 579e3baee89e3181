"""Comments of the currently open post."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from ..clients.base import Order, RemoteDataService, RemoteServiceError, Row
from ..constants import COMMENTS_TABLE, PROFILES_TABLE
from ..schemas import AuthorSummary, Comment, MutationResult, ServiceError
from .post_store import PostStore

logger = logging.getLogger(__name__)

_AUTHOR_COLUMNS = ["id", "name", "avatar_url", "slug"]


class CommentStore:
    """Holds the comment list for one post and keeps ``comments_count`` in step.

    Author checks on update/delete are left to the backend: both writes are
    filtered by the session user's id.
    """

    def __init__(self, remote: RemoteDataService, posts: PostStore) -> None:
        self._remote = remote
        self._posts = posts
        self._comments: list[Comment] = []
        self.post_id: int | None = None
        self.loading = False

    @property
    def comments(self) -> list[Comment]:
        return list(self._comments)

    def clear(self) -> None:
        self._comments = []
        self.post_id = None

    async def _with_authors(self, rows: Iterable[Row]) -> list[Comment]:
        rows = list(rows)
        profiles = await self._remote.select(
            PROFILES_TABLE,
            columns=_AUTHOR_COLUMNS,
            filters={"id": sorted({row["user_id"] for row in rows})},
        )
        authors = {row["id"]: AuthorSummary.model_validate(row) for row in profiles}
        return [Comment.model_validate({**row, "author": authors.get(row["user_id"])}) for row in rows]

    async def fetch_comments(self, post_id: int) -> None:
        """Replace the list with the post's comments, oldest first."""

        self.loading = True
        try:
            rows = await self._remote.select(
                COMMENTS_TABLE,
                filters={"post_id": post_id},
                order=Order("created_at"),
            )
            self._comments = await self._with_authors(rows)
            self.post_id = post_id
        except RemoteServiceError:
            logger.exception("Error fetching comments for post %s", post_id)
        finally:
            self.loading = False

    def _bump_post_counter(self, post_id: int, delta: int) -> None:
        post = self._posts.get_post(post_id)
        if post is not None:
            self._posts.update_post_comments_count(post_id, max(0, post.comments_count + delta))

    async def add_comment(
        self,
        post_id: int,
        content: str,
        parent_comment_id: int | None = None,
    ) -> MutationResult[Comment]:
        user_id = await self._remote.get_session_user()
        if user_id is None:
            return MutationResult.failure(ServiceError.auth_required())
        text = (content or "").strip()
        if not text:
            return MutationResult.failure(ServiceError.validation("Comment cannot be empty"))

        self.loading = True
        try:
            rows = await self._remote.insert(
                COMMENTS_TABLE,
                {
                    "post_id": post_id,
                    "user_id": user_id,
                    "content": text,
                    "parent_comment_id": parent_comment_id,
                },
            )
            if not rows:
                return MutationResult.failure(ServiceError.remote("No data returned after comment creation"))
            comment = (await self._with_authors(rows[:1]))[0]
        except RemoteServiceError as exc:
            logger.error("Error adding comment to post %s: %s", post_id, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        finally:
            self.loading = False

        if post_id == self.post_id:
            self._comments = [*self._comments, comment]
        self._bump_post_counter(post_id, +1)
        return MutationResult.success(comment)

    async def update_comment(self, comment_id: int, new_content: str) -> MutationResult[Comment]:
        user_id = await self._remote.get_session_user()
        if user_id is None:
            return MutationResult.failure(ServiceError.auth_required())
        text = (new_content or "").strip()
        if not text:
            return MutationResult.failure(ServiceError.validation("Comment cannot be empty"))

        self.loading = True
        try:
            updated = await self._remote.update(
                COMMENTS_TABLE,
                {"content": text, "updated_at": datetime.now(timezone.utc)},
                filters={"id": comment_id, "user_id": user_id},
            )
            if not updated:
                return MutationResult.failure(ServiceError.not_found(f"Comment {comment_id} not found"))
            # Second round trip for the row with its author joined.
            rows = await self._remote.select(COMMENTS_TABLE, filters={"id": comment_id}, limit=1)
            if not rows:
                return MutationResult.failure(ServiceError.not_found(f"Comment {comment_id} not found"))
            comment = (await self._with_authors(rows))[0]
        except RemoteServiceError as exc:
            logger.error("Error updating comment %s: %s", comment_id, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        finally:
            self.loading = False

        self._comments = [comment if existing.id == comment_id else existing for existing in self._comments]
        return MutationResult.success(comment)

    async def delete_comment(self, comment_id: int) -> MutationResult[None]:
        user_id = await self._remote.get_session_user()
        if user_id is None:
            return MutationResult.failure(ServiceError.auth_required())

        existing = next((comment for comment in self._comments if comment.id == comment_id), None)
        if existing is None:
            return MutationResult.failure(ServiceError.not_found(f"Comment {comment_id} not found"))

        self.loading = True
        try:
            deleted = await self._remote.delete(COMMENTS_TABLE, filters={"id": comment_id, "user_id": user_id})
        except RemoteServiceError as exc:
            logger.error("Error deleting comment %s: %s", comment_id, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        finally:
            self.loading = False

        if not deleted:
            # Row filter on user_id matched nothing: not the author, or already gone.
            return MutationResult.failure(ServiceError.not_found(f"Comment {comment_id} not found"))

        self._comments = [comment for comment in self._comments if comment.id != comment_id]
        self._bump_post_counter(existing.post_id, -1)
        return MutationResult.success()


__all__ = ["CommentStore"]
