"""Like/dislike state for the signed-in user, kept mutually exclusive per post."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable

from ..clients.base import RemoteDataService, RemoteServiceError
from ..constants import DISLIKES_TABLE, LIKES_TABLE
from ..schemas import ReactionKind, ReactionResult, ReactionState, ServiceError, ServiceErrorCode
from .post_store import PostStore

logger = logging.getLogger(__name__)

_TABLES = {ReactionKind.LIKE: LIKES_TABLE, ReactionKind.DISLIKE: DISLIKES_TABLE}


@dataclass(frozen=True, slots=True)
class _Snapshot:
    liked: bool
    disliked: bool
    likes_count: int | None
    dislikes_count: int | None


class ReactionStore:
    """Owns ``user_likes``/``user_dislikes`` and performs toggles against the backend.

    Toggles are optimistic: the local sets and the post counters change
    before the backend is awaited. At most one toggle per post is in flight;
    a second toggle on the same post while the first is pending is ignored.
    Other posts are not blocked. Switching from one reaction to the other
    deletes the old row, then inserts the new one; the insert is attempted
    even when the delete fails.

    Failed writes are reported in the returned :class:`ReactionResult`. Local
    state is left as is unless ``rollback_on_error`` is set, in which case it
    is reverted to whatever the backend is known to hold.
    """

    def __init__(self, remote: RemoteDataService, posts: PostStore, *, rollback_on_error: bool = False) -> None:
        self._remote = remote
        self._posts = posts
        self.rollback_on_error = rollback_on_error
        self._user_id: str | None = None
        self._sets: dict[ReactionKind, set[int]] = {ReactionKind.LIKE: set(), ReactionKind.DISLIKE: set()}
        self._in_flight: set[int] = set()

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def user_likes(self) -> frozenset[int]:
        return frozenset(self._sets[ReactionKind.LIKE])

    @property
    def user_dislikes(self) -> frozenset[int]:
        return frozenset(self._sets[ReactionKind.DISLIKE])

    @property
    def loading_post_ids(self) -> frozenset[int]:
        return frozenset(self._in_flight)

    @property
    def loading(self) -> bool:
        return bool(self._in_flight)

    def is_loading(self, post_id: int) -> bool:
        return post_id in self._in_flight

    def user_has_liked(self, post_id: int) -> bool:
        return post_id in self._sets[ReactionKind.LIKE]

    def user_has_disliked(self, post_id: int) -> bool:
        return post_id in self._sets[ReactionKind.DISLIKE]

    def state_for(self, post_id: int) -> ReactionState:
        if self.user_has_liked(post_id):
            return ReactionState.LIKED
        if self.user_has_disliked(post_id):
            return ReactionState.DISLIKED
        return ReactionState.NEUTRAL

    # -- session lifecycle -------------------------------------------------

    async def load_for_user(self, user_id: str) -> None:
        """Rebuild both sets from the backend for a freshly signed-in user."""

        self._user_id = user_id
        self._sets = {ReactionKind.LIKE: set(), ReactionKind.DISLIKE: set()}
        filters = {"user_id": user_id}
        try:
            likes, dislikes = await asyncio.gather(
                self._remote.select(LIKES_TABLE, columns=["post_id"], filters=filters),
                self._remote.select(DISLIKES_TABLE, columns=["post_id"], filters=filters),
            )
        except RemoteServiceError:
            logger.exception("Error loading reactions for user %s", user_id)
            return

        if self._user_id != user_id:
            # Signed out or switched user while the fetch was pending.
            return

        liked = {row["post_id"] for row in likes}
        disliked = {row["post_id"] for row in dislikes}
        overlap = liked & disliked
        if overlap:
            logger.warning("Posts %s are both liked and disliked by %s; keeping the like", sorted(overlap), user_id)
        self._sets = {ReactionKind.LIKE: liked, ReactionKind.DISLIKE: disliked - overlap}

    def clear(self) -> None:
        # Toggles still pending keep their in-flight flag until they finish.
        self._user_id = None
        self._sets = {ReactionKind.LIKE: set(), ReactionKind.DISLIKE: set()}

    # -- toggles -----------------------------------------------------------

    async def toggle_like(self, post_id: int) -> ReactionResult:
        return await self._toggle(post_id, ReactionKind.LIKE)

    async def toggle_dislike(self, post_id: int) -> ReactionResult:
        return await self._toggle(post_id, ReactionKind.DISLIKE)

    def _adjust_counter(self, post_id: int, kind: ReactionKind, delta: int) -> None:
        post = self._posts.get_post(post_id)
        if post is None:
            return
        if kind is ReactionKind.LIKE:
            self._posts.update_post_likes(post_id, max(0, post.likes_count + delta))
        else:
            self._posts.update_post_dislikes(post_id, max(0, post.dislikes_count + delta))

    def _snapshot(self, post_id: int) -> _Snapshot:
        post = self._posts.get_post(post_id)
        return _Snapshot(
            liked=self.user_has_liked(post_id),
            disliked=self.user_has_disliked(post_id),
            likes_count=post.likes_count if post else None,
            dislikes_count=post.dislikes_count if post else None,
        )

    def _restore(self, post_id: int, snapshot: _Snapshot) -> None:
        for kind, member in ((ReactionKind.LIKE, snapshot.liked), (ReactionKind.DISLIKE, snapshot.disliked)):
            if member:
                self._sets[kind].add(post_id)
            else:
                self._sets[kind].discard(post_id)
        if snapshot.likes_count is not None:
            self._posts.update_post_likes(post_id, snapshot.likes_count)
        if snapshot.dislikes_count is not None:
            self._posts.update_post_dislikes(post_id, snapshot.dislikes_count)

    async def _attempt(self, write: Awaitable[Any], description: str) -> RemoteServiceError | None:
        try:
            await write
        except RemoteServiceError as exc:
            logger.error("Error on %s: %s", description, exc)
            return exc
        return None

    async def _toggle(self, post_id: int, kind: ReactionKind) -> ReactionResult:
        user_id = self._user_id
        if user_id is None:
            logger.warning("User not authenticated. Cannot toggle %s on post %s.", kind.value, post_id)
            return ReactionResult(post_id, self.state_for(post_id), applied=False, error=ServiceError.auth_required())
        if post_id in self._in_flight:
            logger.debug("Reaction on post %s already in flight; ignoring %s", post_id, kind.value)
            return ReactionResult(post_id, self.state_for(post_id), applied=False)

        self._in_flight.add(post_id)
        snapshot = self._snapshot(post_id)
        target = self._sets[kind]
        opposite = self._sets[kind.opposite]
        removing = post_id in target
        switching = not removing and post_id in opposite

        if removing:
            target.discard(post_id)
            self._adjust_counter(post_id, kind, -1)
        else:
            if switching:
                opposite.discard(post_id)
                self._adjust_counter(post_id, kind.opposite, -1)
            target.add(post_id)
            self._adjust_counter(post_id, kind, +1)

        filters = {"user_id": user_id, "post_id": post_id}
        opposite_error: RemoteServiceError | None = None
        try:
            if removing:
                write_error = await self._attempt(
                    self._remote.delete(_TABLES[kind], filters=filters), f"remove {kind.value} on post {post_id}"
                )
            else:
                if switching:
                    # A failed delete does not skip the insert.
                    opposite_error = await self._attempt(
                        self._remote.delete(_TABLES[kind.opposite], filters=filters),
                        f"remove {kind.opposite.value} on post {post_id}",
                    )
                write_error = await self._attempt(
                    self._remote.insert(_TABLES[kind], {"user_id": user_id, "post_id": post_id}),
                    f"add {kind.value} on post {post_id}",
                )
        finally:
            self._in_flight.discard(post_id)

        if opposite_error is None and write_error is None:
            return ReactionResult(post_id, self.state_for(post_id))

        partial = switching and (opposite_error is None) != (write_error is None)
        code = ServiceErrorCode.PARTIAL_WRITE if partial else ServiceErrorCode.REMOTE
        error = ServiceError.from_exception(write_error or opposite_error, code=code)
        if self.rollback_on_error and self._user_id == user_id and write_error is not None:
            self._restore(post_id, snapshot)
            if partial:
                # The backend already dropped the opposite reaction.
                self._sets[kind.opposite].discard(post_id)
                self._adjust_counter(post_id, kind.opposite, -1)
        return ReactionResult(post_id, self.state_for(post_id), applied=True, error=error)


__all__ = ["ReactionStore"]
