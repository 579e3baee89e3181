"""Public profiles and follower relationships."""
from __future__ import annotations

import asyncio
import logging

from ..clients.base import RemoteDataService, RemoteServiceError
from ..constants import FOLLOWERS_TABLE, PROFILES_TABLE
from ..schemas import MutationResult, Profile, PublicProfile, ServiceError
from .post_store import PostStore

logger = logging.getLogger(__name__)


class FollowService:
    def __init__(self, remote: RemoteDataService, posts: PostStore) -> None:
        self._remote = remote
        self._posts = posts

    async def load_public_profile(self, slug: str) -> PublicProfile | None:
        try:
            rows = await self._remote.select(PROFILES_TABLE, filters={"slug": slug}, limit=1)
        except RemoteServiceError:
            logger.exception("Error fetching profile %s", slug)
            return None
        if not rows:
            logger.info("Profile %s not found", slug)
            return None

        profile = Profile.model_validate(rows[0])
        viewer_id = await self._remote.get_session_user()
        posts, followers, following, is_following = await asyncio.gather(
            self._posts.fetch_posts_by_author(profile.id),
            self._count(FOLLOWERS_TABLE, following_id=profile.id),
            self._count(FOLLOWERS_TABLE, follower_id=profile.id),
            self._is_following(viewer_id, profile.id),
        )
        return PublicProfile(
            profile=profile,
            posts=posts,
            follower_count=followers,
            following_count=following,
            is_following=is_following,
        )

    async def _count(self, table: str, **filters: str) -> int:
        try:
            return await self._remote.count(table, filters=filters)
        except RemoteServiceError:
            logger.exception("Error counting %s for %s", table, filters)
            return 0

    async def _is_following(self, viewer_id: str | None, target_id: str) -> bool:
        if viewer_id is None:
            return False
        try:
            rows = await self._remote.select(
                FOLLOWERS_TABLE,
                filters={"follower_id": viewer_id, "following_id": target_id},
                limit=1,
            )
        except RemoteServiceError:
            logger.exception("Error checking follow status")
            return False
        return bool(rows)

    async def toggle_follow(self, public: PublicProfile) -> MutationResult[PublicProfile]:
        """Follow or unfollow ``public.profile``; returns the refreshed view model."""

        viewer_id = await self._remote.get_session_user()
        if viewer_id is None:
            return MutationResult.failure(ServiceError.auth_required())
        target_id = public.profile.id
        if viewer_id == target_id:
            return MutationResult.failure(ServiceError.validation("You cannot follow yourself."))

        filters = {"follower_id": viewer_id, "following_id": target_id}
        try:
            if public.is_following:
                await self._remote.delete(FOLLOWERS_TABLE, filters=filters)
            else:
                await self._remote.insert(FOLLOWERS_TABLE, filters)
        except RemoteServiceError as exc:
            logger.error("Follow/unfollow of %s failed: %s", target_id, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))

        delta = -1 if public.is_following else 1
        updated = public.model_copy(
            update={
                "is_following": not public.is_following,
                "follower_count": max(0, public.follower_count + delta),
            }
        )
        logger.info(
            "%s %s",
            "Unfollowed" if public.is_following else "Now following",
            public.profile.display_name,
        )
        return MutationResult.success(updated)


__all__ = ["FollowService"]
