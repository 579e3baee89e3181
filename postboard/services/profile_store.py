"""The signed-in user's own profile and follower counts."""
from __future__ import annotations

import asyncio
import logging

from ..clients.base import RemoteDataService, RemoteServiceError, RowChange, Subscription
from ..constants import FOLLOWERS_TABLE, PROFILES_TABLE
from ..schemas import MutationResult, Profile, ProfileUpdate, ServiceError

logger = logging.getLogger(__name__)


class ProfileStore:
    def __init__(self, remote: RemoteDataService) -> None:
        self._remote = remote
        self.profile: Profile | None = None
        self.follower_count = 0
        self.following_count = 0
        self.loading = False
        self._subscription: Subscription | None = None

    async def load(self, user_id: str) -> None:
        """Fetch profile and both follow counts together, then watch the profile row."""

        self.loading = True
        try:
            rows, followers, following = await asyncio.gather(
                self._remote.select(PROFILES_TABLE, filters={"id": user_id}, limit=1),
                self._remote.count(FOLLOWERS_TABLE, filters={"following_id": user_id}),
                self._remote.count(FOLLOWERS_TABLE, filters={"follower_id": user_id}),
            )
        except RemoteServiceError:
            logger.exception("Failed to fetch profile data for %s", user_id)
            return
        finally:
            self.loading = False

        self.profile = Profile.model_validate(rows[0]) if rows else None
        self.follower_count = followers
        self.following_count = following
        self._watch(user_id)

    def _watch(self, user_id: str) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._subscription = self._remote.subscribe_row(PROFILES_TABLE, user_id, self._on_change)

    def _on_change(self, change: RowChange) -> None:
        if change.new is None:
            self.profile = None
            return
        self.profile = Profile.model_validate(change.new)

    async def update_profile(self, changes: ProfileUpdate) -> MutationResult[Profile]:
        user_id = await self._remote.get_session_user()
        if user_id is None:
            return MutationResult.failure(ServiceError.auth_required())
        values = changes.model_dump(exclude_unset=True)
        if not values:
            return MutationResult.failure(ServiceError.validation("No changes detected"))
        try:
            rows = await self._remote.update(PROFILES_TABLE, values, filters={"id": user_id})
        except RemoteServiceError as exc:
            logger.error("Error updating profile %s: %s", user_id, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        if not rows:
            return MutationResult.failure(ServiceError.not_found("Profile not found"))
        self.profile = Profile.model_validate(rows[0])
        return MutationResult.success(self.profile)

    def clear(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.profile = None
        self.follower_count = 0
        self.following_count = 0


__all__ = ["ProfileStore"]
