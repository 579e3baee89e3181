"""Session-scoped post list and the denormalised counters it owns."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from slugify import slugify

from ..clients.base import Order, RemoteDataService, RemoteServiceError, Row
from ..constants import (
    CATEGORIES_TABLE,
    POST_CATEGORIES_TABLE,
    POST_IMAGES_TABLE,
    POST_TAGS_TABLE,
    POSTS_TABLE,
    TAGS_TABLE,
)
from ..schemas import (
    Category,
    MutationResult,
    Post,
    PostCreate,
    PostImage,
    PostUpdate,
    ServiceError,
    Tag,
)

logger = logging.getLogger(__name__)

_COUNTER_FIELDS = ("likes_count", "dislikes_count", "views_count", "comments_count")


class PostStore:
    """Single source of truth for fetched posts.

    Counters are only changed through :meth:`update_post_likes`,
    :meth:`update_post_dislikes`, :meth:`update_post_comments_count` and
    :meth:`increment_post_view`; the reaction and comment stores call these
    instead of touching posts directly.
    """

    def __init__(self, remote: RemoteDataService) -> None:
        self._remote = remote
        self._posts: list[Post] = []
        self.loading = False

    @property
    def posts(self) -> list[Post]:
        return list(self._posts)

    # -- reads ---------------------------------------------------------------

    async def _attach_children(self, rows: Sequence[Row]) -> list[Post]:
        post_ids = [row["id"] for row in rows]
        images = await self._remote.select(
            POST_IMAGES_TABLE, filters={"post_id": post_ids}, order=Order("id")
        )
        category_links = await self._remote.select(POST_CATEGORIES_TABLE, filters={"post_id": post_ids})
        tag_links = await self._remote.select(POST_TAGS_TABLE, filters={"post_id": post_ids})
        categories = await self._remote.select(
            CATEGORIES_TABLE, filters={"id": sorted({link["category_id"] for link in category_links})}
        )
        tags = await self._remote.select(TAGS_TABLE, filters={"id": sorted({link["tag_id"] for link in tag_links})})

        categories_by_id = {row["id"]: Category.model_validate(row) for row in categories}
        tags_by_id = {row["id"]: Tag.model_validate(row) for row in tags}

        posts: list[Post] = []
        for row in rows:
            post_id = row["id"]
            posts.append(
                Post.model_validate(
                    {
                        **row,
                        "post_images": [
                            PostImage.model_validate(image) for image in images if image["post_id"] == post_id
                        ],
                        "categories": [
                            categories_by_id[link["category_id"]]
                            for link in category_links
                            if link["post_id"] == post_id and link["category_id"] in categories_by_id
                        ],
                        "tags": [
                            tags_by_id[link["tag_id"]]
                            for link in tag_links
                            if link["post_id"] == post_id and link["tag_id"] in tags_by_id
                        ],
                    }
                )
            )
        return posts

    async def fetch_posts(self) -> None:
        """Replace the local list with a fresh fetch, newest first."""

        self.loading = True
        try:
            rows = await self._remote.select(POSTS_TABLE, order=Order("created_at", ascending=False))
            self._posts = await self._attach_children(rows)
        except RemoteServiceError:
            logger.exception("Error fetching posts")
        finally:
            self.loading = False

    async def fetch_posts_by_author(self, user_id: str) -> list[Post]:
        try:
            rows = await self._remote.select(
                POSTS_TABLE,
                filters={"user_id": user_id},
                order=Order("created_at", ascending=False),
            )
            return await self._attach_children(rows)
        except RemoteServiceError:
            logger.exception("Error fetching posts for author %s", user_id)
            return []

    def get_post_by_slug(self, slug: str) -> Post | None:
        return next((post for post in self._posts if post.slug == slug), None)

    def get_post(self, post_id: int) -> Post | None:
        return next((post for post in self._posts if post.id == post_id), None)

    # -- counter setters -----------------------------------------------------

    def _set_field(self, post_id: int, field: str, value: int) -> None:
        if value < 0:
            raise ValueError(f"{field} cannot be negative (got {value})")
        self._posts = [
            post.model_copy(update={field: value}) if post.id == post_id else post for post in self._posts
        ]

    def update_post_likes(self, post_id: int, new_count: int) -> None:
        self._set_field(post_id, "likes_count", new_count)

    def update_post_dislikes(self, post_id: int, new_count: int) -> None:
        self._set_field(post_id, "dislikes_count", new_count)

    def update_post_comments_count(self, post_id: int, new_count: int) -> None:
        self._set_field(post_id, "comments_count", new_count)

    def increment_post_view(self, post_id: int) -> None:
        post = self.get_post(post_id)
        if post is not None:
            self._set_field(post_id, "views_count", post.views_count + 1)

    # -- child rows ----------------------------------------------------------

    async def _insert_images(self, post_id: int, image_urls: Iterable[str]) -> list[PostImage]:
        rows = [{"post_id": post_id, "image_url": url} for url in image_urls]
        if not rows:
            return []
        try:
            return [PostImage.model_validate(row) for row in await self._remote.insert(POST_IMAGES_TABLE, rows)]
        except RemoteServiceError:
            logger.exception("Error inserting images for post %s", post_id)
            return []

    async def _insert_categories(self, post_id: int, category_ids: Iterable[int]) -> list[Category]:
        rows = [{"post_id": post_id, "category_id": category_id} for category_id in category_ids]
        if not rows:
            return []
        try:
            await self._remote.insert(POST_CATEGORIES_TABLE, rows)
            found = await self._remote.select(
                CATEGORIES_TABLE, filters={"id": [row["category_id"] for row in rows]}
            )
        except RemoteServiceError:
            logger.exception("Error inserting categories for post %s", post_id)
            return []
        by_id = {row["id"]: Category.model_validate(row) for row in found}
        return [by_id[row["category_id"]] for row in rows if row["category_id"] in by_id]

    async def _insert_tags(self, post_id: int, tag_ids: Iterable[int]) -> list[Tag]:
        rows = [{"post_id": post_id, "tag_id": tag_id} for tag_id in tag_ids]
        if not rows:
            return []
        try:
            await self._remote.insert(POST_TAGS_TABLE, rows)
            found = await self._remote.select(TAGS_TABLE, filters={"id": [row["tag_id"] for row in rows]})
        except RemoteServiceError:
            logger.exception("Error inserting tags for post %s", post_id)
            return []
        by_id = {row["id"]: Tag.model_validate(row) for row in found}
        return [by_id[row["tag_id"]] for row in rows if row["tag_id"] in by_id]

    async def _replace_children(
        self,
        post_id: int,
        image_urls: Sequence[str],
        category_ids: Sequence[int],
        tag_ids: Sequence[int],
    ) -> dict[str, Any]:
        # Replace-all: old rows are deleted before new ones go in, one table at a time.
        children: dict[str, Any] = {}
        for table, key, insert in (
            (POST_IMAGES_TABLE, "post_images", lambda: self._insert_images(post_id, image_urls)),
            (POST_CATEGORIES_TABLE, "categories", lambda: self._insert_categories(post_id, category_ids)),
            (POST_TAGS_TABLE, "tags", lambda: self._insert_tags(post_id, tag_ids)),
        ):
            try:
                await self._remote.delete(table, filters={"post_id": post_id})
            except RemoteServiceError:
                logger.exception("Error clearing %s for post %s", table, post_id)
            children[key] = await insert()
        return children

    # -- mutations -----------------------------------------------------------

    async def create_post(
        self,
        data: PostCreate,
        image_urls: Sequence[str] = (),
        category_ids: Sequence[int] = (),
        tag_ids: Sequence[int] = (),
    ) -> MutationResult[Post]:
        payload = data.model_dump()
        payload["slug"] = data.slug or slugify(data.title)
        if not payload["slug"]:
            return MutationResult.failure(ServiceError.validation("Slug cannot be empty"))
        try:
            rows = await self._remote.insert(POSTS_TABLE, payload)
        except RemoteServiceError as exc:
            logger.error("Error creating post %r: %s", payload["slug"], exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        if not rows:
            return MutationResult.failure(ServiceError.remote("No data returned after post creation"))

        row = rows[0]
        post_id = row["id"]
        post = Post.model_validate(
            {
                **row,
                "post_images": await self._insert_images(post_id, image_urls),
                "categories": await self._insert_categories(post_id, category_ids),
                "tags": await self._insert_tags(post_id, tag_ids),
                **{field: 0 for field in _COUNTER_FIELDS},
            }
        )
        self._posts = [post, *self._posts]
        return MutationResult.success(post)

    async def update_post(
        self,
        post_id: int,
        changes: PostUpdate,
        image_urls: Sequence[str] = (),
        category_ids: Sequence[int] = (),
        tag_ids: Sequence[int] = (),
    ) -> MutationResult[Post]:
        values = changes.model_dump(exclude_unset=True)
        try:
            if values:
                rows = await self._remote.update(POSTS_TABLE, values, filters={"id": post_id})
            else:
                rows = await self._remote.select(POSTS_TABLE, filters={"id": post_id})
        except RemoteServiceError as exc:
            logger.error("Error updating post %s: %s", post_id, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        if not rows:
            return MutationResult.failure(ServiceError.not_found(f"Post {post_id} not found"))

        children = await self._replace_children(post_id, image_urls, category_ids, tag_ids)
        previous = self.get_post(post_id)
        counters = {
            field: values[field] if field in values else (getattr(previous, field) if previous else 0)
            for field in _COUNTER_FIELDS
        }
        post = Post.model_validate({**rows[0], **children, **counters})
        self._posts = [post if existing.id == post_id else existing for existing in self._posts]
        return MutationResult.success(post)

    async def delete_post(self, post_id: int) -> MutationResult[None]:
        try:
            await self._remote.delete(POSTS_TABLE, filters={"id": post_id})
        except RemoteServiceError as exc:
            logger.error("Error deleting post %s: %s", post_id, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        self._posts = [post for post in self._posts if post.id != post_id]
        return MutationResult.success()


__all__ = ["PostStore", "slugify"]
