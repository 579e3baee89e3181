"""Category and tag catalogs offered when writing a post."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Sequence, TypeVar

from ..clients.base import Order, RemoteDataService, RemoteServiceError
from ..constants import CATEGORIES_TABLE, TAGS_TABLE
from ..schemas import Category, MutationResult, ServiceError, Tag

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", Category, Tag)


def _clean_names(names: Iterable[str]) -> list[str]:
    cleaned: list[str] = []
    for name in names:
        text = (name or "").strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def _merge_ids(existing: Sequence[int], created: Sequence[int]) -> list[int]:
    return list(dict.fromkeys([*existing, *created]))


class CatalogStore:
    """Holds every category and tag; new names are inserted on demand."""

    def __init__(self, remote: RemoteDataService) -> None:
        self._remote = remote
        self._categories: list[Category] = []
        self._tags: list[Tag] = []
        self.loading = False

    @property
    def categories(self) -> list[Category]:
        return list(self._categories)

    @property
    def tags(self) -> list[Tag]:
        return list(self._tags)

    async def fetch_catalog(self) -> None:
        self.loading = True
        try:
            categories, tags = await asyncio.gather(
                self._remote.select(CATEGORIES_TABLE, columns=["id", "name"], order=Order("name")),
                self._remote.select(TAGS_TABLE, columns=["id", "name"], order=Order("name")),
            )
        except RemoteServiceError:
            logger.exception("Failed to load categories and tags")
            return
        finally:
            self.loading = False
        self._categories = [Category.model_validate(row) for row in categories]
        self._tags = [Tag.model_validate(row) for row in tags]

    async def _insert(self, table: str, model: type[ItemT], names: list[str]) -> list[ItemT]:
        rows = await self._remote.insert(table, [{"name": name} for name in names])
        return [model.model_validate(row) for row in rows]

    async def create_category(self, name: str) -> MutationResult[Category]:
        names = _clean_names([name])
        if not names:
            return MutationResult.failure(ServiceError.validation("Category name cannot be empty"))
        try:
            created = await self._insert(CATEGORIES_TABLE, Category, names)
        except RemoteServiceError as exc:
            logger.error("Error creating category %r: %s", names[0], exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        self._categories = [*self._categories, *created]
        return MutationResult.success(created[0] if created else None)

    async def create_tag(self, name: str) -> MutationResult[Tag]:
        names = _clean_names([name])
        if not names:
            return MutationResult.failure(ServiceError.validation("Tag name cannot be empty"))
        try:
            created = await self._insert(TAGS_TABLE, Tag, names)
        except RemoteServiceError as exc:
            logger.error("Error creating tag %r: %s", names[0], exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        self._tags = [*self._tags, *created]
        return MutationResult.success(created[0] if created else None)

    async def resolve_category_ids(
        self, selected_ids: Sequence[int], new_names: Iterable[str] = ()
    ) -> MutationResult[list[int]]:
        """Insert ``new_names`` and return them merged with ``selected_ids``, duplicates dropped."""

        names = _clean_names(new_names)
        if not names:
            return MutationResult.success(_merge_ids(selected_ids, []))
        try:
            created = await self._insert(CATEGORIES_TABLE, Category, names)
        except RemoteServiceError as exc:
            logger.error("Failed to create categories %s: %s", names, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        self._categories = [*self._categories, *created]
        return MutationResult.success(_merge_ids(selected_ids, [item.id for item in created]))

    async def resolve_tag_ids(
        self, selected_ids: Sequence[int], new_names: Iterable[str] = ()
    ) -> MutationResult[list[int]]:
        names = _clean_names(new_names)
        if not names:
            return MutationResult.success(_merge_ids(selected_ids, []))
        try:
            created = await self._insert(TAGS_TABLE, Tag, names)
        except RemoteServiceError as exc:
            logger.error("Failed to create tags %s: %s", names, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        self._tags = [*self._tags, *created]
        return MutationResult.success(_merge_ids(selected_ids, [item.id for item in created]))


__all__ = ["CatalogStore"]
