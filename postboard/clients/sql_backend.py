"""In-process backend over the SQLAlchemy tables in :mod:`postboard.models`.

Behaves like the hosted service from the stores' point of view: counters on
``posts`` are maintained server side after reaction and comment writes, the
view counter is bumped by a remote procedure, and row subscribers hear about
committed changes.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .. import models  # noqa: F401
from ..constants import (
    COMMENTS_TABLE,
    DISLIKES_TABLE,
    INCREMENT_VIEW_COUNT_RPC,
    LIKES_TABLE,
    POSTS_TABLE,
)
from ..database import Base, SessionLocal
from .base import (
    AuthListener,
    CallbackSubscription,
    Filters,
    Order,
    RemoteServiceError,
    Row,
    RowCallback,
    RowChange,
    Subscription,
    has_empty_membership,
    is_membership,
    normalize_orders,
    normalize_rows,
)
from .spaces_storage import ObjectStorage, StorageConfigurationError

logger = logging.getLogger(__name__)

# Child table -> counter column on posts kept in sync after every write.
COUNTER_SOURCES: dict[str, str] = {
    LIKES_TABLE: "likes_count",
    DISLIKES_TABLE: "dislikes_count",
    COMMENTS_TABLE: "comments_count",
}


class LocalAuth:
    """Session identity for the in-process backend."""

    def __init__(self) -> None:
        self._user_id: str | None = None
        self._listeners: list[AuthListener] = []

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        self._user_id = str(user_id)
        self._notify()

    def sign_out(self) -> None:
        self._user_id = None
        self._notify()

    def on_change(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return CallbackSubscription(_remove)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._user_id)
            except Exception:
                logger.exception("Auth state listener failed")


def _error_from(exc: SQLAlchemyError) -> RemoteServiceError:
    if isinstance(exc, IntegrityError):
        text = str(exc.orig).lower()
        code = "23505" if "unique" in text else "23503"
        return RemoteServiceError("Constraint violation", code=code, details=str(exc.orig))
    return RemoteServiceError("Database error", code="XX000", details=str(exc))


class SqlRemoteService:
    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session] | None = None,
        *,
        storage: ObjectStorage | None = None,
        auth: LocalAuth | None = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._storage = storage
        self.auth = auth or LocalAuth()
        self._row_subscribers: dict[tuple[str, str], list[RowCallback]] = {}
        # One unit of work at a time; SQLite connections are shared through the pool.
        self._lock = threading.Lock()
        self._procedures: dict[str, Callable[..., Any]] = {
            INCREMENT_VIEW_COUNT_RPC: self._increment_view_count,
        }

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _table(name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise RemoteServiceError(f"Unknown table {name!r}", code="42P01")
        return table

    @staticmethod
    def _column(table: Table, name: str):
        column = table.c.get(name)
        if column is None:
            raise RemoteServiceError(f"Unknown column {name!r} on {table.name!r}", code="42703")
        return column

    def _where(self, table: Table, filters: Filters | None) -> list[Any]:
        clauses = []
        for name, value in (filters or {}).items():
            column = self._column(table, name)
            if value is None:
                clauses.append(column.is_(None))
            elif is_membership(value):
                clauses.append(column.in_(list(value)))
            else:
                clauses.append(column == value)
        return clauses

    @staticmethod
    def _pk_clause(table: Table, row: Mapping[str, Any]) -> list[Any]:
        return [column == row[column.name] for column in table.primary_key.columns]

    def _fetch_one(self, session: Session, table: Table, row: Mapping[str, Any]) -> Row | None:
        found = session.execute(select(table).where(*self._pk_clause(table, row))).first()
        return dict(found._mapping) if found is not None else None

    def _sync_counters(self, session: Session, table_name: str, post_ids: set[Any]) -> None:
        counter = COUNTER_SOURCES.get(table_name)
        if counter is None or not post_ids:
            return
        source = self._table(table_name)
        posts = self._table(POSTS_TABLE)
        for post_id in post_ids:
            total = (
                select(func.count())
                .select_from(source)
                .where(source.c.post_id == post_id)
                .scalar_subquery()
            )
            session.execute(update(posts).where(posts.c.id == post_id).values({counter: total}))

    def _execute(self, work: Callable[[Session, list[RowChange]], Any], changes: list[RowChange]) -> Any:
        with self._lock, self._session_factory() as session:
            try:
                result = work(session, changes)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.warning("Backend statement failed: %s", exc)
                raise _error_from(exc) from exc
        return result

    async def _run(self, work: Callable[[Session, list[RowChange]], Any]) -> Any:
        # Statements run in a worker thread; subscribers are notified back on the loop.
        changes: list[RowChange] = []
        result = await asyncio.to_thread(self._execute, work, changes)
        self._dispatch(changes)
        return result

    def _dispatch(self, changes: Sequence[RowChange]) -> None:
        for change in changes:
            row = change.new if change.new is not None else change.old
            if row is None:
                continue
            table = self._table(change.table)
            pk_name = next(iter(table.primary_key.columns)).name
            for callback in list(self._row_subscribers.get((change.table, str(row.get(pk_name))), [])):
                try:
                    callback(change)
                except Exception:
                    logger.exception("Row subscriber for %s failed", change.table)

    # -- table operations --------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        filters: Filters | None = None,
        order: Order | Sequence[Order] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        target = self._table(table)
        if has_empty_membership(filters):
            return []

        def _work(session: Session, _changes: list[RowChange]) -> list[Row]:
            if columns and "*" not in columns:
                statement = select(*[self._column(target, name) for name in columns])
            else:
                statement = select(target)
            statement = statement.where(*self._where(target, filters))
            for item in normalize_orders(order):
                column = self._column(target, item.column)
                statement = statement.order_by(column.asc() if item.ascending else column.desc())
            statement = statement.order_by(*[column.asc() for column in target.primary_key.columns])
            if limit is not None:
                statement = statement.limit(limit)
            return [dict(row._mapping) for row in session.execute(statement)]

        return await self._run(_work)

    async def insert(self, table: str, rows: Row | Sequence[Row]) -> list[Row]:
        target = self._table(table)
        payload = normalize_rows(rows)
        for row in payload:
            for name in row:
                self._column(target, name)

        def _work(session: Session, changes: list[RowChange]) -> list[Row]:
            inserted: list[Row] = []
            for row in payload:
                result = session.execute(insert(target).values(**row))
                pk_values = dict(
                    zip([column.name for column in target.primary_key.columns], result.inserted_primary_key)
                )
                stored = self._fetch_one(session, target, pk_values)
                if stored is not None:
                    inserted.append(stored)
                    changes.append(RowChange("INSERT", table, stored))
            self._sync_counters(session, table, {row["post_id"] for row in inserted if "post_id" in row})
            return inserted

        return await self._run(_work)

    async def update(self, table: str, values: Row, *, filters: Filters) -> list[Row]:
        target = self._table(table)
        for name in values:
            self._column(target, name)
        if has_empty_membership(filters):
            return []

        def _work(session: Session, changes: list[RowChange]) -> list[Row]:
            clauses = self._where(target, filters)
            matched = [dict(row._mapping) for row in session.execute(select(target).where(*clauses))]
            if not matched:
                return []
            session.execute(update(target).where(*clauses).values(**values))
            updated: list[Row] = []
            for old in matched:
                key = {column.name: values.get(column.name, old[column.name]) for column in target.primary_key.columns}
                stored = self._fetch_one(session, target, key)
                if stored is not None:
                    updated.append(stored)
                    changes.append(RowChange("UPDATE", table, stored, old))
            return updated

        return await self._run(_work)

    async def delete(self, table: str, *, filters: Filters) -> int:
        target = self._table(table)
        if has_empty_membership(filters):
            return 0

        def _work(session: Session, changes: list[RowChange]) -> int:
            clauses = self._where(target, filters)
            matched = [dict(row._mapping) for row in session.execute(select(target).where(*clauses))]
            if not matched:
                return 0
            session.execute(delete(target).where(*clauses))
            changes.extend(RowChange("DELETE", table, None, old) for old in matched)
            self._sync_counters(session, table, {row["post_id"] for row in matched if "post_id" in row})
            return len(matched)

        return await self._run(_work)

    async def count(self, table: str, *, filters: Filters | None = None) -> int:
        target = self._table(table)
        if has_empty_membership(filters):
            return 0

        def _work(session: Session, _changes: list[RowChange]) -> int:
            statement = select(func.count()).select_from(target).where(*self._where(target, filters))
            return int(session.scalar(statement) or 0)

        return await self._run(_work)

    # -- procedures --------------------------------------------------------

    def register_procedure(self, name: str, procedure: Callable[..., Any]) -> None:
        """Register ``procedure(session, **params)`` under ``name``."""
        self._procedures[name] = procedure

    async def rpc(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        procedure = self._procedures.get(name)
        if procedure is None:
            raise RemoteServiceError(f"Could not find the function {name}", code="PGRST202")
        arguments = dict(params or {})
        return await self._run(lambda session, _changes: procedure(session, **arguments))

    def _increment_view_count(self, session: Session, post_slug: str) -> None:
        posts = self._table(POSTS_TABLE)
        session.execute(
            update(posts).where(posts.c.slug == post_slug).values(views_count=posts.c.views_count + 1)
        )

    # -- auth ----------------------------------------------------------------

    async def get_session_user(self) -> str | None:
        await asyncio.sleep(0)
        return self.auth.user_id

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        return self.auth.on_change(listener)

    def sign_in(self, user_id: str) -> None:
        self.auth.sign_in(user_id)

    def sign_out(self) -> None:
        self.auth.sign_out()

    # -- realtime ----------------------------------------------------------

    def subscribe_row(self, table: str, row_id: Any, callback: RowCallback) -> Subscription:
        self._table(table)
        key = (table, str(row_id))
        self._row_subscribers.setdefault(key, []).append(callback)

        def _remove() -> None:
            callbacks = self._row_subscribers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._row_subscribers.pop(key, None)

        return CallbackSubscription(_remove)

    # -- storage -----------------------------------------------------------

    def _require_storage(self) -> ObjectStorage:
        if self._storage is None:
            raise StorageConfigurationError("Object storage is not configured for this backend")
        return self._storage

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        return await self._require_storage().upload(bucket, path, data, content_type=content_type, upsert=upsert)

    def public_url(self, bucket: str, path: str) -> str:
        return self._require_storage().public_url(bucket, path)

    async def aclose(self) -> None:
        self._row_subscribers.clear()


__all__ = ["COUNTER_SOURCES", "LocalAuth", "SqlRemoteService"]
