"""Contract for the hosted backend the stores talk to.

The stores only depend on the logical operations below: table-style CRUD
with equality filters, counts, remote procedures, the session identity,
single-row change notifications and bucketed object storage. Filter maps
follow one convention across implementations:

* a scalar value means ``column = value``;
* ``None`` means ``column IS NULL``;
* a list, tuple, set or frozenset means ``column IN (...)``. An empty
  collection matches nothing and implementations return without a round trip.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Sequence

Filters = Mapping[str, Any]
Row = dict[str, Any]


class RemoteServiceError(RuntimeError):
    """Raised when the backend rejects a request or cannot be reached."""

    def __init__(self, message: str, *, code: str | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


@dataclass(frozen=True)
class RowChange:
    """Notification delivered to row subscribers."""

    event: str
    table: str
    new: Row | None
    old: Row | None = None


RowCallback = Callable[[RowChange], None]
AuthListener = Callable[[str | None], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


class CallbackSubscription:
    """Subscription handle that runs ``on_unsubscribe`` at most once."""

    def __init__(self, on_unsubscribe: Callable[[], None]) -> None:
        self._on_unsubscribe: Callable[[], None] | None = on_unsubscribe

    @property
    def active(self) -> bool:
        return self._on_unsubscribe is not None

    def unsubscribe(self) -> None:
        callback, self._on_unsubscribe = self._on_unsubscribe, None
        if callback is not None:
            callback()


class RemoteDataService(Protocol):
    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        filters: Filters | None = None,
        order: Order | Sequence[Order] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        ...

    async def insert(self, table: str, rows: Row | Sequence[Row]) -> list[Row]:
        ...

    async def update(self, table: str, values: Row, *, filters: Filters) -> list[Row]:
        ...

    async def delete(self, table: str, *, filters: Filters) -> int:
        ...

    async def count(self, table: str, *, filters: Filters | None = None) -> int:
        ...

    async def rpc(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        ...

    async def get_session_user(self) -> str | None:
        ...

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        ...

    def subscribe_row(self, table: str, row_id: Any, callback: RowCallback) -> Subscription:
        ...

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...

    async def aclose(self) -> None:
        ...


def is_membership(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def has_empty_membership(filters: Filters | None) -> bool:
    """True when a filter can match no rows at all."""

    if not filters:
        return False
    return any(is_membership(value) and not value for value in filters.values())


def normalize_orders(order: Order | Sequence[Order] | None) -> list[Order]:
    if order is None:
        return []
    if isinstance(order, Order):
        return [order]
    return list(order)


def normalize_rows(rows: Row | Sequence[Row]) -> list[Row]:
    if isinstance(rows, Mapping):
        return [dict(rows)]
    return [dict(row) for row in rows]


__all__ = [
    "AuthListener",
    "CallbackSubscription",
    "Filters",
    "Order",
    "RemoteDataService",
    "RemoteServiceError",
    "Row",
    "RowCallback",
    "RowChange",
    "Subscription",
    "has_empty_membership",
    "is_membership",
    "normalize_orders",
    "normalize_rows",
]
