"""httpx client for a hosted PostgREST-style backend-as-a-service."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Sequence
from urllib.parse import quote

import httpx

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

logger = logging.getLogger(__name__)

_RESERVED = set(',()"\\ :')


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _format_member(value: Any) -> str:
    text = _format_value(value)
    if any(char in _RESERVED for char in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def filter_params(filters: Filters | None) -> list[tuple[str, str]]:
    """Translate an equality filter map into PostgREST query parameters."""

    params: list[tuple[str, str]] = []
    for name, value in (filters or {}).items():
        if value is None:
            params.append((name, "is.null"))
        elif is_membership(value):
            members = ",".join(_format_member(item) for item in value)
            params.append((name, f"in.({members})"))
        else:
            params.append((name, f"eq.{_format_value(value)}"))
    return params


def _encode(payload: Any) -> bytes:
    return json.dumps(payload, default=str).encode("utf-8")


class RestRemoteService:
    """Talks to ``/rest/v1``, ``/auth/v1`` and ``/storage/v1`` of the hosted backend.

    Row subscriptions are served by polling the row every ``poll_interval``
    seconds and reporting differences.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 15.0,
        poll_interval: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._poll_interval = poll_interval
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=timeout, transport=transport)
        self._access_token: str | None = None
        self._user_id: str | None = None
        self._auth_listeners: list[AuthListener] = []
        self._poll_tasks: set[asyncio.Task[None]] = set()

    # -- transport -----------------------------------------------------------

    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _error_from(response: httpx.Response) -> RemoteServiceError:
        payload: Any = None
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = (
                payload.get("message")
                or payload.get("error_description")
                or payload.get("msg")
                or payload.get("error")
                or response.reason_phrase
            )
            code = payload.get("code") or payload.get("statusCode") or str(response.status_code)
            return RemoteServiceError(str(message), code=str(code), details=payload.get("details"))
        return RemoteServiceError(
            response.text[:200] or response.reason_phrase,
            code=str(response.status_code),
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Sequence[tuple[str, str]] | None = None,
        payload: Any = None,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        extra = dict(headers or {})
        if payload is not None:
            content = _encode(payload)
            extra.setdefault("Content-Type", "application/json")
        try:
            response = await self._client.request(
                method,
                path,
                params=list(params or []),
                content=content,
                headers=self._headers(extra),
            )
        except httpx.HTTPError as exc:
            logger.warning("Backend request %s %s failed: %s", method, path, exc)
            raise RemoteServiceError("Backend request failed", code="network", details=str(exc)) from exc
        if response.is_error:
            error = self._error_from(response)
            logger.warning("Backend returned %s for %s %s: %s", response.status_code, method, path, error.message)
            raise error
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteServiceError("Backend returned a non-JSON response", code="PGRST102") from exc

    # -- table operations ----------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        filters: Filters | None = None,
        order: Order | Sequence[Order] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        if has_empty_membership(filters):
            return []
        params = [("select", ",".join(columns) if columns else "*")]
        params += filter_params(filters)
        orders = normalize_orders(order)
        if orders:
            params.append(("order", ",".join(f"{o.column}.{'asc' if o.ascending else 'desc'}" for o in orders)))
        if limit is not None:
            params.append(("limit", str(limit)))
        response = await self._request("GET", f"/rest/v1/{table}", params=params)
        return list(self._json(response) or [])

    async def insert(self, table: str, rows: Row | Sequence[Row]) -> list[Row]:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            payload=normalize_rows(rows),
            headers={"Prefer": "return=representation"},
        )
        return list(self._json(response) or [])

    async def update(self, table: str, values: Row, *, filters: Filters) -> list[Row]:
        if has_empty_membership(filters):
            return []
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=filter_params(filters),
            payload=dict(values),
            headers={"Prefer": "return=representation"},
        )
        return list(self._json(response) or [])

    async def delete(self, table: str, *, filters: Filters) -> int:
        if has_empty_membership(filters):
            return 0
        response = await self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=filter_params(filters),
            headers={"Prefer": "return=representation"},
        )
        return len(self._json(response) or [])

    async def count(self, table: str, *, filters: Filters | None = None) -> int:
        if has_empty_membership(filters):
            return 0
        response = await self._request(
            "GET",
            f"/rest/v1/{table}",
            params=[("select", "*"), *filter_params(filters)],
            headers={"Prefer": "count=exact", "Range-Unit": "items", "Range": "0-0"},
        )
        content_range = response.headers.get("content-range", "")
        total = content_range.rsplit("/", 1)[-1]
        if not total.isdigit():
            raise RemoteServiceError("Backend did not report an exact count", code="PGRST103", details=content_range)
        return int(total)

    async def rpc(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        response = await self._request("POST", f"/rest/v1/rpc/{name}", payload=dict(params or {}))
        return self._json(response)

    # -- auth ----------------------------------------------------------------

    def _set_session(self, access_token: str | None, user_id: str | None) -> None:
        changed = user_id != self._user_id
        self._access_token = access_token
        self._user_id = user_id
        if changed:
            for listener in list(self._auth_listeners):
                try:
                    listener(user_id)
                except Exception:
                    logger.exception("Auth state listener failed")

    async def sign_in_with_password(self, email: str, password: str) -> str:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params=[("grant_type", "password")],
            payload={"email": email, "password": password},
        )
        data = self._json(response) or {}
        token = data.get("access_token")
        user_id = (data.get("user") or {}).get("id")
        if not token or not user_id:
            raise RemoteServiceError("Sign-in response is missing the session", code="401")
        self._set_session(token, str(user_id))
        return str(user_id)

    async def sign_out(self) -> None:
        try:
            if self._access_token:
                await self._request("POST", "/auth/v1/logout")
        finally:
            self._set_session(None, None)

    async def get_session_user(self) -> str | None:
        return self._user_id

    async def get_user(self) -> str | None:
        """Ask the backend who the current token belongs to."""

        if not self._access_token:
            return None
        response = await self._request("GET", "/auth/v1/user")
        data = self._json(response) or {}
        user_id = data.get("id")
        return str(user_id) if user_id else None

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        self._auth_listeners.append(listener)

        def _remove() -> None:
            if listener in self._auth_listeners:
                self._auth_listeners.remove(listener)

        return CallbackSubscription(_remove)

    # -- realtime ------------------------------------------------------------

    def subscribe_row(self, table: str, row_id: Any, callback: RowCallback) -> Subscription:
        async def _poll() -> None:
            last: Row | None = None
            try:
                rows = await self.select(table, filters={"id": row_id}, limit=1)
                last = rows[0] if rows else None
            except RemoteServiceError:
                logger.warning("Initial fetch for %s subscription failed", table)
            while True:
                await asyncio.sleep(self._poll_interval)
                try:
                    rows = await self.select(table, filters={"id": row_id}, limit=1)
                except RemoteServiceError:
                    logger.warning("Polling %s row %s failed", table, row_id)
                    continue
                current = rows[0] if rows else None
                if current == last:
                    continue
                event = "UPDATE" if current is not None else "DELETE"
                try:
                    callback(RowChange(event, table, current, last))
                except Exception:
                    logger.exception("Row subscriber for %s failed", table)
                last = current

        task = asyncio.get_running_loop().create_task(_poll())
        self._poll_tasks.add(task)
        task.add_done_callback(self._poll_tasks.discard)
        return CallbackSubscription(task.cancel)

    # -- storage -------------------------------------------------------------

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        await self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            content=data,
            headers={
                "Content-Type": content_type or "application/octet-stream",
                "x-upsert": "true" if upsert else "false",
            },
        )
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{bucket}/{quote(path)}"

    async def aclose(self) -> None:
        for task in list(self._poll_tasks):
            task.cancel()
        if self._poll_tasks:
            await asyncio.gather(*self._poll_tasks, return_exceptions=True)
        await self._client.aclose()


__all__ = ["RestRemoteService", "filter_params"]
