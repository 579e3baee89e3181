"""Tests for the httpx-based hosted backend client."""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from postboard.clients import Order, RemoteServiceError, RestRemoteService, create_remote_service
from postboard.clients.rest_backend import filter_params
from postboard.config import Settings

BASE_URL = "https://project.example.test"


def _service(handler, **kwargs) -> RestRemoteService:
    return RestRemoteService(BASE_URL, "anon-key", transport=httpx.MockTransport(handler), **kwargs)


def test_filter_params_follow_the_filter_convention():
    params = filter_params({"post_id": 3, "parent_comment_id": None, "id": [1, 2], "name": ("a,b", "c"), "ok": True})

    assert params == [
        ("post_id", "eq.3"),
        ("parent_comment_id", "is.null"),
        ("id", "in.(1,2)"),
        ("name", 'in.("a,b",c)'),
        ("ok", "eq.true"),
    ]


def test_select_builds_query_and_sends_key():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1, "slug": "first-post"}])

    async def scenario():
        service = _service(handler)
        try:
            return await service.select(
                "posts",
                columns=["id", "slug"],
                filters={"user_id": "alice"},
                order=Order("created_at", ascending=False),
                limit=5,
            )
        finally:
            await service.aclose()

    rows = asyncio.run(scenario())

    assert rows == [{"id": 1, "slug": "first-post"}]
    request = seen[0]
    assert request.url.path == "/rest/v1/posts"
    assert request.url.params["select"] == "id,slug"
    assert request.url.params["user_id"] == "eq.alice"
    assert request.url.params["order"] == "created_at.desc"
    assert request.url.params["limit"] == "5"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"


def test_empty_membership_skips_the_round_trip():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async def scenario():
        service = _service(handler)
        try:
            return (
                await service.select("tags", filters={"id": []}),
                await service.delete("tags", filters={"id": set()}),
                await service.count("tags", filters={"id": ()}),
            )
        finally:
            await service.aclose()

    assert asyncio.run(scenario()) == ([], 0, 0)


def test_writes_request_representation():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "POST":
            return httpx.Response(201, json=json.loads(request.content))
        if request.method == "PATCH":
            return httpx.Response(200, json=[{"id": 4, "content": "edited"}])
        return httpx.Response(200, json=[{"user_id": "bob", "post_id": 1}])

    async def scenario():
        service = _service(handler)
        try:
            inserted = await service.insert("likes", {"user_id": "bob", "post_id": 1})
            updated = await service.update("comments", {"content": "edited"}, filters={"id": 4, "user_id": "bob"})
            deleted = await service.delete("likes", filters={"user_id": "bob", "post_id": 1})
            return inserted, updated, deleted
        finally:
            await service.aclose()

    inserted, updated, deleted = asyncio.run(scenario())

    assert inserted == [{"user_id": "bob", "post_id": 1}]
    assert updated == [{"id": 4, "content": "edited"}]
    assert deleted == 1
    assert all(request.headers["prefer"] == "return=representation" for request in seen)
    assert seen[1].url.params["id"] == "eq.4"


def test_count_reads_content_range():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["prefer"] == "count=exact"
        return httpx.Response(206, json=[], headers={"Content-Range": "0-0/42"})

    async def scenario():
        service = _service(handler)
        try:
            return await service.count("followers", filters={"following_id": "alice"})
        finally:
            await service.aclose()

    assert asyncio.run(scenario()) == 42


def test_error_responses_become_remote_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409,
            json={"code": "23505", "message": "duplicate key value", "details": "Key (slug) exists"},
        )

    async def scenario():
        service = _service(handler)
        try:
            await service.insert("posts", {"slug": "first-post"})
        finally:
            await service.aclose()

    with pytest.raises(RemoteServiceError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.code == "23505"
    assert excinfo.value.details == "Key (slug) exists"


def test_transport_errors_become_network_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        service = _service(handler)
        try:
            await service.rpc("increment_view_count", {"post_slug": "first-post"})
        finally:
            await service.aclose()

    with pytest.raises(RemoteServiceError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.code == "network"


def test_sign_in_switches_bearer_and_notifies():
    seen: list[httpx.Request] = []
    events: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/auth/v1/token":
            return httpx.Response(200, json={"access_token": "user-token", "user": {"id": "bob"}})
        if request.url.path == "/auth/v1/logout":
            return httpx.Response(204)
        return httpx.Response(200, json=[])

    async def scenario():
        service = _service(handler)
        service.on_auth_state_change(events.append)
        try:
            user_id = await service.sign_in_with_password("bob@example.com", "secret")
            await service.select("likes", filters={"user_id": user_id})
            signed_in = await service.get_session_user()
            await service.sign_out()
            return signed_in, await service.get_session_user()
        finally:
            await service.aclose()

    signed_in, after = asyncio.run(scenario())

    assert (signed_in, after) == ("bob", None)
    assert events == ["bob", None]
    assert seen[0].url.params["grant_type"] == "password"
    assert seen[1].headers["authorization"] == "Bearer user-token"
    assert seen[2].url.path == "/auth/v1/logout"


def test_upload_and_public_url():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"Key": "avatars/1.png"})

    async def scenario():
        service = _service(handler)
        try:
            path = await service.upload("avatars", "1.png", b"png", content_type="image/png", upsert=True)
            return path, service.public_url("avatars", path)
        finally:
            await service.aclose()

    path, url = asyncio.run(scenario())

    assert path == "1.png"
    assert url == f"{BASE_URL}/storage/v1/object/public/avatars/1.png"
    assert seen[0].url.path == "/storage/v1/object/avatars/1.png"
    assert seen[0].headers["x-upsert"] == "true"
    assert seen[0].content == b"png"


def test_row_subscription_polls_for_changes():
    names = iter(["Alice", "Alice", "Alice L."])
    changes = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"id": "alice", "name": next(names, "Alice L.")}])

    async def scenario():
        service = _service(handler, poll_interval=0.01)
        try:
            service.subscribe_row("profiles", "alice", changes.append)
            for _ in range(100):
                if changes:
                    break
                await asyncio.sleep(0.01)
        finally:
            await service.aclose()

    asyncio.run(scenario())

    assert changes[0].event == "UPDATE"
    assert changes[0].old["name"] == "Alice"
    assert changes[0].new["name"] == "Alice L."


def test_factory_requires_rest_credentials():
    with pytest.raises(RemoteServiceError):
        create_remote_service(Settings(BACKEND="rest", BACKEND_URL=BASE_URL, BACKEND_API_KEY="changeme"))
    with pytest.raises(RemoteServiceError):
        create_remote_service(Settings(BACKEND="rest"))


def test_factory_builds_rest_service():
    service = create_remote_service(Settings(BACKEND="rest", BACKEND_URL=BASE_URL, BACKEND_API_KEY="anon-key"))

    assert isinstance(service, RestRemoteService)
    asyncio.run(service.aclose())
