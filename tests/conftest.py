"""Shared fixtures: an in-memory database behind ``SqlRemoteService``."""
from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

import pytest
from botocore.exceptions import ClientError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_postboard.db")
os.environ.setdefault("BACKEND", "sql")

from postboard.clients import RemoteServiceError, SqlRemoteService  # noqa: E402
from postboard.clients.spaces_storage import SpacesConfig, SpacesStorage  # noqa: E402
from postboard.database import init_db  # noqa: E402
from postboard.models import Comment, Post, Profile  # noqa: E402

ALICE = "alice"
BOB = "bob"
BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

SPACES_CONFIG = SpacesConfig(
    key="key",
    secret="secret",
    region="nyc3",
    bucket="bucket",
    api_endpoint="https://nyc3.digitaloceanspaces.com",
    public_endpoint="https://bucket.nyc3.cdn.digitaloceanspaces.com",
)


class StubSpacesClient:
    """Records uploads in memory the way the S3 client would store them."""

    def __init__(self, fail_uploads: bool = False) -> None:
        self.objects: dict[str, tuple[bytes, dict]] = {}
        self.fail_uploads = fail_uploads

    def head_object(self, Bucket: str, Key: str) -> dict:
        if Key not in self.objects:
            raise ClientError(
                {"Error": {"Code": "404", "Message": "Not Found"}, "ResponseMetadata": {"HTTPStatusCode": 404}},
                "HeadObject",
            )
        return {"ContentLength": len(self.objects[Key][0])}

    def upload_fileobj(self, fileobj, Bucket: str, Key: str, ExtraArgs: dict | None = None) -> None:
        if self.fail_uploads:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        self.objects[Key] = (fileobj.read(), dict(ExtraArgs or {}))


class FlakyRemote(SqlRemoteService):
    """``SqlRemoteService`` that can fail or pause chosen table writes."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.failures: set[tuple[str, str]] = set()
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, str]] = []

    async def _before(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        if self.gate is not None and operation != "select":
            await self.gate.wait()
        if (operation, table) in self.failures:
            raise RemoteServiceError(f"{operation} on {table} rejected", code="XX000")

    async def select(self, table, **kwargs):
        await self._before("select", table)
        return await super().select(table, **kwargs)

    async def insert(self, table, rows):
        await self._before("insert", table)
        return await super().insert(table, rows)

    async def update(self, table, values, *, filters):
        await self._before("update", table)
        return await super().update(table, values, filters=filters)

    async def delete(self, table, *, filters):
        await self._before("delete", table)
        return await super().delete(table, filters=filters)


@pytest.fixture
def session_factory() -> Iterator[sessionmaker]:
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    engine.dispose()


@pytest.fixture
def seeded(session_factory: sessionmaker) -> sessionmaker:
    """Two profiles and two posts; the first post starts at 3 likes / 1 dislike."""

    with session_factory() as session:
        session.add_all(
            [
                Profile(id=ALICE, name="Alice", slug="alice", email="alice@example.com"),
                Profile(id=BOB, name="Bob", slug="bob", email="bob@example.com"),
            ]
        )
        session.flush()
        session.add_all(
            [
                Post(
                    id=1,
                    user_id=ALICE,
                    title="First post",
                    content="Hello",
                    slug="first-post",
                    likes_count=3,
                    dislikes_count=1,
                    created_at=BASE_TIME,
                ),
                Post(
                    id=2,
                    user_id=BOB,
                    title="Second post",
                    content="World",
                    slug="second-post",
                    created_at=BASE_TIME + timedelta(hours=1),
                ),
            ]
        )
        session.commit()
    return session_factory


@pytest.fixture
def spaces_client() -> StubSpacesClient:
    return StubSpacesClient()


@pytest.fixture
def remote(seeded: sessionmaker, spaces_client: StubSpacesClient) -> FlakyRemote:
    return FlakyRemote(session_factory=seeded, storage=SpacesStorage(SPACES_CONFIG, client=spaces_client))


def add_comments(factory: sessionmaker, post_id: int, count: int, user_id: str = BOB) -> None:
    """Insert ``count`` comments and bump the stored counter to match."""

    with factory() as session:
        for index in range(count):
            session.add(
                Comment(
                    post_id=post_id,
                    user_id=user_id,
                    content=f"comment {index}",
                    created_at=BASE_TIME + timedelta(minutes=index),
                )
            )
        post = session.get(Post, post_id)
        post.comments_count += count
        session.commit()
