"""Shared fixtures for chatsync tests."""

from collections.abc import AsyncIterator, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import aiosqlite
import pytest

from chatsync.config import ChatConfig
from chatsync.store import (
    DocumentSnapshot,
    InMemoryDocumentStore,
    Query,
    StoreUnavailableError,
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def memory_store():
    """Create an in-memory document store."""
    async with InMemoryDocumentStore() as store:
        yield store


class TickingClock:
    """Clock that advances by a fixed step on every call."""

    def __init__(self, start: datetime | None = None, step: float = 0.001) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = timedelta(seconds=step)

    def __call__(self) -> datetime:
        self.now += self.step
        return self.now


@pytest.fixture
async def ticking_store():
    """Create an in-memory store whose server clock strictly increases."""
    async with InMemoryDocumentStore(clock=TickingClock()) as store:
        yield store


@pytest.fixture
async def sqlite_connection():
    """Create an in-memory SQLite connection for testing."""
    conn = await aiosqlite.connect(":memory:")
    try:
        yield conn
    finally:
        await conn.close()


@pytest.fixture
def fast_config() -> ChatConfig:
    """Chat configuration with short typing windows for tests."""
    return ChatConfig(typing_idle_timeout=0.1, typing_stale_after=0.3)


class FlakyStore:
    """InMemoryDocumentStore wrapper that fails selected operations.

    Operation names listed in ``failing`` raise StoreUnavailableError.
    Document ids in ``failing_ids`` make only those updates fail.
    """

    def __init__(self, inner: InMemoryDocumentStore) -> None:
        self.inner = inner
        self.failing: set[str] = set()
        self.failing_ids: set[str] = set()

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failing:
            msg = f"{operation} unavailable"
            raise StoreUnavailableError(msg)

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        self._maybe_fail("get")
        return await self.inner.get(collection, doc_id)

    async def get_or_create(
        self,
        collection: str,
        doc_id: str,
        defaults: Mapping[str, Any] | None = None,
    ) -> DocumentSnapshot:
        self._maybe_fail("get_or_create")
        return await self.inner.get_or_create(collection, doc_id, defaults)

    async def merge(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._maybe_fail("merge")
        return await self.inner.merge(collection, doc_id, fields)

    async def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._maybe_fail("update")
        if doc_id in self.failing_ids:
            msg = f"update of {doc_id} unavailable"
            raise StoreUnavailableError(msg)
        return await self.inner.update(collection, doc_id, fields)

    async def append(
        self, collection: str, record: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._maybe_fail("append")
        return await self.inner.append(collection, record)

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        self._maybe_fail("query")
        return await self.inner.query(query)

    def watch(self, query: Query) -> AsyncIterator[list[DocumentSnapshot]]:
        if "watch" in self.failing:
            return self._failing_watch()
        return self.inner.watch(query)

    async def _failing_watch(self) -> AsyncIterator[list[DocumentSnapshot]]:
        msg = "watch unavailable"
        raise StoreUnavailableError(msg)
        yield []  # pragma: no cover

    async def close(self) -> None:
        await self.inner.close()


@pytest.fixture
async def flaky_store(memory_store: InMemoryDocumentStore) -> FlakyStore:
    """Create a store whose operations can be made to fail."""
    return FlakyStore(memory_store)
