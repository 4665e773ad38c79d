"""Conformance tests for InMemoryDocumentStore."""

import pytest

from chatsync.conformance import StoreConformance
from chatsync.store import InMemoryDocumentStore


@pytest.fixture
async def store():
    """Provide InMemoryDocumentStore for conformance testing."""
    async with InMemoryDocumentStore() as s:
        yield s


class TestInMemoryCore(StoreConformance.Core):
    """Core conformance tests for InMemoryDocumentStore."""

    pass


class TestInMemoryQueries(StoreConformance.Queries):
    """Query conformance tests for InMemoryDocumentStore."""

    pass


class TestInMemoryWatch(StoreConformance.Watch):
    """Watch conformance tests for InMemoryDocumentStore."""

    pass


class TestInMemoryLifecycle(StoreConformance.Lifecycle):
    """Lifecycle conformance tests for InMemoryDocumentStore."""

    pass
