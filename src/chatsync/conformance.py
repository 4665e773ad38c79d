"""Conformance tests for DocumentStore implementations.

Usage:
    1. Provide a ``store`` fixture yielding an open store:

        import pytest
        from chatsync.store import InMemoryDocumentStore

        @pytest.fixture
        async def store():
            async with InMemoryDocumentStore() as s:
                yield s

    2. Subclass the categories you want to run:

        from chatsync.conformance import StoreConformance

        class TestMyStoreCore(StoreConformance.Core):
            pass

    3. Run pytest as normal.
"""

from datetime import datetime

import anyio
import pytest

from chatsync.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    Query,
)

EXPECTED_TWO = 2
EXPECTED_THREE = 3
WATCH_TIMEOUT_S = 2


class StoreConformance:
    """Conformance test suite for document stores.

    Categories:
    - Core: reads and writes
    - Queries: filters and ordering
    - Watch: live queries
    - Lifecycle: close behaviour
    """

    class Core:
        """Reads and writes - all implementations must pass these."""

        pytestmark = pytest.mark.anyio

        async def test_get_missing_returns_none(self, store: DocumentStore) -> None:
            assert await store.get("rooms", "nope") is None

        async def test_merge_creates_document(self, store: DocumentStore) -> None:
            await store.merge("rooms", "a_b", {"last_message": "hi"})
            snapshot = await store.get("rooms", "a_b")
            assert snapshot is not None
            assert snapshot.data == {"last_message": "hi"}

        async def test_merge_leaves_other_fields(self, store: DocumentStore) -> None:
            await store.merge("rooms", "a_b", {"last_message": "hi", "count": 1})
            await store.merge("rooms", "a_b", {"last_message": "bye"})
            snapshot = await store.get("rooms", "a_b")
            assert snapshot is not None
            assert snapshot.data == {"last_message": "bye", "count": 1}

        async def test_merge_nested_maps_key_by_key(self, store: DocumentStore) -> None:
            await store.merge("rooms", "a_b", {"names": {"a": "Ann"}})
            await store.merge("rooms", "a_b", {"names": {"b": "Bob"}})
            snapshot = await store.get("rooms", "a_b")
            assert snapshot is not None
            assert snapshot.data["names"] == {"a": "Ann", "b": "Bob"}

        async def test_merge_none_is_stored(self, store: DocumentStore) -> None:
            await store.merge("rooms", "a_b", {"typing": {"a": "x"}})
            await store.merge("rooms", "a_b", {"typing": {"a": None}})
            snapshot = await store.get("rooms", "a_b")
            assert snapshot is not None
            assert snapshot.data["typing"] == {"a": None}

        async def test_server_timestamp_resolved(self, store: DocumentStore) -> None:
            snapshot = await store.merge(
                "rooms", "a_b", {"at": SERVER_TIMESTAMP, "nested": {"at": SERVER_TIMESTAMP}}
            )
            assert isinstance(snapshot.data["at"], datetime)
            assert snapshot.data["nested"]["at"] == snapshot.data["at"]

            stored = await store.get("rooms", "a_b")
            assert stored is not None
            assert stored.data["at"] == snapshot.data["at"]

        async def test_update_missing_raises(self, store: DocumentStore) -> None:
            with pytest.raises(DocumentNotFoundError):
                await store.update("rooms", "missing", {"x": 1})

        async def test_update_existing(self, store: DocumentStore) -> None:
            created = await store.append("msgs", {"read": False, "body": "hi"})
            await store.update("msgs", created.id, {"read": True})
            snapshot = await store.get("msgs", created.id)
            assert snapshot is not None
            assert snapshot.data == {"read": True, "body": "hi"}

        async def test_append_assigns_unique_ids(self, store: DocumentStore) -> None:
            first = await store.append("msgs", {"body": "one"})
            second = await store.append("msgs", {"body": "two"})
            assert first.id != second.id
            assert first.create_time is not None

        async def test_get_or_create(self, store: DocumentStore) -> None:
            created = await store.get_or_create("rooms", "a_b", {"count": 0})
            assert created.data == {"count": 0}
            await store.merge("rooms", "a_b", {"count": 5})
            existing = await store.get_or_create("rooms", "a_b", {"count": 0})
            assert existing.data == {"count": 5}

        async def test_returned_data_is_a_copy(self, store: DocumentStore) -> None:
            snapshot = await store.merge("rooms", "a_b", {"names": {"a": "Ann"}})
            snapshot.data["names"]["a"] = "changed"
            stored = await store.get("rooms", "a_b")
            assert stored is not None
            assert stored.data["names"] == {"a": "Ann"}

    class Queries:
        """Filtering and ordering."""

        pytestmark = pytest.mark.anyio

        async def test_equality_filters(self, store: DocumentStore) -> None:
            await store.append("msgs", {"to": "u2", "read": False})
            await store.append("msgs", {"to": "u2", "read": True})
            await store.append("msgs", {"to": "u1", "read": False})

            results = await store.query(
                Query("msgs").where("to", "==", "u2").where("read", "==", False)
            )
            assert len(results) == 1
            assert results[0].data == {"to": "u2", "read": False}

        async def test_array_contains(self, store: DocumentStore) -> None:
            await store.merge("rooms", "a_b", {"participants": ["a", "b"]})
            await store.merge("rooms", "b_c", {"participants": ["b", "c"]})
            results = await store.query(
                Query("rooms").where("participants", "array_contains", "a")
            )
            assert [r.id for r in results] == ["a_b"]

        async def test_order_ascending_keeps_creation_order_on_ties(
            self, store: DocumentStore
        ) -> None:
            for body in ("one", "two", "three"):
                await store.append("msgs", {"body": body, "rank": 1})
            results = await store.query(Query("msgs").order_by("rank"))
            assert [r.data["body"] for r in results] == ["one", "two", "three"]

        async def test_order_descending(self, store: DocumentStore) -> None:
            await store.append("msgs", {"n": 1})
            await store.append("msgs", {"n": 3})
            await store.append("msgs", {"n": 2})
            results = await store.query(Query("msgs").order_by("n", "desc"))
            assert [r.data["n"] for r in results] == [3, 2, 1]

        async def test_server_timestamps_follow_creation_order(
            self, store: DocumentStore
        ) -> None:
            for i in range(EXPECTED_THREE):
                await store.append("msgs", {"i": i, "at": SERVER_TIMESTAMP})
            results = await store.query(Query("msgs").order_by("at"))
            assert [r.data["i"] for r in results] == [0, 1, 2]

        async def test_document_query(self, store: DocumentStore) -> None:
            await store.merge("rooms", "a_b", {"x": 1})
            await store.merge("rooms", "c_d", {"x": 2})
            results = await store.query(Query.document("rooms", "c_d"))
            assert [r.id for r in results] == ["c_d"]

        async def test_limit(self, store: DocumentStore) -> None:
            for i in range(EXPECTED_THREE):
                await store.append("msgs", {"i": i})
            results = await store.query(Query("msgs").order_by("i").limit_to(2))
            assert [r.data["i"] for r in results] == [0, 1]

    class Watch:
        """Live queries."""

        pytestmark = pytest.mark.anyio

        async def test_initial_result_delivered(self, store: DocumentStore) -> None:
            await store.append("msgs", {"body": "hello"})
            with anyio.fail_after(WATCH_TIMEOUT_S):
                async for snapshots in store.watch(Query("msgs")):
                    assert [s.data["body"] for s in snapshots] == ["hello"]
                    break

        async def test_changes_delivered(self, store: DocumentStore) -> None:
            seen: list[list[str]] = []

            async def watcher() -> None:
                async for snapshots in store.watch(Query("msgs").order_by("n")):
                    seen.append([s.data["body"] for s in snapshots])
                    if len(seen[-1]) >= EXPECTED_TWO:
                        break

            async def writer() -> None:
                await anyio.sleep(0.05)
                await store.append("msgs", {"body": "one", "n": 1})
                await anyio.sleep(0.05)
                await store.append("msgs", {"body": "two", "n": 2})

            with anyio.fail_after(WATCH_TIMEOUT_S):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(watcher)
                    tg.start_soon(writer)

            assert seen[0] == []
            assert seen[-1] == ["one", "two"]

        async def test_updates_delivered(self, store: DocumentStore) -> None:
            created = await store.append("msgs", {"read": False})
            states: list[bool] = []

            async def watcher() -> None:
                async for snapshots in store.watch(Query("msgs")):
                    states.append(snapshots[0].data["read"])
                    if states[-1]:
                        break

            async def writer() -> None:
                await anyio.sleep(0.05)
                await store.update("msgs", created.id, {"read": True})

            with anyio.fail_after(WATCH_TIMEOUT_S):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(watcher)
                    tg.start_soon(writer)

            assert states[0] is False
            assert states[-1] is True

        async def test_multiple_watchers_see_same_change(
            self, store: DocumentStore
        ) -> None:
            received: list[int] = []

            async def watcher() -> None:
                async for snapshots in store.watch(Query("msgs")):
                    if snapshots:
                        received.append(len(snapshots))
                        break

            async def writer() -> None:
                await anyio.sleep(0.05)
                await store.append("msgs", {"body": "broadcast"})

            with anyio.fail_after(WATCH_TIMEOUT_S):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(watcher)
                    tg.start_soon(watcher)
                    tg.start_soon(writer)

            assert received == [1, 1]

        async def test_cancelled_watch_does_not_break_writes(
            self, store: DocumentStore
        ) -> None:
            started = anyio.Event()

            async def watcher() -> None:
                async for _ in store.watch(Query("msgs")):
                    started.set()

            async with anyio.create_task_group() as tg:
                tg.start_soon(watcher)
                await started.wait()
                tg.cancel_scope.cancel()

            await store.append("msgs", {"body": "after-cancel"})

    class Lifecycle:
        """Close behaviour."""

        pytestmark = pytest.mark.anyio

        async def test_operations_after_close_raise(self, store: DocumentStore) -> None:
            await store.close()
            with pytest.raises(RuntimeError, match="closed"):
                await store.merge("rooms", "a_b", {"x": 1})
            with pytest.raises(RuntimeError, match="closed"):
                store.watch(Query("rooms"))

        async def test_close_ends_watch(self, store: DocumentStore) -> None:
            started = anyio.Event()
            ended = anyio.Event()

            async def watcher() -> None:
                async for _ in store.watch(Query("rooms")):
                    started.set()
                ended.set()

            with anyio.fail_after(WATCH_TIMEOUT_S):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(watcher)
                    await started.wait()
                    await store.close()
                    await ended.wait()
