"""InMemoryDocumentStore behaviour beyond the conformance suite."""

from datetime import datetime, timedelta, timezone

import anyio
import pytest

from chatsync.store import SERVER_TIMESTAMP, InMemoryDocumentStore, Query

pytestmark = pytest.mark.anyio

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)
TIMEOUT_SECONDS = 2


class TestClock:
    async def test_injected_clock_resolves_timestamps(self) -> None:
        async with InMemoryDocumentStore(clock=lambda: BASE) as store:
            snapshot = await store.append("msgs", {"at": SERVER_TIMESTAMP})
            assert snapshot.data["at"] == BASE
            assert snapshot.create_time == BASE

    async def test_update_keeps_create_time(self) -> None:
        times = iter([BASE, BASE + timedelta(seconds=1)])
        async with InMemoryDocumentStore(clock=lambda: next(times)) as store:
            created = await store.append("msgs", {"read": False})
            updated = await store.update("msgs", created.id, {"read": True})
            assert updated.create_time == BASE
            assert updated.update_time == BASE + timedelta(seconds=1)


class TestWatchFiltering:
    async def test_unrelated_changes_do_not_yield(self) -> None:
        async with InMemoryDocumentStore() as store:
            results: list[list[str]] = []

            async def watcher() -> None:
                query = Query("msgs").where("to", "==", "u2")
                async for snapshots in store.watch(query):
                    results.append([s.data["body"] for s in snapshots])
                    if snapshots:
                        break

            async def writer() -> None:
                await anyio.sleep(0.01)
                await store.append("msgs", {"to": "u1", "body": "not for u2"})
                await store.merge("rooms", "x", {"y": 1})
                await anyio.sleep(0.01)
                await store.append("msgs", {"to": "u2", "body": "for u2"})

            with anyio.fail_after(TIMEOUT_SECONDS):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(watcher)
                    tg.start_soon(writer)

            assert results == [[], ["for u2"]]

    async def test_slow_watcher_does_not_block_writers(self) -> None:
        async with InMemoryDocumentStore() as store:
            latest: list[int] = []
            writes_done = anyio.Event()

            async def slow_watcher() -> None:
                async for snapshots in store.watch(Query("msgs")):
                    await anyio.sleep(0.05)
                    latest.append(len(snapshots))
                    if writes_done.is_set() and len(snapshots) == 10:
                        break

            async def writer() -> None:
                await anyio.sleep(0.01)
                for i in range(10):
                    await store.append("msgs", {"i": i})
                writes_done.set()

            with anyio.fail_after(TIMEOUT_SECONDS):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(slow_watcher)
                    tg.start_soon(writer)

            # Notifications coalesce, so fewer deliveries than writes
            assert latest[-1] == 10
            assert len(latest) < 11
