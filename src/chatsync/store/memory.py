"""In-memory DocumentStore implementation."""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any
from uuid import uuid4

import anyio
import anyio.lowlevel
from anyio.streams.memory import MemoryObjectSendStream

from chatsync.store.base import (
    DocumentSnapshot,
    ServerClock,
    deep_merge,
    resolve_server_timestamps,
)
from chatsync.store.errors import DocumentNotFoundError
from chatsync.store.query import Query


class InMemoryDocumentStore:
    """Document store kept in process memory.

    Each live query owns a one-slot notification stream per collection.
    Writes never block on slow watchers: pending notifications coalesce and
    the watcher re-runs its query once it catches up.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = ServerClock(clock)
        self._collections: dict[str, dict[str, DocumentSnapshot]] = {}
        self._watchers: dict[str, set[MemoryObjectSendStream[None]]] = {}
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            msg = "Store is closed"
            raise RuntimeError(msg)

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        self._check_open()
        await anyio.lowlevel.checkpoint()
        snapshot = self._collections.get(collection, {}).get(doc_id)
        return _copy(snapshot) if snapshot else None

    async def get_or_create(
        self,
        collection: str,
        doc_id: str,
        defaults: Mapping[str, Any] | None = None,
    ) -> DocumentSnapshot:
        self._check_open()
        await anyio.lowlevel.checkpoint()
        existing = self._collections.get(collection, {}).get(doc_id)
        if existing is not None:
            return _copy(existing)
        return self._write(collection, doc_id, defaults or {})

    async def merge(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._check_open()
        await anyio.lowlevel.checkpoint()
        return self._write(collection, doc_id, fields)

    async def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._check_open()
        await anyio.lowlevel.checkpoint()
        if doc_id not in self._collections.get(collection, {}):
            raise DocumentNotFoundError(collection, doc_id)
        return self._write(collection, doc_id, fields)

    async def append(
        self, collection: str, record: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._check_open()
        await anyio.lowlevel.checkpoint()
        return self._write(collection, uuid4().hex, record)

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        self._check_open()
        await anyio.lowlevel.checkpoint()
        return [_copy(s) for s in self._run(query)]

    def watch(self, query: Query) -> AsyncIterator[list[DocumentSnapshot]]:
        """Watch a query.

        Returns an async iterator; leave the loop or cancel the surrounding
        scope to stop watching.
        """
        self._check_open()
        return self._watch_iter(query)

    async def _watch_iter(self, query: Query) -> AsyncIterator[list[DocumentSnapshot]]:
        send, receive = anyio.create_memory_object_stream[None](max_buffer_size=1)
        watchers = self._watchers.setdefault(query.collection, set())
        watchers.add(send)
        try:
            last = self._run(query)
            yield [_copy(s) for s in last]
            async with receive:
                async for _ in receive:
                    current = self._run(query)
                    if current != last:
                        last = current
                        yield [_copy(s) for s in current]
        finally:
            watchers.discard(send)
            send.close()

    def _run(self, query: Query) -> list[DocumentSnapshot]:
        return query.apply(self._collections.get(query.collection, {}).values())

    def _write(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        now = self._clock.now()
        docs = self._collections.setdefault(collection, {})
        existing = docs.get(doc_id)
        data = deep_merge(
            existing.data if existing else {},
            resolve_server_timestamps(fields, now),
        )
        snapshot = DocumentSnapshot(
            collection=collection,
            id=doc_id,
            data=data,
            create_time=existing.create_time if existing else now,
            update_time=now,
        )
        docs[doc_id] = snapshot
        self._notify(collection)
        return _copy(snapshot)

    def _notify(self, collection: str) -> None:
        for send in list(self._watchers.get(collection, ())):
            try:
                send.send_nowait(None)
            except anyio.WouldBlock:
                # A notification is already pending for this watcher
                pass
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                self._watchers[collection].discard(send)

    async def close(self) -> None:
        """Close the store, ending every live query."""
        self._closed = True
        for watchers in self._watchers.values():
            for send in watchers:
                send.close()
        self._watchers.clear()

    async def __aenter__(self) -> InMemoryDocumentStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()


def _copy(snapshot: DocumentSnapshot) -> DocumentSnapshot:
    return replace(snapshot, data=copy.deepcopy(snapshot.data))
