"""SQLite DocumentStore implementation with polling live queries."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any
from uuid import uuid4

import aiosqlite
import anyio

from chatsync.store.base import (
    DocumentSnapshot,
    ServerClock,
    deep_merge,
    resolve_server_timestamps,
)
from chatsync.store.config import SQLStoreConfig
from chatsync.store.errors import DocumentNotFoundError, StoreUnavailableError
from chatsync.store.query import Query

_TIMESTAMP_TAG = "$ts"


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_TIMESTAMP_TAG: value.isoformat()}
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def _decode(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and _TIMESTAMP_TAG in obj:
        return datetime.fromisoformat(obj[_TIMESTAMP_TAG])
    return obj


def dumps(data: Mapping[str, Any]) -> str:
    """Serialize document data, tagging datetimes."""
    return json.dumps(data, default=_encode)


def loads(raw: str) -> dict[str, Any]:
    return json.loads(raw, object_hook=_decode)


@contextmanager
def _translate_errors() -> Iterator[None]:
    # aiosqlite raises ValueError once its connection is closed or lost
    try:
        yield
    except (aiosqlite.Error, ValueError) as e:
        msg = f"SQLite store failure: {e}"
        raise StoreUnavailableError(msg) from e


class SQLiteDocumentStore:
    """Document store persisted in a single SQLite table via aiosqlite.

    Filtering and ordering run client-side over the collection's rows, in
    insertion order. Live queries poll and only yield when the result changed.
    """

    def __init__(
        self,
        connection: aiosqlite.Connection,
        config: SQLStoreConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the SQLite store.

        Args:
            connection: Open aiosqlite connection.
            config: Store configuration.
            clock: Wall clock used to resolve server timestamps.
        """
        self._connection = connection
        self._config = config or SQLStoreConfig()
        self._clock = ServerClock(clock)
        self._closed = False
        self._table_ready = False
        self._write_lock = anyio.Lock()

    def _check_open(self) -> None:
        if self._closed:
            msg = "Store is closed"
            raise RuntimeError(msg)

    async def _ensure_table(self) -> None:
        if self._table_ready or not self._config.auto_create_table:
            return
        table = self._config.table_name
        with _translate_errors():
            await self._connection.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    collection TEXT NOT NULL,
                    doc_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    create_time TEXT NOT NULL,
                    update_time TEXT NOT NULL,
                    UNIQUE (collection, doc_id)
                )
                """
            )
            await self._connection.commit()
        self._table_ready = True

    async def _fetch(self, query: str, params: Sequence[Any] = ()) -> list[Any]:
        await self._ensure_table()
        with _translate_errors():
            cursor = await self._connection.execute(query, params)
            return list(await cursor.fetchall())

    async def _load(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        rows = await self._fetch(
            f"SELECT collection, doc_id, data, create_time, update_time "
            f"FROM {self._config.table_name} WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        )
        return _row_to_snapshot(rows[0]) if rows else None

    async def _load_collection(self, collection: str) -> list[DocumentSnapshot]:
        rows = await self._fetch(
            f"SELECT collection, doc_id, data, create_time, update_time "
            f"FROM {self._config.table_name} WHERE collection = ? ORDER BY seq",
            (collection,),
        )
        return [_row_to_snapshot(row) for row in rows]

    async def _write(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        existing: DocumentSnapshot | None,
    ) -> DocumentSnapshot:
        await self._ensure_table()
        now = self._clock.now()
        data = deep_merge(
            existing.data if existing else {},
            resolve_server_timestamps(fields, now),
        )
        create_time = existing.create_time if existing and existing.create_time else now
        with _translate_errors():
            await self._connection.execute(
                f"INSERT INTO {self._config.table_name} "
                f"(collection, doc_id, data, create_time, update_time) "
                f"VALUES (?, ?, ?, ?, ?) "
                f"ON CONFLICT (collection, doc_id) DO UPDATE SET "
                f"data = excluded.data, update_time = excluded.update_time",
                (
                    collection,
                    doc_id,
                    dumps(data),
                    create_time.isoformat(),
                    now.isoformat(),
                ),
            )
            await self._connection.commit()
        return DocumentSnapshot(
            collection=collection,
            id=doc_id,
            data=data,
            create_time=create_time,
            update_time=now,
        )

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        self._check_open()
        return await self._load(collection, doc_id)

    async def get_or_create(
        self,
        collection: str,
        doc_id: str,
        defaults: Mapping[str, Any] | None = None,
    ) -> DocumentSnapshot:
        self._check_open()
        async with self._write_lock:
            existing = await self._load(collection, doc_id)
            if existing is not None:
                return existing
            return await self._write(collection, doc_id, defaults or {}, None)

    async def merge(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._check_open()
        async with self._write_lock:
            existing = await self._load(collection, doc_id)
            return await self._write(collection, doc_id, fields, existing)

    async def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._check_open()
        async with self._write_lock:
            existing = await self._load(collection, doc_id)
            if existing is None:
                raise DocumentNotFoundError(collection, doc_id)
            return await self._write(collection, doc_id, fields, existing)

    async def append(
        self, collection: str, record: Mapping[str, Any]
    ) -> DocumentSnapshot:
        self._check_open()
        async with self._write_lock:
            return await self._write(collection, uuid4().hex, record, None)

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        self._check_open()
        return query.apply(await self._load_collection(query.collection))

    def watch(self, query: Query) -> AsyncIterator[list[DocumentSnapshot]]:
        """Watch a query by polling.

        Raises StoreUnavailableError from the iterator if a poll fails.
        """
        self._check_open()
        return self._watch_iter(query)

    async def _watch_iter(self, query: Query) -> AsyncIterator[list[DocumentSnapshot]]:
        last: list[DocumentSnapshot] | None = None
        while not self._closed:
            current = query.apply(await self._load_collection(query.collection))
            if current != last:
                last = current
                yield current
            await anyio.sleep(self._config.poll_interval)

    async def close(self) -> None:
        """Close the store. The connection is owned by the caller."""
        self._closed = True

    async def __aenter__(self) -> SQLiteDocumentStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()


def _row_to_snapshot(row: Sequence[Any]) -> DocumentSnapshot:
    collection, doc_id, data, create_time, update_time = row
    return DocumentSnapshot(
        collection=collection,
        id=doc_id,
        data=loads(data),
        create_time=datetime.fromisoformat(create_time),
        update_time=datetime.fromisoformat(update_time),
    )
