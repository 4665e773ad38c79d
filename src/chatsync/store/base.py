"""DocumentStore protocol and shared document helpers."""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from chatsync.store.query import Query


class _ServerTimestamp:
    """Placeholder resolved to the store's clock when a write commits."""

    _instance: _ServerTimestamp | None = None

    def __new__(cls) -> _ServerTimestamp:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    def __deepcopy__(self, memo: dict[int, Any]) -> _ServerTimestamp:
        return self


SERVER_TIMESTAMP = _ServerTimestamp()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DocumentSnapshot:
    """Immutable view of a stored document at one point in time."""

    collection: str
    id: str
    data: dict[str, Any] = field(default_factory=dict)
    create_time: datetime | None = None
    update_time: datetime | None = None

    def get(self, path: str, default: Any = None) -> Any:
        """Read a dotted field path, e.g. ``typing.u1``."""
        value = get_field(self.data, path)
        return default if value is MISSING else value


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def get_field(data: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path inside nested mappings, or MISSING."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def resolve_server_timestamps(value: Any, now: datetime) -> Any:
    """Return a copy of value with every SERVER_TIMESTAMP replaced by now."""
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, Mapping):
        return {k: resolve_server_timestamps(v, now) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [resolve_server_timestamps(v, now) for v in value]
    return copy.deepcopy(value)


def deep_merge(target: dict[str, Any], fields: Mapping[str, Any]) -> dict[str, Any]:
    """Merge fields into a copy of target.

    Nested mappings merge key by key; any other value replaces what was
    there. ``None`` is stored, not treated as a delete.
    """
    merged = copy.deepcopy(target)
    for key, value in fields.items():
        existing = merged.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            merged[key] = deep_merge(existing, value)
        elif isinstance(value, Mapping):
            merged[key] = deep_merge({}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class ServerClock:
    """Store-side clock that never goes backwards.

    Wraps a wall clock so resolved server timestamps are non-decreasing,
    which keeps creation order and timestamp order in agreement.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or utcnow
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = self._clock()
        if self._last is not None and current < self._last:
            current = self._last
        self._last = current
        return current


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for managed document database clients.

    Documents live in collections addressed by slash-separated paths such
    as ``chats/a_b/messages``. All writes accept SERVER_TIMESTAMP anywhere
    in the written mapping.
    """

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        """Fetch one document, or None if it does not exist."""
        ...

    async def get_or_create(
        self,
        collection: str,
        doc_id: str,
        defaults: Mapping[str, Any] | None = None,
    ) -> DocumentSnapshot:
        """Fetch a document, creating it from defaults when absent."""
        ...

    async def merge(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        """Upsert fields into a document, leaving other fields untouched."""
        ...

    async def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        """Merge fields into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        ...

    async def append(
        self, collection: str, record: Mapping[str, Any]
    ) -> DocumentSnapshot:
        """Create a document with a store-assigned id."""
        ...

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        """Run a query once."""
        ...

    def watch(self, query: Query) -> AsyncIterator[list[DocumentSnapshot]]:
        """Live query.

        Yields the full result immediately and again whenever it changes.
        Ends only when the store is closed.
        """
        ...

    async def close(self) -> None:
        """Close the store and end all live queries."""
        ...
