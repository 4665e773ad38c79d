"""Typing presence: a debounced writer and a staleness-aware reader.

Each participant writes ``typing.<user_id>`` on the shared room document.
The writer clears its own field after ``typing_idle_timeout`` seconds
without input. Readers independently treat any signal older than
``typing_stale_after`` seconds as expired, which covers writers that
disappeared without clearing.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from types import TracebackType
from typing import Any

import anyio
from anyio.abc import TaskGroup

from chatsync.chat.rooms import room_id
from chatsync.config import ChatConfig
from chatsync.store import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    Query,
    utcnow,
)

logger = logging.getLogger(__name__)

TYPING_FIELD = "typing"


class TypingState(enum.Enum):
    IDLE = "idle"
    SIGNALED = "signaled"


def is_typing(
    signal_at: datetime | None,
    now: datetime,
    stale_after: float = 3.0,
) -> bool:
    """True if a typing signal exists and is younger than stale_after seconds."""
    if signal_at is None:
        return False
    return (now - signal_at).total_seconds() < stale_after


def peer_signal(snapshot: DocumentSnapshot | None, peer_id: str) -> datetime | None:
    """Extract a participant's typing timestamp from a room snapshot."""
    if snapshot is None:
        return None
    value = snapshot.data.get(TYPING_FIELD, {}).get(peer_id)
    return value if isinstance(value, datetime) else None


class TypingSignal:
    """Writer side of typing presence for one user in one room.

    Must be used as an async context manager; it owns the task group that
    runs the idle timer. Leaving the context clears a pending signal.

    Usage:
        async with TypingSignal(store, "u1", "u2") as signal:
            await signal.input_changed("hel")
            ...
            await signal.message_sent()
    """

    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        peer_id: str,
        config: ChatConfig | None = None,
    ) -> None:
        self._store = store
        self._user_id = user_id
        self._config = config or ChatConfig()
        self._room = room_id(user_id, peer_id, self._config.room_separator)
        self._state = TypingState.IDLE
        self._timer: anyio.CancelScope | None = None
        self._task_group: TaskGroup | None = None
        self._write_lock = anyio.Lock()

    @property
    def state(self) -> TypingState:
        return self._state

    @property
    def room(self) -> str:
        return self._room

    def _require_task_group(self) -> TaskGroup:
        if self._task_group is None:
            msg = "TypingSignal must be used as an async context manager"
            raise RuntimeError(msg)
        return self._task_group

    async def input_changed(self, text: str) -> None:
        """Record a change of the message input."""
        self._require_task_group()
        if not text.strip():
            self._cancel_timer()
            if self._state is TypingState.SIGNALED:
                await self._clear()
            return

        if self._state is TypingState.IDLE:
            self._state = TypingState.SIGNALED
            await self._write(SERVER_TIMESTAMP)
        self._restart_timer()

    async def message_sent(self) -> None:
        """Clear the signal ahead of sending a message."""
        self._cancel_timer()
        if self._state is TypingState.SIGNALED:
            await self._clear()

    def _restart_timer(self) -> None:
        task_group = self._require_task_group()
        self._cancel_timer()
        scope = anyio.CancelScope()
        self._timer = scope
        task_group.start_soon(self._expire, scope)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _expire(self, scope: anyio.CancelScope) -> None:
        with scope:
            await anyio.sleep(self._config.typing_idle_timeout)
            if self._timer is scope:
                self._timer = None
            await self._clear()

    async def _clear(self) -> None:
        self._state = TypingState.IDLE
        await self._write(None)

    async def _write(self, value: Any) -> None:
        try:
            async with self._write_lock:
                await self._store.merge(
                    self._config.rooms_collection,
                    self._room,
                    {TYPING_FIELD: {self._user_id: value}},
                )
        except Exception:
            logger.exception(
                "Failed to update typing signal of %s in %s", self._user_id, self._room
            )

    async def __aenter__(self) -> TypingSignal:
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        task_group = self._require_task_group()
        self._cancel_timer()
        if self._state is TypingState.SIGNALED:
            with anyio.CancelScope(shield=True):
                await self._clear()
        self._task_group = None
        return await task_group.__aexit__(exc_type, exc_val, exc_tb)


class TypingWatcher:
    """Reader side: tracks whether a peer is typing in the shared room.

    Runs the room watch in its own task while open. ``changes()`` yields the
    peer's typing status whenever it flips, including when a signal goes
    stale without any document change. Only one consumer of ``changes()``
    is supported at a time.

    Usage:
        async with TypingWatcher(store, "u2", "u1") as watcher:
            async for typing in watcher.changes():
                ...
    """

    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        peer_id: str,
        config: ChatConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._peer_id = peer_id
        self._config = config or ChatConfig()
        self._clock = clock or utcnow
        self._room = room_id(user_id, peer_id, self._config.room_separator)
        self._signal_at: datetime | None = None
        self._send, self._receive = anyio.create_memory_object_stream[None](
            max_buffer_size=1
        )
        self._task_group: TaskGroup | None = None

    @property
    def signal_at(self) -> datetime | None:
        return self._signal_at

    @property
    def is_typing(self) -> bool:
        return is_typing(self._signal_at, self._clock(), self._config.typing_stale_after)

    def _seconds_until_stale(self) -> float:
        if self._signal_at is None:
            return 0.0
        age = (self._clock() - self._signal_at).total_seconds()
        return max(self._config.typing_stale_after - age, 0.0)

    async def changes(self) -> AsyncIterator[bool]:
        """Yield the peer's typing status each time it changes."""
        last: bool | None = None
        ended = False
        while True:
            current = self.is_typing
            if current != last:
                last = current
                yield current
            if ended:
                return
            timeout = self._seconds_until_stale() if current else None
            with anyio.move_on_after(timeout):
                try:
                    await self._receive.receive()
                except anyio.EndOfStream:
                    ended = True

    async def _pump(self) -> None:
        query = Query.document(self._config.rooms_collection, self._room)
        try:
            async for snapshots in self._store.watch(query):
                self._signal_at = peer_signal(
                    snapshots[0] if snapshots else None, self._peer_id
                )
                try:
                    self._send.send_nowait(None)
                except anyio.WouldBlock:
                    pass
        except Exception:
            logger.warning("Typing watch on %s failed", self._room, exc_info=True)
            self._signal_at = None
        finally:
            self._send.close()

    async def __aenter__(self) -> TypingWatcher:
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        self._task_group.start_soon(self._pump)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        task_group, self._task_group = self._task_group, None
        if task_group is None:
            msg = "TypingWatcher is not open"
            raise RuntimeError(msg)
        task_group.cancel_scope.cancel()
        try:
            return await task_group.__aexit__(exc_type, exc_val, exc_tb)
        finally:
            self._receive.close()
