"""Local fallback log used while the document store is unavailable."""

from __future__ import annotations

from collections.abc import AsyncIterator

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from chatsync.chat.models import Message


class FallbackLog:
    """Process-local message log, the second tier behind the document store.

    Messages land here only when a send could not reach the store. Nothing
    replays them into the store automatically; ``drain()`` hands them to an
    operator who decides whether to resend.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._listeners: set[MemoryObjectSendStream[None]] = set()
        self._closed = False

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)
        for send in list(self._listeners):
            try:
                send.send_nowait(None)
            except anyio.WouldBlock:
                pass
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                self._listeners.discard(send)

    def messages_between(self, user_a: str, user_b: str) -> list[Message]:
        return [m for m in self._messages if m.involves(user_a, user_b)]

    def drain(self) -> list[Message]:
        """Remove and return every pending message."""
        drained, self._messages = self._messages, []
        return drained

    async def watch(self, user_a: str, user_b: str) -> AsyncIterator[list[Message]]:
        """Yield the pair's messages now and after every local append."""
        send, receive = anyio.create_memory_object_stream[None](max_buffer_size=1)
        self._listeners.add(send)
        if self._closed:
            send.close()
        try:
            last = self.messages_between(user_a, user_b)
            yield last
            async with receive:
                async for _ in receive:
                    current = self.messages_between(user_a, user_b)
                    if current != last:
                        last = current
                        yield current
        finally:
            self._listeners.discard(send)
            send.close()

    def close(self) -> None:
        """End every watcher."""
        self._closed = True
        for send in self._listeners:
            send.close()
        self._listeners.clear()
