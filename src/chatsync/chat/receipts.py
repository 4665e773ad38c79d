"""Read receipts and unread counters."""

from __future__ import annotations

import logging

import anyio

from chatsync.chat.rooms import room_id
from chatsync.config import ChatConfig
from chatsync.store import DocumentSnapshot, DocumentStore, Query, StoreError

logger = logging.getLogger(__name__)


class ReadReceipts:
    """Marks messages as read and counts unread ones.

    Everything here is best-effort: failures are logged, never raised.
    """

    def __init__(self, store: DocumentStore, config: ChatConfig | None = None) -> None:
        self._store = store
        self._config = config or ChatConfig()

    def _unread_query(self, room: str, viewer_id: str) -> Query:
        return (
            Query(self._config.messages_path(room))
            .where("receiver_id", "==", viewer_id)
            .where("read", "==", False)
        )

    async def mark_seen(self, user_a: str, user_b: str, viewer_id: str) -> int:
        """Flip every unread message addressed to viewer_id to read.

        Updates run concurrently and are not rolled back on partial failure.
        Returns how many messages were updated.
        """
        room = room_id(user_a, user_b, self._config.room_separator)
        path = self._config.messages_path(room)
        try:
            unread = await self._store.query(self._unread_query(room, viewer_id))
        except StoreError:
            logger.warning("Could not load unread messages in %s", room, exc_info=True)
            return 0

        updated = 0

        async def mark(snapshot: DocumentSnapshot) -> None:
            nonlocal updated
            try:
                await self._store.update(path, snapshot.id, {"read": True})
            except StoreError:
                logger.warning(
                    "Failed to mark message %s in %s as read",
                    snapshot.id,
                    room,
                    exc_info=True,
                )
                return
            updated += 1

        async with anyio.create_task_group() as tg:
            for snapshot in unread:
                tg.start_soon(mark, snapshot)

        if updated:
            logger.debug("Marked %d messages read in %s for %s", updated, room, viewer_id)
        return updated

    async def unread_count(self, user_a: str, user_b: str, viewer_id: str) -> int:
        """Number of unread messages addressed to viewer_id in one room."""
        room = room_id(user_a, user_b, self._config.room_separator)
        try:
            return len(await self._store.query(self._unread_query(room, viewer_id)))
        except StoreError:
            logger.warning("Could not count unread messages in %s", room, exc_info=True)
            return 0

    async def total_unread(self, user_id: str) -> int:
        """Unread messages addressed to user_id across all of their rooms."""
        rooms_query = Query(self._config.rooms_collection).where(
            "participants", "array_contains", user_id
        )
        try:
            rooms = await self._store.query(rooms_query)
        except StoreError:
            logger.warning("Could not list rooms for %s", user_id, exc_info=True)
            return 0

        total = 0
        for room in rooms:
            try:
                unread = await self._store.query(self._unread_query(room.id, user_id))
            except StoreError:
                logger.warning(
                    "Could not count unread messages in %s", room.id, exc_info=True
                )
                continue
            total += len(unread)
        return total
