"""Online/offline presence per user."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from chatsync.chat.models import PresenceState
from chatsync.config import ChatConfig
from chatsync.store import SERVER_TIMESTAMP, DocumentStore, Query, StoreError

logger = logging.getLogger(__name__)


class PresenceService:
    def __init__(self, store: DocumentStore, config: ChatConfig | None = None) -> None:
        self._store = store
        self._config = config or ChatConfig()

    async def set_online(self, user_id: str) -> None:
        await self._set(user_id, online=True)

    async def set_offline(self, user_id: str) -> None:
        await self._set(user_id, online=False)

    async def _set(self, user_id: str, *, online: bool) -> None:
        try:
            await self._store.merge(
                self._config.presence_collection,
                user_id,
                {"online": online, "last_seen": SERVER_TIMESTAMP},
            )
        except StoreError:
            logger.warning(
                "Failed to set %s %s", user_id, "online" if online else "offline",
                exc_info=True,
            )

    async def watch(self, user_id: str) -> AsyncIterator[PresenceState]:
        """Yield the user's presence now and on every change."""
        query = Query.document(self._config.presence_collection, user_id)
        async for snapshots in self._store.watch(query):
            if not snapshots:
                yield PresenceState(user_id=user_id)
                continue
            data = snapshots[0].data
            yield PresenceState(
                user_id=user_id,
                online=bool(data.get("online", False)),
                last_seen=data.get("last_seen"),
            )
