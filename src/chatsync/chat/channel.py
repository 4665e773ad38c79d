"""Message channel: send, history and live subscriptions per room."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from uuid import uuid4

import anyio

from chatsync.chat.fallback import FallbackLog
from chatsync.chat.models import ChatRoom, Message, SendReceipt
from chatsync.chat.rooms import room_id
from chatsync.config import ChatConfig
from chatsync.notify import Notifier
from chatsync.store import (
    SERVER_TIMESTAMP,
    DocumentStore,
    Query,
    StoreError,
    utcnow,
)

logger = logging.getLogger(__name__)


class MessageChannel:
    """Append-only message log per room, backed by a document store.

    When the store fails, sends land in a local FallbackLog and
    subscriptions switch to replaying it. Fallback messages are never
    reconciled with the store.
    """

    def __init__(
        self,
        store: DocumentStore,
        notifier: Notifier | None = None,
        fallback: FallbackLog | None = None,
        config: ChatConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._fallback = fallback if fallback is not None else FallbackLog()
        self._config = config or ChatConfig()
        self._clock = clock or utcnow

    @property
    def fallback(self) -> FallbackLog:
        return self._fallback

    def room_id(self, user_a: str, user_b: str) -> str:
        return room_id(user_a, user_b, self._config.room_separator)

    async def send(
        self,
        receiver_id: str,
        receiver_name: str,
        sender_id: str,
        sender_name: str,
        body: str,
        sender_avatar: str | None = None,
    ) -> SendReceipt:
        """Append a message to the pair's room and update the room preview.

        Returns a receipt with ``synced=False`` if the store was unavailable
        and the message was kept in the fallback log instead.

        Raises:
            ValueError: If body is empty or the user ids are invalid.
        """
        if not body.strip():
            msg = "Message body must not be empty"
            raise ValueError(msg)

        room = self.room_id(sender_id, receiver_id)
        record = {
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "sender_name": sender_name,
            "receiver_name": receiver_name,
            "body": body,
            "created_at": SERVER_TIMESTAMP,
            "read": False,
        }

        try:
            snapshot = await self._store.append(self._config.messages_path(room), record)
        except StoreError:
            logger.warning(
                "Store unavailable, keeping message to room %s locally",
                room,
                exc_info=True,
            )
            message = Message(
                id=uuid4().hex,
                sender_id=sender_id,
                receiver_id=receiver_id,
                sender_name=sender_name,
                receiver_name=receiver_name,
                body=body,
                created_at=self._clock(),
                local_only=True,
            )
            self._fallback.append(message)
            return SendReceipt(message=message, synced=False)

        message = Message.from_snapshot(snapshot)

        try:
            await self._store.merge(
                self._config.rooms_collection,
                room,
                {
                    "participants": [sender_id, receiver_id],
                    "participant_names": {
                        sender_id: sender_name,
                        receiver_id: receiver_name,
                    },
                    "last_message": body,
                    "last_message_at": SERVER_TIMESTAMP,
                },
            )
        except StoreError:
            logger.warning(
                "Message %s stored but room %s preview not updated",
                message.id,
                room,
                exc_info=True,
            )

        await self._notify(message, sender_avatar)
        return SendReceipt(message=message, synced=True)

    async def _notify(self, message: Message, sender_avatar: str | None) -> None:
        if self._notifier is None:
            return
        try:
            with anyio.fail_after(self._config.notify_timeout):
                await self._notifier.notify_new_message(
                    message.receiver_id,
                    message.sender_id,
                    message.sender_name,
                    sender_avatar,
                    message.body,
                )
        except Exception:
            logger.exception(
                "Failed to notify %s about message %s",
                message.receiver_id,
                message.id,
            )

    async def history(self, user_a: str, user_b: str) -> list[Message]:
        """Return the room's messages once, oldest first."""
        query = self._messages_query(user_a, user_b)
        try:
            snapshots = await self._store.query(query)
        except StoreError:
            logger.warning(
                "Store unavailable, reading %s from fallback log",
                query.collection,
                exc_info=True,
            )
            return self._fallback.messages_between(user_a, user_b)
        return [Message.from_snapshot(s) for s in snapshots]

    async def subscribe(self, user_a: str, user_b: str) -> AsyncIterator[list[Message]]:
        """Yield the room's full ordered message list on every change.

        Store failures are not raised: the iterator switches to the fallback
        log and keeps yielding local updates.
        """
        query = self._messages_query(user_a, user_b)
        try:
            async for snapshots in self._store.watch(query):
                yield [Message.from_snapshot(s) for s in snapshots]
        except StoreError:
            logger.warning(
                "Watch on %s failed, replaying fallback log",
                query.collection,
                exc_info=True,
            )
        else:
            return

        async for messages in self._fallback.watch(user_a, user_b):
            yield messages

    async def subscribe_rooms(self, user_id: str) -> AsyncIterator[list[ChatRoom]]:
        """Yield the user's rooms, most recently active first.

        On store failure yields an empty list once and ends.
        """
        query = Query(self._config.rooms_collection).order_by(
            "last_message_at", "desc"
        )
        last: list[ChatRoom] | None = None
        try:
            async for snapshots in self._store.watch(query):
                rooms = [
                    ChatRoom.from_snapshot(s)
                    for s in snapshots
                    if user_id in s.data.get("participants", ())
                ]
                if rooms != last:
                    last = rooms
                    yield rooms
        except StoreError:
            logger.warning("Room watch for %s failed", user_id, exc_info=True)
            yield []

    def _messages_query(self, user_a: str, user_b: str) -> Query:
        room = self.room_id(user_a, user_b)
        return Query(self._config.messages_path(room)).order_by("created_at")
