"""Notifier that writes notifications into the document store."""

from chatsync.config import ChatConfig
from chatsync.notify.base import message_notification, truncate_preview
from chatsync.store import SERVER_TIMESTAMP, DocumentStore


class StoreNotifier:
    """Appends a notification document for the receiver."""

    def __init__(self, store: DocumentStore, config: ChatConfig | None = None) -> None:
        self._store = store
        self._config = config or ChatConfig()

    async def notify_new_message(
        self,
        receiver_id: str,
        sender_id: str,
        sender_name: str,
        sender_avatar: str | None,
        preview: str,
    ) -> None:
        record = message_notification(
            receiver_id,
            sender_id,
            sender_name,
            sender_avatar,
            truncate_preview(preview, self._config.preview_length),
        )
        record["created_at"] = SERVER_TIMESTAMP
        await self._store.append(self._config.notifications_collection, record)
