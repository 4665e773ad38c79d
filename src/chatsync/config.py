"""Configuration for the chat services."""

from dataclasses import dataclass


@dataclass
class ChatConfig:
    """Configuration shared by the chat services."""

    rooms_collection: str = "chats"
    """Collection holding one document per room."""

    messages_collection: str = "messages"
    """Subcollection of a room holding its messages."""

    notifications_collection: str = "notifications"
    """Collection receiving new-message notifications."""

    presence_collection: str = "presence"
    """Collection holding one online/offline document per user."""

    room_separator: str = "_"
    """Joins the two sorted participant ids into a room id."""

    typing_idle_timeout: float = 2.0
    """Seconds without a keystroke before the writer clears its signal."""

    typing_stale_after: float = 3.0
    """Seconds after which readers treat a typing signal as expired."""

    preview_length: int = 100
    """Maximum characters of a message body copied into notifications."""

    notify_timeout: float = 5.0
    """Seconds to wait for the notifier before giving up on it."""

    def messages_path(self, room: str) -> str:
        """Collection path of a room's messages."""
        return f"{self.rooms_collection}/{room}/{self.messages_collection}"
