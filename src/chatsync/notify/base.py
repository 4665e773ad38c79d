"""Notifier protocol and payload helpers."""

from typing import Any, Protocol, runtime_checkable

ELLIPSIS = "..."


@runtime_checkable
class Notifier(Protocol):
    """Protocol for out-of-band new-message notifications."""

    async def notify_new_message(
        self,
        receiver_id: str,
        sender_id: str,
        sender_name: str,
        sender_avatar: str | None,
        preview: str,
    ) -> None:
        """Tell receiver_id that sender_id wrote to them."""
        ...


def truncate_preview(text: str, limit: int) -> str:
    """Cut text to limit characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def message_notification(
    receiver_id: str,
    sender_id: str,
    sender_name: str,
    sender_avatar: str | None,
    preview: str,
) -> dict[str, Any]:
    """Build the notification document for a new message."""
    return {
        "user_id": receiver_id,
        "type": "message",
        "title": "New Message",
        "message": f"{sender_name}: {preview}",
        "from_user_id": sender_id,
        "from_username": sender_name,
        "from_user_avatar": sender_avatar,
        "read": False,
    }
