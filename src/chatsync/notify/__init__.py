"""Out-of-band notifications for new chat messages."""

from chatsync.notify.base import Notifier, message_notification, truncate_preview
from chatsync.notify.config import HTTPNotifierConfig
from chatsync.notify.http import HTTPNotifier
from chatsync.notify.store import StoreNotifier

__all__ = [
    "Notifier",
    "HTTPNotifier",
    "HTTPNotifierConfig",
    "StoreNotifier",
    "message_notification",
    "truncate_preview",
]
