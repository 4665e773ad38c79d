"""chatsync: real-time one-to-one chat over a managed document store.

Re-exports the core components. The FastAPI surface lives in
``chatsync.api`` and needs the ``api`` extra.
"""

from chatsync.chat import (
    ChatRoom,
    FallbackLog,
    Message,
    MessageChannel,
    PresenceService,
    ReadReceipts,
    SendReceipt,
    TypingSignal,
    TypingWatcher,
    is_typing,
    room_id,
)
from chatsync.config import ChatConfig
from chatsync.notify import HTTPNotifier, Notifier, StoreNotifier
from chatsync.store import (
    SERVER_TIMESTAMP,
    DocumentStore,
    InMemoryDocumentStore,
    Query,
    SQLiteDocumentStore,
)

__all__ = [
    # chat
    "MessageChannel",
    "ReadReceipts",
    "TypingSignal",
    "TypingWatcher",
    "PresenceService",
    "FallbackLog",
    "Message",
    "ChatRoom",
    "SendReceipt",
    "room_id",
    "is_typing",
    "ChatConfig",
    # notify
    "Notifier",
    "StoreNotifier",
    "HTTPNotifier",
    # store
    "DocumentStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "Query",
    "SERVER_TIMESTAMP",
]
