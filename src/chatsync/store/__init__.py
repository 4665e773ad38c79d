"""Document store client abstractions and backends."""

from chatsync.store.base import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    ServerClock,
    utcnow,
)
from chatsync.store.config import SQLStoreConfig
from chatsync.store.errors import (
    DocumentNotFoundError,
    StoreError,
    StoreUnavailableError,
)
from chatsync.store.memory import InMemoryDocumentStore
from chatsync.store.query import DOCUMENT_ID, FieldFilter, Query
from chatsync.store.sql import SQLiteDocumentStore

__all__ = [
    "SERVER_TIMESTAMP",
    "DOCUMENT_ID",
    "DocumentSnapshot",
    "DocumentStore",
    "ServerClock",
    "utcnow",
    "FieldFilter",
    "Query",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "SQLStoreConfig",
    "StoreError",
    "StoreUnavailableError",
    "DocumentNotFoundError",
]
