"""Configuration dataclass for the SQLite document store."""

from dataclasses import dataclass


@dataclass
class SQLStoreConfig:
    """Configuration for SQLiteDocumentStore."""

    table_name: str = "chatsync_documents"
    """Table holding every document of every collection."""

    poll_interval: float = 1.0
    """Seconds between polls for live queries."""

    auto_create_table: bool = True
    """Create the table on first use if it doesn't exist."""
