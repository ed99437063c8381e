"""
Storage module for messages and user identities.

Handles:
- Durable, append-only message records
- Conversation queries by participant pair
- User display-name lookup
"""

from server.storage.base import IdentityDirectory, MessageStore, StorageError, StoredMessage
from server.storage.memory import InMemoryIdentityDirectory, InMemoryMessageStore
from server.storage.sql_store import SqlIdentityDirectory, SqlMessageStore, create_database_engine

__all__ = [
    "IdentityDirectory",
    "InMemoryIdentityDirectory",
    "InMemoryMessageStore",
    "MessageStore",
    "SqlIdentityDirectory",
    "SqlMessageStore",
    "StorageError",
    "StoredMessage",
    "create_database_engine",
]
