"""
Storage interfaces for messages and user identities.

'MessageStore' is the append-only durable record of every direct message and
'IdentityDirectory' resolves user ids to display names. Concrete backends
('SqlMessageStore', 'InMemoryMessageStore', ...) are interchangeable at
construction time, keeping the relay free of storage-specific code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional


class StorageError(Exception):
    """Raised when the message store cannot persist or query messages."""


@dataclass(frozen=True)
class StoredMessage:
    """A persisted direct message. Immutable once created."""
    id: str
    sender_id: str
    receiver_id: str
    text: str
    created_at: datetime

    @property
    def timestamp(self) -> int:
        """Creation time in epoch milliseconds."""
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return int(created_at.timestamp() * 1000)


class MessageStore(ABC):
    """Abstract repository for direct messages."""

    @abstractmethod
    async def persist(self, sender_id: str, receiver_id: str, text: str, created_at: datetime) -> StoredMessage:
        """Durably record a message and return it with its assigned id.

        Raises:
            StorageError: If the backend is unavailable.
        """

    @abstractmethod
    async def query(self, user_a: str, user_b: str) -> List[StoredMessage]:
        """Return every message exchanged between two users in either direction,
        ordered by creation time, ties broken by insertion order.

        Raises:
            StorageError: If the backend is unavailable.
        """


class IdentityDirectory(ABC):
    """Abstract lookup of user display names."""

    @abstractmethod
    async def resolve_name(self, user_id: str) -> Optional[str]:
        """Return the user's name, or None if unknown or unavailable. Never raises."""
