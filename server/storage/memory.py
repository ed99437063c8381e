"""In-memory storage backends for development and tests. Data is lost when the process exits."""

import itertools
from datetime import datetime
from typing import Dict, List, Optional

from server.storage.base import IdentityDirectory, MessageStore, StoredMessage


class InMemoryMessageStore(MessageStore):
    def __init__(self):
        self._messages: List[StoredMessage] = []
        self._ids = itertools.count(1)

    async def persist(self, sender_id: str, receiver_id: str, text: str, created_at: datetime) -> StoredMessage:
        message = StoredMessage(
            id=str(next(self._ids)),
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            created_at=created_at
        )
        self._messages.append(message)
        return message

    async def query(self, user_a: str, user_b: str) -> List[StoredMessage]:
        participants = {user_a, user_b}
        matches = [
            (position, message) for position, message in enumerate(self._messages)
            if {message.sender_id, message.receiver_id} == participants
        ]
        matches.sort(key=lambda item: (item[1].created_at, item[0]))
        return [message for _, message in matches]

    def __len__(self) -> int:
        return len(self._messages)


class InMemoryIdentityDirectory(IdentityDirectory):
    def __init__(self, names: Optional[Dict[str, str]] = None):
        self._names: Dict[str, str] = dict(names or {})

    def add_user(self, user_id: str, name: str):
        self._names[user_id] = name

    async def resolve_name(self, user_id: str) -> Optional[str]:
        return self._names.get(user_id)
