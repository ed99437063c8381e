"""
Conversation history queries.

Rebuilds the transcript between two users from the message store, independent
of the live relay. Clients call it before opening a conversation to backfill
past messages.
"""

from typing import Any, Dict, List, Optional

from common.protocol_definitions import ConversationEntry
from server.storage.base import IdentityDirectory, MessageStore
from server.utils.logger import logger


class HistoryService:
    """Read-only access to stored conversations."""

    def __init__(self, message_store: MessageStore, identity_directory: IdentityDirectory):
        self.message_store = message_store
        self.identity_directory = identity_directory

    async def get_conversation(self, user_a: str, user_b: str) -> List[Dict[str, Any]]:
        """
        Return every message exchanged between user_a and user_b, oldest first.

        The result is the same for (a, b) and (b, a) and is empty when the two
        users never exchanged a message. Participant names are looked up once
        each and left as None when the directory does not know them.

        Raises:
            StorageError: If the message store cannot be queried.
        """
        messages = await self.message_store.query(user_a, user_b)
        if not messages:
            return []

        names = {
            user_a: await self._resolve_name(user_a),
            user_b: await self._resolve_name(user_b),
        }
        ordered = sorted(enumerate(messages), key=lambda item: (item[1].timestamp, item[0]))
        return [
            ConversationEntry(
                id=message.id,
                sender_id=message.sender_id,
                receiver_id=message.receiver_id,
                content=message.text,
                timestamp=message.timestamp,
                sender_name=names.get(message.sender_id),
                receiver_name=names.get(message.receiver_id)
            ).to_dict()
            for _, message in ordered
        ]

    async def _resolve_name(self, user_id: str) -> Optional[str]:
        try:
            return await self.identity_directory.resolve_name(user_id)
        except Exception as e:
            logger.warning(f"Name lookup failed for user {user_id}: {e}")
            return None
