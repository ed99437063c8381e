"""Shared helpers for the chat relay tests."""

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock, Mock

sys.path.insert(0, str(Path(__file__).parent.parent))

from server.chat.connection import ClientConnection
from server.storage.base import IdentityDirectory, MessageStore, StorageError, StoredMessage


def make_writer(fail: bool = False) -> Mock:
    """A stand-in for asyncio.StreamWriter that records writes."""
    writer = Mock()
    writer.get_extra_info.return_value = ('127.0.0.1', 50000)
    writer.drain = AsyncMock(side_effect=ConnectionResetError("peer gone") if fail else None)
    writer.wait_closed = AsyncMock()
    return writer


def make_connection(conn_id: str, fail: bool = False) -> ClientConnection:
    return ClientConnection(make_writer(fail), conn_id=conn_id)


def sent_messages(connection: ClientConnection, msg_type: Optional[str] = None) -> List[dict]:
    """Decode every JSON line written to a connection, optionally filtered by type."""
    messages = [json.loads(call.args[0].decode('utf-8')) for call in connection.writer.write.call_args_list]
    if msg_type is not None:
        messages = [m for m in messages if m.get('type') == msg_type]
    return messages


def without_type(message: dict) -> dict:
    return {k: v for k, v in message.items() if k != 'type'}


class FailingMessageStore(MessageStore):
    """A message store whose backend is always down."""

    async def persist(self, sender_id: str, receiver_id: str, text: str, created_at: datetime) -> StoredMessage:
        raise StorageError("database unavailable")

    async def query(self, user_a: str, user_b: str) -> List[StoredMessage]:
        raise StorageError("database unavailable")


class BrokenDirectory(IdentityDirectory):
    """A directory that breaks its own contract by raising."""

    async def resolve_name(self, user_id: str) -> Optional[str]:
        raise RuntimeError("directory offline")
