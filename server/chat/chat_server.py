"""
Chat server module.

This module handles the server-side relay of direct messages: connection
lifecycle, presence registration, message persistence and delivery, and
conversation history requests.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from common.constants import (
    SAVE_FAILED_ERROR, INVALID_MESSAGE_ERROR, HISTORY_FAILED_ERROR
)
from common.protocol_definitions import (
    MessagePayload, create_online_users_message, create_receive_message,
    create_message_sent, create_message_error, create_conversation_message,
    create_error_message
)
from server.chat.connection import ClientConnection
from server.chat.history_service import HistoryService
from server.presence.presence_registry import PresenceRegistry, MalformedRegistration
from server.storage.base import IdentityDirectory, MessageStore, StorageError
from server.utils.logger import logger


class ChatServer:
    """Server-side relay functionality."""

    def __init__(self, message_store: MessageStore, identity_directory: IdentityDirectory,
                 registry: Optional[PresenceRegistry] = None):
        self.message_store = message_store
        self.connections: Dict[str, ClientConnection] = {}  # conn_id -> connection
        self.lock = asyncio.Lock()  # Protect the connection set
        self.registry = registry or PresenceRegistry(identity_directory)
        self.registry.add_listener(self.broadcast_online_users)
        self.history = HistoryService(message_store, identity_directory)
        self._pending: Set[asyncio.Task] = set()  # outbound pushes in flight

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def push(self, connection: ClientConnection, message: dict) -> asyncio.Task:
        """
        Write a message to one connection in the background.
        The task resolves to False if the write failed or timed out.
        """
        return self._spawn(connection.send(message))

    async def broadcast(self, message: dict) -> List[asyncio.Task]:
        """Push a JSON message to all connected clients without waiting on their writes."""
        async with self.lock:
            targets = list(self.connections.values())

        logger.debug(f"Broadcast type={message.get('type')} to {len(targets)} connection(s)")
        return [self.push(connection, message) for connection in targets]

    async def broadcast_online_users(self, users: List[Dict[str, str]]):
        """Push the online user list to every connection."""
        await self.broadcast(create_online_users_message(users))

    async def connect(self, connection: ClientConnection):
        """Track a newly accepted connection."""
        async with self.lock:
            self.connections[connection.conn_id] = connection

    async def handle_register(self, connection: ClientConnection, data: dict):
        """Process register message."""
        user_id = data.get('userId')
        try:
            await self.registry.register(user_id, connection)
        except MalformedRegistration as e:
            logger.warning(f"Rejected registration on conn={connection.conn_id}: {e}")
            await connection.send(create_error_message("Invalid userId"))
            return
        connection.identify(user_id)

    async def handle_send(self, connection: ClientConnection, data: dict):
        """Persist a direct message, then deliver it to the receiver and echo it to the sender."""
        sender_id = data.get('senderId') or connection.user_id
        receiver_id = data.get('receiverId')
        content = data.get('content')

        if not _is_id(sender_id) or not _is_id(receiver_id) or not isinstance(content, str):
            logger.warning(f"Invalid send request on conn={connection.conn_id}")
            await connection.send(create_message_error(INVALID_MESSAGE_ERROR))
            return

        try:
            stored = await self.message_store.persist(
                sender_id, receiver_id, content, datetime.now(timezone.utc)
            )
        except StorageError as e:
            logger.log_delivery_failure(sender_id, receiver_id, e)
            await connection.send(create_message_error(SAVE_FAILED_ERROR))
            return

        payload = MessagePayload(
            id=stored.id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            timestamp=stored.timestamp
        )

        receiver = self.registry.lookup(receiver_id)
        if receiver is not None:
            self._spawn(self._deliver(receiver, payload))
        else:
            logger.log_direct_message(stored.id, sender_id, receiver_id, content, False)

        await connection.send(create_message_sent(payload))
        await connection.send(create_receive_message(payload))

    async def _deliver(self, receiver: ClientConnection, payload: MessagePayload):
        delivered = await receiver.send(create_receive_message(payload))
        logger.log_direct_message(
            payload.id, payload.sender_id, payload.receiver_id, payload.content, delivered
        )

    async def handle_get_conversation(self, connection: ClientConnection, data: dict):
        """Send the stored conversation between two users to the requesting client."""
        user_a = data.get('userA') or connection.user_id
        user_b = data.get('userB')

        if not _is_id(user_a) or not _is_id(user_b):
            await connection.send(create_error_message("userA and userB are required"))
            return

        logger.info(f"Conversation {user_a}<->{user_b} requested on conn={connection.conn_id}")
        try:
            messages = await self.history.get_conversation(user_a, user_b)
        except StorageError as e:
            logger.log_error("conversation query", e)
            await connection.send(create_error_message(HISTORY_FAILED_ERROR))
            return

        await connection.send(create_conversation_message(user_a, user_b, messages))

    async def disconnect_client(self, connection: ClientConnection):
        """Remove client and notify others."""
        async with self.lock:
            self.connections.pop(connection.conn_id, None)

        await connection.close()

        # Broadcast happens through the registry listener, outside both locks
        await self.registry.unregister(connection)

    async def wait_for_pending(self):
        """Wait until name lookups and outbound pushes have settled."""
        while True:
            await self.registry.wait_for_pending()
            if not self._pending:
                return
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self):
        """Cancel background work owned by the relay and the registry."""
        await self.registry.close()
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get_online_count(self) -> int:
        """Get the number of registered users."""
        return len(self.registry)

    def get_connection_count(self) -> int:
        """Get the number of open connections."""
        return len(self.connections)


def _is_id(value) -> bool:
    return isinstance(value, str) and bool(value.strip())
