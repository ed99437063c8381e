"""
Chat client module.

This module handles client-side direct messaging functionality.
"""

import asyncio
from typing import Dict, List, Optional

from common.constants import OutboundEvent
from common.protocol_definitions import (
    encode_message, create_register_message, create_send_message,
    create_get_conversation_message, create_disconnect_message
)
from client.utils.logger import logger


class ChatClient:
    """Client-side chat functionality."""

    def __init__(self, writer: Optional[asyncio.StreamWriter] = None):
        self.writer = writer
        self.user_id: Optional[str] = None
        self.online_users: List[Dict[str, str]] = []

    def set_writer(self, writer: asyncio.StreamWriter):
        """Set the writer for sending messages."""
        self.writer = writer

    def set_user_id(self, user_id: str):
        """Set the identity used as sender and for filtering own messages."""
        self.user_id = user_id

    async def send_message(self, message: dict) -> bool:
        """Send a JSON message to the server."""
        if not self.writer:
            logger.error("[ERROR] Not connected to server")
            return False

        try:
            self.writer.write(encode_message(message))
            await self.writer.drain()
            return True
        except (ConnectionError, RuntimeError) as e:
            logger.error(f"[ERROR] Failed to send message: {e}")
            return False

    async def register(self) -> bool:
        """Announce this client's identity."""
        logger.show_register_info(self.user_id)
        return await self.send_message(create_register_message(self.user_id))

    async def send_direct(self, receiver_id: str, content: str) -> bool:
        """Send a direct message to another user."""
        return await self.send_message(create_send_message(self.user_id, receiver_id, content))

    async def request_conversation(self, other_user_id: str) -> bool:
        """Request the stored conversation with another user."""
        return await self.send_message(create_get_conversation_message(other_user_id, self.user_id))

    async def send_disconnect(self) -> bool:
        """Tell the server this client is leaving."""
        return await self.send_message(create_disconnect_message())

    async def handle_message(self, message: dict):
        """Handle different types of messages from server."""
        msg_type = message.get('type', '')

        if msg_type == OutboundEvent.ONLINE_USERS.value:
            self.online_users = message.get('users', [])
            logger.show_online_users(self.online_users, self.user_id)
        elif msg_type == OutboundEvent.RECEIVE_MESSAGE.value:
            logger.show_message(message, self.user_id)
        elif msg_type == OutboundEvent.MESSAGE_SENT.value:
            logger.show_message_sent(message)
        elif msg_type == OutboundEvent.MESSAGE_ERROR.value:
            logger.error(f"[ERROR] Message not sent: {message.get('error', 'Unknown error')}")
        elif msg_type == OutboundEvent.CONVERSATION.value:
            logger.show_conversation(message.get('userB'), message.get('messages', []), self.user_id)
        elif msg_type == OutboundEvent.ERROR.value:
            logger.error(f"[ERROR] Server error: {message.get('message', 'Unknown error')}")
        else:
            logger.debug(f"Ignoring message type '{msg_type}'")

    def is_online(self, user_id: str) -> bool:
        return any(u.get('id') == user_id for u in self.online_users)
