"""
Client connection handle.

A 'ClientConnection' wraps the stream writer of one live TCP session and
tracks where that session is in its lifecycle:

    CONNECTED  -> socket accepted, no identity yet
    IDENTIFIED -> a register event bound a user id
    CLOSED     -> disconnected (terminal)
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from common.constants import WRITE_TIMEOUT
from common.protocol_definitions import encode_message
from server.utils.logger import logger


class ConnectionState(str, Enum):
    CONNECTED = 'connected'
    IDENTIFIED = 'identified'
    CLOSED = 'closed'


class ClientConnection:
    """One live transport session. Compared by identity."""

    def __init__(self, writer: asyncio.StreamWriter, conn_id: Optional[str] = None,
                 write_timeout: float = WRITE_TIMEOUT):
        self.writer = writer
        self.conn_id = conn_id or uuid.uuid4().hex[:12]
        self.peer = writer.get_extra_info('peername')
        self.state = ConnectionState.CONNECTED
        self.user_id: Optional[str] = None
        self.write_timeout = write_timeout
        self._write_lock = asyncio.Lock()

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    def identify(self, user_id: str):
        self.user_id = user_id
        self.state = ConnectionState.IDENTIFIED

    async def send(self, message: Dict[str, Any]) -> bool:
        """Send a JSON message to this client. Returns False if the write failed."""
        if self.is_closed:
            return False
        try:
            async with self._write_lock:
                self.writer.write(encode_message(message))
                await asyncio.wait_for(self.writer.drain(), self.write_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Write to conn={self.conn_id} timed out after {self.write_timeout}s")
            return False
        except Exception as e:
            logger.error(f"Failed to send to conn={self.conn_id}: {e}")
            return False

    async def close(self):
        """Mark the connection closed and release the socket."""
        if self.is_closed:
            return
        self.state = ConnectionState.CLOSED
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except Exception as e:
            logger.debug(f"Error closing conn={self.conn_id}: {e}")

    def __repr__(self) -> str:
        return f"ClientConnection(conn_id={self.conn_id!r}, user_id={self.user_id!r}, state={self.state.value})"
