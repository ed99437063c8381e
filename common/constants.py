"""
Shared constants for the direct-message chat relay.

This module contains all constants used across client and server components.
"""

from enum import Enum

# Network Configuration
DEFAULT_HOST = 'localhost'
DEFAULT_SERVER_HOST = '0.0.0.0'
DEFAULT_PORT = 9000

# Buffer Sizes
MAX_MESSAGE_BYTES = 1024 * 1024  # Largest accepted JSON line
WRITE_TIMEOUT = 10.0  # seconds a single write may wait on a slow reader

# Storage
DEFAULT_DATABASE_URL = 'sqlite:///chat.db'

# Client reconnection
MAX_RETRY_ATTEMPTS = 3
RECONNECT_ATTEMPTS = 5
RECONNECT_DELAY_BASE = 1.0  # seconds

# Presence
FALLBACK_NAME_TEMPLATE = 'User {user_id}'

# Logging
LOG_DIR = 'logs'
CHAT_LOG_FILE = 'chat_history.log'

# Error texts sent to clients
SAVE_FAILED_ERROR = 'Failed to save message'
INVALID_MESSAGE_ERROR = 'Invalid message'
HISTORY_FAILED_ERROR = 'Failed to load conversation'


class InboundEvent(str, Enum):
    """Events a client may send to the server."""
    REGISTER = 'register'
    SEND = 'send'
    GET_CONVERSATION = 'getConversation'
    DISCONNECT = 'disconnect'


class OutboundEvent(str, Enum):
    """Events the server pushes to clients."""
    ONLINE_USERS = 'onlineUsers'
    RECEIVE_MESSAGE = 'receiveMessage'
    MESSAGE_SENT = 'messageSent'
    MESSAGE_ERROR = 'messageError'
    CONVERSATION = 'conversation'
    ERROR = 'error'
