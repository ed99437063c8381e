"""
Server configuration module.

This module handles server-side configuration settings.
"""

import os
from typing import Dict, Optional

from common.constants import (
    DEFAULT_SERVER_HOST, DEFAULT_PORT, DEFAULT_DATABASE_URL, LOG_DIR, MAX_MESSAGE_BYTES
)


class ServerConfig:
    """Server configuration class."""

    def __init__(self, host: str = DEFAULT_SERVER_HOST, port: int = DEFAULT_PORT,
                 database_url: str = DEFAULT_DATABASE_URL, logs_dir: str = LOG_DIR,
                 max_message_bytes: int = MAX_MESSAGE_BYTES):
        self.host = host
        self.port = port

        # Storage configuration
        self.database_url = database_url

        # Logging configuration
        self.logs_dir = logs_dir

        # Connection settings
        self.max_message_bytes = max_message_bytes

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ServerConfig":
        """Build a config from CHAT_* environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        return cls(
            host=env.get('CHAT_HOST', DEFAULT_SERVER_HOST),
            port=int(env.get('CHAT_PORT', DEFAULT_PORT)),
            database_url=env.get('CHAT_DATABASE_URL', DEFAULT_DATABASE_URL),
            logs_dir=env.get('CHAT_LOGS_DIR', LOG_DIR),
            max_message_bytes=int(env.get('CHAT_MAX_MESSAGE_BYTES', MAX_MESSAGE_BYTES))
        )

    def get_connection_info(self):
        """Get connection information."""
        return {
            'host': self.host,
            'port': self.port
        }

    def get_storage_settings(self):
        """Get storage settings."""
        return {
            'database_url': self.database_url
        }

    def get_log_settings(self):
        """Get logging settings."""
        return {
            'logs_dir': self.logs_dir
        }
