"""
Client logging module.

This module handles client-side logging functionality.
"""

import logging
import sys
from datetime import datetime


class ClientLogger:
    """Client logging class."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger('chat_relay_client')
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        # Create console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        # Add handler to logger
        self.logger.addHandler(console_handler)

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def error(self, message: str):
        """Log error message."""
        self.logger.error(message)

    def warning(self, message: str):
        """Log warning message."""
        self.logger.warning(message)

    def debug(self, message: str):
        """Log debug message."""
        self.logger.debug(message)

    def log_connection(self, host: str, port: int, success: bool):
        """Log connection attempt."""
        status = "Connected" if success else "Failed to connect"
        self.info(f"{status} to {host}:{port}")

    def show_register_info(self, user_id: str):
        """Show registration information."""
        self.info(f"[INFO] Registering as '{user_id}'...")

    def show_online_users(self, users: list, current_user_id: str = None):
        """Show online user list."""
        others = [u for u in users if u.get('id') != current_user_id]
        self.info(f"[INFO] Online users ({len(others)}):")
        for u in others:
            self.info(f"  - {u.get('name')} (id={u.get('id')})")

    def show_message(self, message: dict, current_user_id: str = None):
        """Show a received direct message."""
        sender = message.get('senderName') or message.get('senderId')
        when = _format_timestamp(message.get('timestamp'))
        if message.get('senderId') == current_user_id:
            self.info(f"[{when}] you → {message.get('receiverId')}: {message.get('content')}")
        else:
            self.info(f"[{when}] {sender}: {message.get('content')}")

    def show_message_sent(self, message: dict):
        """Show delivery confirmation."""
        self.debug(f"[SENT] message {message.get('id')} to {message.get('receiverId')}")

    def show_conversation(self, user_b: str, messages: list, current_user_id: str = None):
        """Show a conversation transcript."""
        if not messages:
            self.info(f"[HISTORY] No previous messages with {user_b}")
            return
        self.info(f"[HISTORY] {len(messages)} message(s) with {user_b}:")
        self.info("-" * 50)
        for message in messages:
            self.show_message(message, current_user_id)
        self.info("-" * 50)

    def show_interactive_mode_info(self):
        """Show interactive mode information."""
        self.info("[INFO] Commands: /to <userId> <text>, /history <userId>, /online, /quit")
        self.info("[INFO] Plain text is sent to the last /to recipient")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")


def _format_timestamp(timestamp) -> str:
    if not isinstance(timestamp, (int, float)):
        return '?'
    return datetime.fromtimestamp(timestamp / 1000).strftime('%Y-%m-%d %H:%M:%S')


# Global logger instance
logger = ClientLogger()
