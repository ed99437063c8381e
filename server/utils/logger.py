"""
Server logging module.

This module handles server-side logging functionality.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

from common.constants import LOG_DIR, CHAT_LOG_FILE


class ServerLogger:
    """Server logging class."""

    def __init__(self, logs_dir: str = LOG_DIR, log_level: int = logging.INFO):
        # Set up main logger
        self.logger = logging.getLogger('chat_relay_server')
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        # Create console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        # Add handler to logger
        self.logger.addHandler(console_handler)

        self.set_logs_dir(logs_dir)

    def set_logs_dir(self, logs_dir: str):
        """Point the transcript file at a new logs directory."""
        self.logs_dir = Path(logs_dir)
        self.chat_log_path = self.logs_dir / CHAT_LOG_FILE

    def set_level(self, log_level: int):
        """Change the level of the logger and its handlers."""
        self.logger.setLevel(log_level)
        for handler in self.logger.handlers:
            handler.setLevel(log_level)

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

    def log_connection(self, addr: tuple, conn_id: str):
        """Log client connection."""
        self.info(f"New connection from {addr}, conn={conn_id}")

    def log_register(self, user_id: str, conn_id: str):
        """Log presence registration."""
        self.info(f"User '{user_id}' registered on conn={conn_id}")

    def log_superseded(self, user_id: str, old_conn_id: str, new_conn_id: str):
        """Log a presence entry replaced by a newer connection."""
        self.info(f"User '{user_id}' moved from conn={old_conn_id} to conn={new_conn_id}")

    def log_disconnect(self, user_id: str, conn_id: str):
        """Log user disconnect."""
        self.info(f"User {user_id} (conn={conn_id}) disconnected")

    def log_direct_message(self, message_id: str, sender_id: str, receiver_id: str, text: str, delivered: bool):
        """Log a persisted direct message."""
        status = "delivered" if delivered else "stored (not delivered)"
        self.info(f"📨 MESSAGE {message_id} from {sender_id} to {receiver_id} {status}")
        self._write_to_file(self.chat_log_path, f"{datetime.now(timezone.utc).isoformat()} | {sender_id}→{receiver_id} | {message_id} | {text}")

    def log_delivery_failure(self, sender_id: str, receiver_id: str, error: Exception):
        """Log a message that could not be persisted."""
        self.error(f"Failed to save message from {sender_id} to {receiver_id}: {error}")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")

    def _write_to_file(self, file_path: Path, content: str):
        """Write content to log file."""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'a', encoding='utf-8') as f:
                f.write(content + '\n')
        except OSError as e:
            self.error(f"Failed to write to log file {file_path}: {e}")


# Global logger instance
logger = ServerLogger()
