#!/usr/bin/env python3
"""
Direct-Message Chat Relay Server - Main Entry Point

Usage:
    python main_server.py

Optional arguments:
    --host HOST           Bind address (default: 0.0.0.0, or CHAT_HOST)
    --port PORT           TCP port (default: 9000, or CHAT_PORT)
    --database-url URL    SQLAlchemy URL (default: sqlite:///chat.db, or CHAT_DATABASE_URL)
    --logs-dir DIR        Transcript log directory (default: logs, or CHAT_LOGS_DIR)
    --user ID=NAME        Add a user to the identity directory (repeatable)
    --debug               Enable debug logging
"""

if __name__ == "__main__":
    from server.main_server import main

    main()
