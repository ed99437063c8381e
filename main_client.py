#!/usr/bin/env python3
"""
Direct-Message Chat Client - Main Entry Point

Usage:
    python main_client.py [--user-id ID] [--server-ip HOST] [--port PORT]

Commands once connected:
    /to <userId> <text>   send a direct message (and make userId the current peer)
    /history <userId>     load the stored conversation
    /online               list online users
    /quit                 disconnect
"""

if __name__ == "__main__":
    from client.main_client import main

    main()
