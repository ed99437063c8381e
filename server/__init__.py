"""
Server package for the direct-message chat relay.

This package contains all server-side functionality including:
- Presence tracking
- Real-time message relay
- Conversation history queries
- Message and identity storage
- Configuration and utilities
"""
