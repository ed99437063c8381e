"""
Chat module for server-side messaging functionality.

Handles:
- Connection lifecycle
- Direct message persistence and delivery
- Online user broadcasts
- Conversation history
"""
