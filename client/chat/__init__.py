"""
Chat module for client-side messaging functionality.

Handles:
- Sending register, send and history requests
- Displaying online users, messages and transcripts
"""
