"""
Presence module for tracking online users.

Handles:
- User id to connection binding
- Display name resolution
- Online user snapshots
"""
