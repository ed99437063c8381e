"""
Presence registry.

The registry is the single authoritative record of which users are online and
which connection reaches them. It keeps at most one entry per user id: a newer
registration for the same user evicts the older entry (the older connection
stays open but no longer receives that user's messages).

All mutations run under one asyncio.Lock that is never held across I/O.
Display names are resolved through the identity directory in background tasks
after the entry is inserted; a resolved name is only written back if the entry
for that user still holds the connection the lookup was started for, so a
superseded or removed entry is never resurrected.

Listeners registered with 'add_listener' receive the new snapshot after every
mutation. The relay uses this to broadcast the online user list.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from common.constants import FALLBACK_NAME_TEMPLATE
from common.protocol_definitions import OnlineUser
from server.storage.base import IdentityDirectory
from server.utils.logger import logger

SnapshotListener = Callable[[List[Dict[str, str]]], Awaitable[None]]


class MalformedRegistration(ValueError):
    """Raised when a register event carries no usable user id."""


def fallback_name(user_id: str) -> str:
    return FALLBACK_NAME_TEMPLATE.format(user_id=user_id)


def _conn_label(connection: Any) -> str:
    return getattr(connection, 'conn_id', repr(connection))


@dataclass
class PresenceEntry:
    user_id: str
    connection: Any
    display_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or fallback_name(self.user_id)


class PresenceRegistry:
    """Maps user ids to their live connection."""

    def __init__(self, identity_directory: IdentityDirectory):
        self.identity_directory = identity_directory
        self._entries: Dict[str, PresenceEntry] = {}  # user_id -> entry, insertion ordered
        self._lock = asyncio.Lock()
        self._listeners: List[SnapshotListener] = []
        self._pending: Set[asyncio.Task] = set()

    def add_listener(self, listener: SnapshotListener):
        """Subscribe an async callback to snapshot changes."""
        self._listeners.append(listener)

    async def register(self, user_id: str, connection: Any):
        """Bind user_id to connection, replacing any previous binding for that user."""
        if not isinstance(user_id, str) or not user_id.strip():
            raise MalformedRegistration(f"Invalid user id: {user_id!r}")

        async with self._lock:
            previous = self._entries.pop(user_id, None)
            # A connection carries a single identity
            for other_id in [uid for uid, entry in self._entries.items() if entry.connection is connection]:
                del self._entries[other_id]
            self._entries[user_id] = PresenceEntry(user_id=user_id, connection=connection)

        if previous is not None and previous.connection is not connection:
            logger.log_superseded(user_id, _conn_label(previous.connection), _conn_label(connection))
        logger.log_register(user_id, _conn_label(connection))

        await self._notify()

        task = asyncio.create_task(self._resolve_display_name(user_id, connection))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def unregister(self, connection: Any) -> bool:
        """Remove the entry bound to connection. Returns False if there was none."""
        async with self._lock:
            user_id = next(
                (uid for uid, entry in self._entries.items() if entry.connection is connection),
                None
            )
            if user_id is None:
                return False
            del self._entries[user_id]

        logger.log_disconnect(user_id, _conn_label(connection))
        await self._notify()
        return True

    def lookup(self, user_id: str) -> Optional[Any]:
        """Return the connection currently bound to user_id, if any."""
        entry = self._entries.get(user_id)
        return entry.connection if entry is not None else None

    def snapshot(self) -> List[Dict[str, str]]:
        """Return the online users as [{"id", "name"}] in registration order."""
        return [OnlineUser(id=entry.user_id, name=entry.name).to_dict() for entry in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._entries

    async def wait_for_pending(self):
        """Wait for outstanding display-name lookups to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self):
        """Cancel outstanding display-name lookups."""
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _resolve_display_name(self, user_id: str, connection: Any):
        try:
            name = await self.identity_directory.resolve_name(user_id)
        except Exception as e:
            logger.warning(f"Name lookup failed for user {user_id}: {e}")
            return
        if not name:
            return

        async with self._lock:
            entry = self._entries.get(user_id)
            if entry is None or entry.connection is not connection:
                return
            entry.display_name = name

        await self._notify()

    async def _notify(self):
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                await listener(snapshot)
            except Exception as e:
                logger.log_error("presence listener", e)
