"""
SQLAlchemy storage backends.

Blocking SQLAlchemy calls run in worker threads through 'asyncio.to_thread' so
the event loop keeps serving connections while a write or query is in flight.
Any SQLAlchemy URL works; SQLite is the default.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, create_engine, or_, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from server.storage.base import IdentityDirectory, MessageStore, StorageError, StoredMessage
from server.storage.models import Base, MessageRecord, UserRecord
from server.utils.logger import logger


def create_database_engine(database_url: str, create_tables: bool = True) -> Engine:
    """Create an engine for the given URL and make sure the schema exists."""
    url = make_url(database_url)
    kwargs = {}
    if url.get_backend_name() == "sqlite":
        # Sessions are opened from worker threads
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    if create_tables:
        Base.metadata.create_all(engine)
    return engine


def _to_stored(record: MessageRecord) -> StoredMessage:
    return StoredMessage(
        id=str(record.id),
        sender_id=record.sender_id,
        receiver_id=record.receiver_id,
        text=record.text,
        created_at=record.created_at
    )


class SqlMessageStore(MessageStore):
    """Message store backed by the 'messages' table."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)

    async def persist(self, sender_id: str, receiver_id: str, text: str, created_at: datetime) -> StoredMessage:
        try:
            return await asyncio.to_thread(self._persist, sender_id, receiver_id, text, created_at)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not persist message: {e}") from e

    async def query(self, user_a: str, user_b: str) -> List[StoredMessage]:
        try:
            return await asyncio.to_thread(self._query, user_a, user_b)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not query messages: {e}") from e

    def _persist(self, sender_id: str, receiver_id: str, text: str, created_at: datetime) -> StoredMessage:
        if created_at.tzinfo is not None:
            created_at = created_at.astimezone(timezone.utc)
        with self._sessions.begin() as session:
            record = MessageRecord(
                sender_id=sender_id,
                receiver_id=receiver_id,
                text=text,
                created_at=created_at
            )
            session.add(record)
            session.flush()
            return _to_stored(record)

    def _query(self, user_a: str, user_b: str) -> List[StoredMessage]:
        stmt = (
            select(MessageRecord)
            .where(or_(
                and_(MessageRecord.sender_id == user_a, MessageRecord.receiver_id == user_b),
                and_(MessageRecord.sender_id == user_b, MessageRecord.receiver_id == user_a),
            ))
            .order_by(MessageRecord.created_at, MessageRecord.id)
        )
        with self._sessions() as session:
            return [_to_stored(record) for record in session.scalars(stmt)]


class SqlIdentityDirectory(IdentityDirectory):
    """Identity directory backed by the 'users' table."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)

    def add_user(self, user_id: str, name: str):
        """Insert or rename a user."""
        with self._sessions.begin() as session:
            session.merge(UserRecord(id=user_id, name=name))

    async def resolve_name(self, user_id: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._resolve_name, user_id)
        except SQLAlchemyError as e:
            logger.warning(f"Name lookup failed for user {user_id}: {e}")
            return None

    def _resolve_name(self, user_id: str) -> Optional[str]:
        with self._sessions() as session:
            record = session.get(UserRecord, user_id)
            return record.name if record is not None else None
