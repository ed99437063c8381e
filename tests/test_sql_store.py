#!/usr/bin/env python3
"""Tests for the SQLAlchemy message store and identity directory (in-memory SQLite)."""

import unittest
from datetime import datetime, timedelta, timezone

from server.storage.base import StorageError
from server.storage.models import Base
from server.storage.sql_store import SqlIdentityDirectory, SqlMessageStore, create_database_engine

T0 = datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)


class TestSqlMessageStore(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.engine = create_database_engine('sqlite://')
        self.store = SqlMessageStore(self.engine)

    def tearDown(self):
        self.engine.dispose()

    async def test_persist_assigns_id_and_keeps_fields(self):
        message = await self.store.persist('u1', 'u2', 'hi', T0)

        self.assertTrue(message.id)
        self.assertEqual(message.sender_id, 'u1')
        self.assertEqual(message.receiver_id, 'u2')
        self.assertEqual(message.text, 'hi')
        self.assertEqual(message.timestamp, int(T0.timestamp() * 1000))

    async def test_query_returns_both_directions_in_time_order(self):
        await self.store.persist('u1', 'u2', 'late', T0 + timedelta(seconds=3))
        await self.store.persist('u2', 'u1', 'early', T0 + timedelta(seconds=1))
        await self.store.persist('u1', 'u3', 'other pair', T0 + timedelta(seconds=2))

        messages = await self.store.query('u2', 'u1')

        self.assertEqual([m.text for m in messages], ['early', 'late'])
        self.assertEqual(messages[0].timestamp, int((T0 + timedelta(seconds=1)).timestamp() * 1000))

    async def test_ties_are_broken_by_insertion_order(self):
        for text in ('a', 'b', 'c'):
            await self.store.persist('u1', 'u2', text, T0)

        self.assertEqual([m.text for m in await self.store.query('u1', 'u2')], ['a', 'b', 'c'])

    async def test_query_for_unknown_pair_is_empty(self):
        self.assertEqual(await self.store.query('nobody', 'else'), [])

    async def test_persisted_and_queried_timestamps_agree(self):
        persisted = await self.store.persist('u1', 'u2', 'hi', T0)
        queried = (await self.store.query('u1', 'u2'))[0]

        self.assertEqual(queried.id, persisted.id)
        self.assertEqual(queried.timestamp, persisted.timestamp)

    async def test_backend_failure_raises_storage_error(self):
        Base.metadata.drop_all(self.engine)

        with self.assertRaises(StorageError):
            await self.store.persist('u1', 'u2', 'hi', T0)
        with self.assertRaises(StorageError):
            await self.store.query('u1', 'u2')


class TestSqlIdentityDirectory(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.engine = create_database_engine('sqlite://')
        self.directory = SqlIdentityDirectory(self.engine)

    def tearDown(self):
        self.engine.dispose()

    async def test_resolve_known_and_unknown(self):
        self.directory.add_user('u1', 'Alice')

        self.assertEqual(await self.directory.resolve_name('u1'), 'Alice')
        self.assertIsNone(await self.directory.resolve_name('u2'))

    async def test_add_user_renames_existing(self):
        self.directory.add_user('u1', 'Alice')
        self.directory.add_user('u1', 'Alicia')

        self.assertEqual(await self.directory.resolve_name('u1'), 'Alicia')

    async def test_unavailable_directory_returns_none(self):
        self.directory.add_user('u1', 'Alice')
        Base.metadata.drop_all(self.engine)

        self.assertIsNone(await self.directory.resolve_name('u1'))


if __name__ == '__main__':
    unittest.main()
