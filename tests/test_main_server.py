#!/usr/bin/env python3
"""
End-to-end tests for the TCP relay server.

Starts a real server on an ephemeral port and drives it with raw
newline-delimited JSON over asyncio streams.
"""

import argparse
import asyncio
import json
import tempfile
import unittest
from datetime import datetime, timezone

from common.constants import OutboundEvent
from common.protocol_definitions import (
    create_register_message, create_send_message, create_get_conversation_message,
    create_disconnect_message, encode_message
)
from server.main_server import ChatRelayServer, parse_user
from server.storage.memory import InMemoryIdentityDirectory, InMemoryMessageStore
from server.utils.config import ServerConfig

TIMEOUT = 5


async def read_until(reader: asyncio.StreamReader, msg_type: str, predicate=None) -> dict:
    """Read lines until a message of the given type (matching predicate) arrives."""
    while True:
        line = await asyncio.wait_for(reader.readline(), TIMEOUT)
        if not line:
            raise ConnectionError("server closed the connection")
        message = json.loads(line)
        if message.get('type') == msg_type and (predicate is None or predicate(message)):
            return message


class TestChatRelayServer(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.logs = tempfile.TemporaryDirectory()
        self.store = InMemoryMessageStore()
        self.directory = InMemoryIdentityDirectory({'u1': 'Alice', 'u2': 'Bob'})
        config = ServerConfig(host='127.0.0.1', port=0, logs_dir=self.logs.name, max_message_bytes=4096)
        self.server = ChatRelayServer(config, message_store=self.store, identity_directory=self.directory)
        await self.server.start()
        self.clients = []

    async def asyncTearDown(self):
        for _, writer in self.clients:
            writer.close()
        for _, writer in self.clients:
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
        await self.server.stop()
        self.logs.cleanup()

    async def open_client(self):
        reader, writer = await asyncio.open_connection('127.0.0.1', self.server.port)
        self.clients.append((reader, writer))
        return reader, writer

    async def send(self, writer, message):
        writer.write(encode_message(message))
        await writer.drain()

    async def test_register_send_and_disconnect(self):
        reader_a, writer_a = await self.open_client()
        reader_b, writer_b = await self.open_client()

        await self.send(writer_a, create_register_message('u1'))
        await read_until(reader_a, OutboundEvent.ONLINE_USERS.value,
                         lambda m: m['users'] == [{'id': 'u1', 'name': 'Alice'}])

        await self.send(writer_b, create_register_message('u2'))
        await read_until(reader_a, OutboundEvent.ONLINE_USERS.value,
                         lambda m: {u['id'] for u in m['users']} == {'u1', 'u2'})

        await self.send(writer_a, create_send_message('u1', 'u2', 'hi'))

        received = await read_until(reader_b, OutboundEvent.RECEIVE_MESSAGE.value)
        self.assertEqual((received['senderId'], received['receiverId'], received['content']), ('u1', 'u2', 'hi'))

        sent = await read_until(reader_a, OutboundEvent.MESSAGE_SENT.value)
        echoed = await read_until(reader_a, OutboundEvent.RECEIVE_MESSAGE.value)
        self.assertEqual(sent['id'], received['id'])
        self.assertEqual(echoed['id'], received['id'])
        self.assertEqual(len(self.store), 1)

        # Abrupt close counts as a disconnect
        writer_b.close()
        await read_until(reader_a, OutboundEvent.ONLINE_USERS.value,
                         lambda m: m['users'] == [{'id': 'u1', 'name': 'Alice'}])
        self.assertIsNone(self.server.chat_server.registry.lookup('u2'))

    async def test_conversation_request(self):
        reader_a, writer_a = await self.open_client()
        await self.store.persist('u2', 'u1', 'earlier', datetime.now(timezone.utc))

        await self.send(writer_a, create_register_message('u1'))
        await self.send(writer_a, create_get_conversation_message('u2'))

        response = await read_until(reader_a, OutboundEvent.CONVERSATION.value)
        self.assertEqual(response['userA'], 'u1')
        self.assertEqual(response['userB'], 'u2')
        self.assertEqual([m['content'] for m in response['messages']], ['earlier'])
        self.assertEqual(response['messages'][0]['senderName'], 'Bob')

    async def test_bad_input_keeps_connection_usable(self):
        reader, writer = await self.open_client()

        writer.write(b'this is not json\n')
        await writer.drain()
        error = await read_until(reader, OutboundEvent.ERROR.value)
        self.assertEqual(error['message'], 'Malformed JSON')

        await self.send(writer, {'type': 'teleport'})
        error = await read_until(reader, OutboundEvent.ERROR.value)
        self.assertIn('Unknown message type', error['message'])

        writer.write(b'{"type": "send", "content": "' + b'x' * 8192 + b'"}\n')
        await writer.drain()
        error = await read_until(reader, OutboundEvent.ERROR.value)
        self.assertEqual(error['message'], 'Message too large')

        await self.send(writer, create_register_message('u1'))
        online = await read_until(reader, OutboundEvent.ONLINE_USERS.value)
        self.assertEqual(online['users'][0]['id'], 'u1')

    async def test_oversized_line_in_chunks_is_reported_once(self):
        reader, writer = await self.open_client()
        line = b'{"type": "send", "content": "' + b'x' * 200000 + b'"}\n'

        for start in range(0, len(line), 1000):
            writer.write(line[start:start + 1000])
            await writer.drain()
        await self.send(writer, create_register_message('u1'))

        replies = []
        while True:
            message = json.loads(await asyncio.wait_for(reader.readline(), TIMEOUT))
            if message['type'] == OutboundEvent.ONLINE_USERS.value:
                break
            replies.append(message)

        self.assertEqual(replies, [{'type': OutboundEvent.ERROR.value, 'message': 'Message too large'}])
        self.assertEqual(len(self.store), 0)

    async def test_explicit_disconnect_closes_connection(self):
        reader_a, writer_a = await self.open_client()
        reader_b, writer_b = await self.open_client()
        await self.send(writer_a, create_register_message('u1'))
        await self.send(writer_b, create_register_message('u2'))
        await read_until(reader_a, OutboundEvent.ONLINE_USERS.value, lambda m: len(m['users']) == 2)

        await self.send(writer_b, create_disconnect_message())

        await read_until(reader_a, OutboundEvent.ONLINE_USERS.value,
                         lambda m: [u['id'] for u in m['users']] == ['u1'])
        await asyncio.wait_for(reader_b.read(), TIMEOUT)
        self.assertTrue(reader_b.at_eof())


class TestReadLine(unittest.IsolatedAsyncioTestCase):

    async def test_oversized_line_is_skipped_whole(self):
        reader = asyncio.StreamReader(limit=32)
        reader.feed_data(b'x' * 40)
        reader.feed_data(b'y' * 40 + b'\n{"type": "register"}\n')
        reader.feed_data(b'z' * 50)
        reader.feed_eof()

        self.assertIsNone(await ChatRelayServer.read_line(reader))
        self.assertEqual(await ChatRelayServer.read_line(reader), b'{"type": "register"}\n')
        # An oversized tail cut off by EOF ends the stream
        self.assertEqual(await ChatRelayServer.read_line(reader), b'')

    async def test_short_unterminated_tail_is_returned(self):
        reader = asyncio.StreamReader(limit=32)
        reader.feed_data(b'{"type": "disconnect"}')
        reader.feed_eof()

        self.assertEqual(await ChatRelayServer.read_line(reader), b'{"type": "disconnect"}')
        self.assertEqual(await ChatRelayServer.read_line(reader), b'')


class TestParseUser(unittest.TestCase):

    def test_valid_pair(self):
        self.assertEqual(parse_user('u1=Alice Smith'), ('u1', 'Alice Smith'))

    def test_invalid_pairs(self):
        for value in ('u1', '=Alice', 'u1='):
            with self.assertRaises(argparse.ArgumentTypeError):
                parse_user(value)


if __name__ == '__main__':
    unittest.main()
