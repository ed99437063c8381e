#!/usr/bin/env python3
"""
Direct-Message Chat Relay Server - Main Entry Point

This is the main entry point for the server application.
It wires the message store, identity directory, presence registry and relay
into a TCP server speaking newline-delimited JSON.
"""

import argparse
import asyncio
import logging
from typing import Optional

from common.constants import InboundEvent
from common.protocol_definitions import decode_message, parse_inbound_event, create_error_message
from server.chat.chat_server import ChatServer
from server.chat.connection import ClientConnection
from server.storage.base import IdentityDirectory, MessageStore
from server.storage.sql_store import SqlIdentityDirectory, SqlMessageStore, create_database_engine
from server.utils.config import ServerConfig
from server.utils.logger import logger


class ChatRelayServer:
    """Main server class that integrates all functionality."""

    def __init__(self, config: Optional[ServerConfig] = None,
                 message_store: Optional[MessageStore] = None,
                 identity_directory: Optional[IdentityDirectory] = None):
        self.config = config or ServerConfig()
        logger.set_logs_dir(self.config.get_log_settings()['logs_dir'])

        self.engine = None
        if message_store is None or identity_directory is None:
            self.engine = create_database_engine(self.config.get_storage_settings()['database_url'])
        self.message_store = message_store or SqlMessageStore(self.engine)
        self.identity_directory = identity_directory or SqlIdentityDirectory(self.engine)

        self.chat_server = ChatServer(self.message_store, self.identity_directory)
        self.server: Optional[asyncio.AbstractServer] = None

    async def dispatch(self, connection: ClientConnection, event: InboundEvent, message: dict) -> bool:
        """Route one inbound event. Returns False once the client asked to disconnect."""
        logger.debug(f"Received from conn={connection.conn_id}: {event.value}")

        if event is InboundEvent.REGISTER:
            await self.chat_server.handle_register(connection, message)
        elif event is InboundEvent.SEND:
            await self.chat_server.handle_send(connection, message)
        elif event is InboundEvent.GET_CONVERSATION:
            await self.chat_server.handle_get_conversation(connection, message)
        elif event is InboundEvent.DISCONNECT:
            logger.info(f"Disconnect request from conn={connection.conn_id}")
            return False
        return True

    @staticmethod
    async def read_line(reader: asyncio.StreamReader) -> Optional[bytes]:
        """
        Read one newline-terminated line.

        Returns b'' at EOF (or the unterminated tail before it), and None when
        the line exceeded the stream limit. An oversized line is drained up to
        its newline, however many reads that takes, so it is reported once.
        """
        try:
            return await reader.readuntil(b'\n')
        except asyncio.IncompleteReadError as e:
            return e.partial
        except asyncio.LimitOverrunError as e:
            consumed = e.consumed

        try:
            while True:
                await reader.readexactly(consumed)
                try:
                    await reader.readuntil(b'\n')
                    return None
                except asyncio.LimitOverrunError as e:
                    consumed = e.consumed
        except asyncio.IncompleteReadError:
            return b''

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle individual client connection."""
        connection = ClientConnection(writer)
        await self.chat_server.connect(connection)
        logger.log_connection(connection.peer, connection.conn_id)

        try:
            while True:
                # Read line-delimited JSON; the stream limit caps the line size
                data = await self.read_line(reader)
                if data is None:
                    logger.warning(f"Message too large from conn={connection.conn_id}")
                    await connection.send(create_error_message("Message too large"))
                    continue
                if not data:
                    break

                try:
                    message = decode_message(data)
                except ValueError as e:
                    logger.error(f"Malformed JSON from conn={connection.conn_id}: {e}")
                    await connection.send(create_error_message("Malformed JSON"))
                    continue

                try:
                    event = parse_inbound_event(message)
                except ValueError:
                    logger.warning(f"Unknown message type {message.get('type')!r} from conn={connection.conn_id}")
                    await connection.send(create_error_message(f"Unknown message type: {message.get('type')}"))
                    continue

                try:
                    keep_open = await self.dispatch(connection, event, message)
                except Exception as e:
                    logger.log_error(f"{event.value} from conn={connection.conn_id}", e)
                    continue
                if not keep_open:
                    break

        except asyncio.CancelledError:
            logger.info(f"Connection cancelled for conn={connection.conn_id}")
        except ConnectionError as e:
            logger.error(f"Socket error for conn={connection.conn_id}: {e}")
        finally:
            await self.chat_server.disconnect_client(connection)

    async def start(self):
        """Start listening. Returns once the socket is bound."""
        connection_info = self.config.get_connection_info()
        self.server = await asyncio.start_server(
            self.handle_client,
            connection_info['host'],
            connection_info['port'],
            limit=self.config.max_message_bytes
        )
        addr = ', '.join(str(sock.getsockname()) for sock in self.server.sockets)
        logger.info(f"Server listening on {addr}")

    @property
    def port(self) -> int:
        """Port actually bound, useful when configured with port 0."""
        return self.server.sockets[0].getsockname()[1]

    async def serve_forever(self):
        """Start the server and serve until cancelled."""
        if self.server is None:
            await self.start()
        async with self.server:
            await self.server.serve_forever()

    async def stop(self):
        """Stop accepting connections and release resources."""
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
        await self.chat_server.close()
        if self.engine is not None:
            self.engine.dispose()


def parse_user(value: str):
    """Parse an ID=NAME pair for seeding the identity directory."""
    user_id, sep, name = value.partition('=')
    if not sep or not user_id.strip() or not name.strip():
        raise argparse.ArgumentTypeError(f"expected ID=NAME, got {value!r}")
    return user_id.strip(), name.strip()


def build_parser() -> argparse.ArgumentParser:
    defaults = ServerConfig.from_env()
    parser = argparse.ArgumentParser(description='Direct-Message Chat Relay Server')
    parser.add_argument('--host', type=str, default=defaults.host,
                        help=f'Host to bind to (default: {defaults.host})')
    parser.add_argument('--port', type=int, default=defaults.port,
                        help=f'TCP port (default: {defaults.port})')
    parser.add_argument('--database-url', type=str, default=defaults.database_url,
                        help=f'SQLAlchemy database URL (default: {defaults.database_url})')
    parser.add_argument('--logs-dir', type=str, default=defaults.logs_dir,
                        help=f'Directory for the chat transcript log (default: {defaults.logs_dir})')
    parser.add_argument('--user', type=parse_user, action='append', default=[], metavar='ID=NAME',
                        help='Add or rename a user in the identity directory (repeatable)')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    return parser


def main(argv=None):
    """Console entry point."""
    args = build_parser().parse_args(argv)
    if args.debug:
        logger.set_level(logging.DEBUG)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        database_url=args.database_url,
        logs_dir=args.logs_dir
    )

    server = None
    try:
        server = ChatRelayServer(config)
        for user_id, name in args.user:
            server.identity_directory.add_user(user_id, name)
            logger.info(f"Directory user '{user_id}' -> '{name}'")
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
    except Exception as e:
        logger.log_error("server", e)
        raise SystemExit(1)
    finally:
        if server is not None and server.engine is not None:
            server.engine.dispose()


if __name__ == "__main__":
    main()
