#!/usr/bin/env python3
"""
Direct-Message Chat Client - Main Entry Point

Terminal client for the chat relay: connects, registers an identity, shows
who is online and exchanges direct messages.
"""

import argparse
import asyncio
import sys
from typing import Optional, Tuple

from client.chat.chat_client import ChatClient
from client.utils.config import ClientConfig
from client.utils.logger import logger
from common.constants import DEFAULT_HOST, DEFAULT_PORT
from common.protocol_definitions import decode_message


def parse_command(line: str, current_peer: Optional[str] = None) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Turn one line of user input into (action, peer, text).

    Actions are 'send', 'history', 'online', 'quit', 'help' and 'noop'.
    Plain text is sent to current_peer; without a peer it is a 'help'.
    """
    line = line.strip()
    if not line:
        return 'noop', None, None
    if not line.startswith('/'):
        if current_peer is None:
            return 'help', None, None
        return 'send', current_peer, line

    command, _, rest = line.partition(' ')
    rest = rest.strip()
    if command == '/to':
        peer, _, text = rest.partition(' ')
        if not peer:
            return 'help', None, None
        return 'send', peer, text.strip() or None
    if command == '/history':
        peer = rest or current_peer
        return ('history', peer, None) if peer else ('help', None, None)
    if command == '/online':
        return 'online', None, None
    if command in ('/quit', '/exit'):
        return 'quit', None, None
    return 'help', None, None


class ChatTerminalClient:
    """Main client class that integrates all functionality."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, user_id: str = None):
        self.config = ClientConfig(host, port, user_id)
        self.reader = None
        self.writer = None
        self.running = False
        self.current_peer: Optional[str] = None

        self.chat_client = ChatClient()
        self.chat_client.set_user_id(user_id)

    async def connect(self, retry_count: int = None, base_delay: float = None):
        """Establish connection to the server with retry logic and exponential backoff."""
        retry_count = retry_count or self.config.retry_attempts
        base_delay = base_delay or self.config.reconnect_delay_base
        info = self.config.get_connection_info()
        attempt = 0

        while attempt < retry_count:
            try:
                self.reader, self.writer = await asyncio.open_connection(info['host'], info['port'])
                logger.log_connection(info['host'], info['port'], True)
                self.running = True
                self.chat_client.set_writer(self.writer)
                return True
            except OSError as e:
                attempt += 1
                logger.log_connection(info['host'], info['port'], False)
                logger.log_error("connection", e)

                if attempt < retry_count:
                    delay = base_delay * (2 ** (attempt - 1))  # Exponential backoff
                    logger.info(f"[INFO] Retrying connection in {delay}s (attempt {attempt}/{retry_count})...")
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"[ERROR] Failed to connect after {retry_count} attempts")
        return False

    async def listen_for_messages(self):
        """Listen for incoming messages from server with automatic reconnection."""
        while self.running:
            try:
                data = await self.reader.readline()
                if not data:
                    if not self.running:
                        break
                    logger.info("[INFO] Server closed connection, attempting to reconnect...")
                    if await self._reconnect():
                        continue
                    break

                try:
                    message = decode_message(data)
                except ValueError as e:
                    logger.error(f"[ERROR] Malformed JSON received: {e}")
                    continue
                await self.chat_client.handle_message(message)

            except asyncio.CancelledError:
                logger.info("[INFO] Listener cancelled")
                break
            except ConnectionError as e:
                logger.error(f"[ERROR] Connection lost: {e}")
                if self.running and await self._reconnect():
                    continue
                break

    async def _reconnect(self):
        """Reconnect to the server with exponential backoff."""
        max_attempts = self.config.reconnect_attempts
        base_delay = self.config.reconnect_delay_base

        for attempt in range(max_attempts):
            delay = base_delay * (2 ** attempt)
            logger.info(f"[INFO] Attempting to reconnect in {delay}s (attempt {attempt + 1}/{max_attempts})...")
            await asyncio.sleep(delay)

            if await self.connect(retry_count=1):
                logger.info("[INFO] Reconnected successfully!")
                await self.chat_client.register()
                return True

        logger.error("[ERROR] Failed to reconnect after multiple attempts")
        self.running = False
        return False

    async def execute(self, line: str) -> bool:
        """Run one line of user input. Returns False when the user quits."""
        action, peer, text = parse_command(line, self.current_peer)

        if action == 'send':
            self.current_peer = peer
            if text:
                await self.chat_client.send_direct(peer, text)
            else:
                await self.chat_client.request_conversation(peer)
        elif action == 'history':
            self.current_peer = peer
            await self.chat_client.request_conversation(peer)
        elif action == 'online':
            logger.show_online_users(self.chat_client.online_users, self.config.user_id)
        elif action == 'quit':
            return False
        elif action == 'help':
            logger.show_interactive_mode_info()
        return True

    async def close(self):
        """Send disconnect and close the socket."""
        self.running = False
        if self.writer:
            await self.chat_client.send_disconnect()
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except ConnectionError:
                pass
        logger.info("[INFO] Disconnected from server")

    async def interactive_mode(self):
        """Run client with interactive chat input."""
        if not await self.connect():
            return

        await self.chat_client.register()
        listener_task = asyncio.create_task(self.listen_for_messages())
        logger.show_interactive_mode_info()

        loop = asyncio.get_running_loop()
        try:
            while self.running:
                user_input = await loop.run_in_executor(None, sys.stdin.readline)
                if not user_input:
                    break  # EOF
                if not await self.execute(user_input):
                    break
        except asyncio.CancelledError:
            pass
        finally:
            await self.close()
            listener_task.cancel()
            try:
                await listener_task
            except asyncio.CancelledError:
                pass


def main(argv=None):
    """Console entry point."""
    parser = argparse.ArgumentParser(description='Direct-Message Chat Client')
    parser.add_argument('--user-id', type=str, default=None,
                        help='Identity to register with (asked if omitted)')
    parser.add_argument('--server-ip', type=str, default=DEFAULT_HOST,
                        help=f'Server IP address (default: {DEFAULT_HOST})')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT,
                        help=f'Server port (default: {DEFAULT_PORT})')
    args = parser.parse_args(argv)

    user_id = args.user_id or input("Enter user id: ").strip()
    if not user_id:
        logger.error("[ERROR] A user id is required")
        raise SystemExit(2)

    client = ChatTerminalClient(host=args.server_ip, port=args.port, user_id=user_id)
    try:
        asyncio.run(client.interactive_mode())
    except KeyboardInterrupt:
        logger.info("[INFO] Interrupted by user")


if __name__ == "__main__":
    main()
