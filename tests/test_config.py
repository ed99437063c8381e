#!/usr/bin/env python3
"""Tests for server configuration loading."""

import unittest

from common.constants import DEFAULT_DATABASE_URL, DEFAULT_PORT, DEFAULT_SERVER_HOST
from server.utils.config import ServerConfig


class TestServerConfig(unittest.TestCase):

    def test_defaults_without_environment(self):
        config = ServerConfig.from_env({})

        self.assertEqual(config.get_connection_info(), {'host': DEFAULT_SERVER_HOST, 'port': DEFAULT_PORT})
        self.assertEqual(config.get_storage_settings(), {'database_url': DEFAULT_DATABASE_URL})

    def test_environment_overrides(self):
        config = ServerConfig.from_env({
            'CHAT_HOST': '127.0.0.1',
            'CHAT_PORT': '9100',
            'CHAT_DATABASE_URL': 'sqlite:///other.db',
            'CHAT_LOGS_DIR': '/tmp/chat-logs',
            'CHAT_MAX_MESSAGE_BYTES': '2048',
        })

        self.assertEqual(config.port, 9100)
        self.assertEqual(config.host, '127.0.0.1')
        self.assertEqual(config.database_url, 'sqlite:///other.db')
        self.assertEqual(config.get_log_settings(), {'logs_dir': '/tmp/chat-logs'})
        self.assertEqual(config.max_message_bytes, 2048)

    def test_invalid_port_is_rejected(self):
        with self.assertRaises(ValueError):
            ServerConfig.from_env({'CHAT_PORT': 'ninety'})


if __name__ == '__main__':
    unittest.main()
