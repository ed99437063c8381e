"""
Client package for the direct-message chat relay.

This package contains the terminal client:
- Protocol client for register/send/history
- Interactive command loop
- Configuration and utilities
"""
