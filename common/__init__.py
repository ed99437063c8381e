"""
Shared definitions for the direct-message chat relay.

Contains the wire protocol (event types and message builders) and the
constants used by both the server and the client.
"""
