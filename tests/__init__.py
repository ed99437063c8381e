"""Tests for the direct-message chat relay."""
