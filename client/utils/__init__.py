"""Client configuration and logging utilities."""
