"""Server configuration and logging utilities."""
