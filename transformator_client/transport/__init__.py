"""Endpoint resolution and socket exchange."""

from .connection import exchange, open_connection, read_frame
from .endpoint import DEFAULT_HOST, resolve

__all__ = ["DEFAULT_HOST", "exchange", "open_connection", "read_frame", "resolve"]
