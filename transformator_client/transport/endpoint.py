"""Connect-string parsing.

Accepted forms::

    12345                      TCP port on localhost
    localhost:12345            explicit host and port
    [::1]:12345                IPv6 host
    path/to/unix/socket        unix domain socket (relative to cwd)
    unix/:path/to/socket       explicit unix domain socket
"""

from __future__ import annotations

import os
import socket
from pathlib import Path

from transformator_client.core.protocol import Endpoint
from transformator_client.utils.exceptions import ConfigError

DEFAULT_HOST = "localhost"
UNIX_PREFIX = "unix/:"


def _port_number(raw: str, given: str) -> int:
    text = raw.strip()
    if text.isascii() and text.isdigit():
        port = int(text)
    else:
        try:
            port = socket.getservbyname(text, "tcp")
        except (OSError, UnicodeError) as exc:
            raise ConfigError(f"Invalid port {text!r} in connect string", value=given) from exc
    if not 0 < port < 65536:
        raise ConfigError(f"Port out of range: {port}", value=given)
    return port


def _unix_endpoint(path: str, given: str, cwd: str | os.PathLike[str] | None) -> Endpoint:
    if not path:
        raise ConfigError("Empty socket path in connect string", value=given)
    socket_path = Path(path)
    if not socket_path.is_absolute():
        socket_path = Path(cwd if cwd is not None else os.getcwd()) / socket_path
    return Endpoint(path=str(socket_path))


def resolve(
    connect: str | int | Endpoint,
    *,
    cwd: str | os.PathLike[str] | None = None,
) -> Endpoint:
    """Resolve a connect string to an Endpoint.

    Relative socket paths are joined onto ``cwd`` (the current working
    directory at call time when omitted).
    """
    if isinstance(connect, Endpoint):
        return connect
    if isinstance(connect, bool):
        raise ConfigError("Connect target must be a string or port number", value=connect)
    if isinstance(connect, int):
        return Endpoint(host=DEFAULT_HOST, port=_port_number(str(connect), str(connect)))
    if not isinstance(connect, str):
        raise ConfigError("Connect target must be a string or port number", value=connect)

    text = connect.strip()
    if not text:
        raise ConfigError("Empty connect string", value=connect)

    if ":" not in text:
        if text.isascii() and text.isdigit():
            return Endpoint(host=DEFAULT_HOST, port=_port_number(text, connect))
        return _unix_endpoint(text, connect, cwd)

    if text.startswith(UNIX_PREFIX):
        return _unix_endpoint(text[len(UNIX_PREFIX):], connect, cwd)

    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise ConfigError("Malformed IPv6 connect string", value=connect)
        return Endpoint(host=host or DEFAULT_HOST, port=_port_number(rest[1:], connect))

    host, _, port = text.rpartition(":")
    return Endpoint(host=host or DEFAULT_HOST, port=_port_number(port, connect))
