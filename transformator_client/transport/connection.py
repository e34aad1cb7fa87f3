"""Single-shot socket exchange with the transformator service."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from loguru import logger

from transformator_client.core.protocol import Endpoint
from transformator_client.core.serialization import FrameScanner, decode_frame
from transformator_client.utils.exceptions import ProtocolError, TransportError

READ_CHUNK_SIZE = 64 * 1024


async def open_connection(
    endpoint: Endpoint,
    *,
    timeout: float | None = None,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open one stream connection to the endpoint."""
    if endpoint.is_unix:
        opener = asyncio.open_unix_connection(endpoint.path)
    else:
        opener = asyncio.open_connection(endpoint.host, endpoint.port)
    try:
        return await asyncio.wait_for(opener, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise TransportError(f"Connect to {endpoint} failed: timed out", endpoint=str(endpoint)) from exc
    except OSError as exc:
        raise TransportError(f"Connect to {endpoint} failed: {exc}", endpoint=str(endpoint)) from exc


async def read_frame(reader: asyncio.StreamReader) -> Any:
    """Read until one complete CBOR item has arrived and return it decoded."""
    buffer = bytearray()
    scanner = FrameScanner()
    while True:
        chunk = await reader.read(READ_CHUNK_SIZE)
        if not chunk:
            if not buffer:
                raise ProtocolError("No answer")
            raise ProtocolError(f"Connection closed after {len(buffer)} bytes of a truncated response")
        buffer.extend(chunk)
        end = scanner.feed(buffer)
        if end is None:
            continue
        if end < len(buffer):
            logger.debug("Ignoring {} trailing bytes after response frame", len(buffer) - end)
        frame = decode_frame(bytes(buffer[:end]))
        if frame is None:
            raise ProtocolError(f"Undecodable response: incomplete item in {end} bytes")
        return frame[0]


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


async def exchange(
    endpoint: Endpoint,
    payload: bytes,
    *,
    connect_timeout: float | None = None,
    response_timeout: float | None = None,
) -> Any:
    """Connect, write one request frame, read one response frame, close."""
    reader, writer = await open_connection(endpoint, timeout=connect_timeout)
    logger.debug("Connected to {}", endpoint)
    try:
        writer.write(payload)
        await writer.drain()
        logger.debug("Sent {} bytes to {}", len(payload), endpoint)
        return await asyncio.wait_for(read_frame(reader), timeout=response_timeout)
    except asyncio.TimeoutError as exc:
        raise TransportError(
            "Socket error: timed out waiting for response", endpoint=str(endpoint)
        ) from exc
    except OSError as exc:
        raise TransportError(f"Socket error: {exc}", endpoint=str(endpoint)) from exc
    finally:
        await _close(writer)
