"""Pytest hooks and fixtures."""

import asyncio
import shutil
import stat
import sys
import tempfile
import threading
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any, Callable

import cbor2
import pytest

from transformator_client.core.protocol import TransformRequest
from transformator_client.core.serialization import request_from_payload
from transformator_client.transport.connection import read_frame

REPO_ROOT = Path(__file__).resolve().parents[1]

Handler = Callable[[TransformRequest], Any]


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "requires_transformator: needs a real transformator binary in PATH",
    )


def pytest_collection_modifyitems(config, items):
    """Skip requires_transformator tests when the binary is not installed."""
    if shutil.which("transformator"):
        return
    skip = pytest.mark.skip(reason="transformator binary not in PATH")
    for item in items:
        if "requires_transformator" in item.keywords:
            item.add_marker(skip)


class StubService:
    """Loopback stand-in for the transformator service.

    Listens on a unix socket, or on 127.0.0.1 with ``tcp=True``.
    ``handler`` maps each decoded request to a reply: a dict is CBOR-encoded,
    bytes are written verbatim, None closes the connection without answering.
    """

    def __init__(self, handler: Handler, delay: float = 0.0, tcp: bool = False):
        self.handler = handler
        self.delay = delay
        self.tcp = tcp
        self.port: int | None = None
        self.requests: list[TransformRequest] = []
        self._dir = Path(tempfile.mkdtemp(prefix="tfstub-"))
        self.path = self._dir / "stub.sock"
        self._server: asyncio.AbstractServer | None = None

    @property
    def connect(self) -> str:
        if self.tcp:
            return f"127.0.0.1:{self.port}"
        return str(self.path)

    async def start(self) -> None:
        if self.tcp:
            self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
            self.port = self._server.sockets[0].getsockname()[1]
        else:
            self._server = await asyncio.start_unix_server(self._handle, path=str(self.path))

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
        shutil.rmtree(self._dir, ignore_errors=True)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request = request_from_payload(await read_frame(reader))
            self.requests.append(request)
            if self.delay:
                await asyncio.sleep(self.delay)
            reply = self.handler(request)
            if reply is not None:
                writer.write(reply if isinstance(reply, bytes) else cbor2.dumps(reply))
                await writer.drain()
        finally:
            writer.close()


@asynccontextmanager
async def running_stub(handler: Handler, delay: float = 0.0, tcp: bool = False):
    service = StubService(handler, delay=delay, tcp=tcp)
    await service.start()
    try:
        yield service
    finally:
        await service.stop()


@contextmanager
def threaded_stub(handler: Handler):
    """Run a StubService on its own loop in a thread, for blocking client calls."""
    loop = asyncio.new_event_loop()
    service = StubService(handler)
    ready = threading.Event()

    def run() -> None:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(service.start())
        ready.set()
        loop.run_forever()
        loop.run_until_complete(service.stop())
        loop.close()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    assert ready.wait(5.0), "stub service did not start"
    try:
        yield service
    finally:
        loop.call_soon_threadsafe(loop.stop)
        thread.join(5.0)


@pytest.fixture
def stub_service():
    """Factory: ``async with stub_service(handler) as service``."""
    return running_stub


@pytest.fixture
def sync_stub_service():
    """Factory: ``with sync_stub_service(handler) as service``."""
    return threaded_stub


_READY_SERVER = """#!{python}
import asyncio
import sys

sys.path.insert(0, {root!r})

import cbor2

from transformator_client.core.serialization import request_from_payload
from transformator_client.transport.connection import read_frame


async def handle(reader, writer):
    request = request_from_payload(await read_frame(reader))
    if request.engine == "list":
        reply = {{"result": ["upper"]}}
    elif request.engine == "upper":
        reply = {{"result": request.input.upper()}}
    else:
        reply = {{"error": "unknown engine " + request.engine}}
    writer.write(cbor2.dumps(reply))
    await writer.drain()
    writer.close()


async def main(target):
    server = await asyncio.start_unix_server(handle, path=target)
    print("transformator starting", flush=True)
    print("transformator server bound to " + target, flush=True)
    async with server:
        await server.serve_forever()


asyncio.run(main(sys.argv[1]))
"""

_SILENT_SERVER = """#!{python}
import time

print("booting", flush=True)
time.sleep(60)
"""

_EXITING_SERVER = """#!/bin/sh
echo "cannot bind $1"
exit 3
"""


def _write_executable(directory: Path, name: str, body: str) -> Path:
    path = directory / name
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def ready_server_bin(tmp_path: Path) -> Path:
    """Executable that binds argv[1] and prints the readiness marker."""
    return _write_executable(
        tmp_path, "transformator", _READY_SERVER.format(python=sys.executable, root=str(REPO_ROOT))
    )


@pytest.fixture
def silent_server_bin(tmp_path: Path) -> Path:
    """Executable that never reports readiness."""
    return _write_executable(tmp_path, "transformator-silent", _SILENT_SERVER.format(python=sys.executable))


@pytest.fixture
def exiting_server_bin(tmp_path: Path) -> Path:
    """Executable that exits before reporting readiness."""
    return _write_executable(tmp_path, "transformator-exit", _EXITING_SERVER)
