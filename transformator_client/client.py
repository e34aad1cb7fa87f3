"""Client for the transformator text-transformation service.

Each call opens its own connection, writes one CBOR request frame
``[engine, input, data]``, reads one response map and closes the socket.

    client = TransformatorClient("12345")
    html = client.jade("span\\n  | Hi #{name}!\\n", {"name": "Peter"})

    client = TransformatorClient.standalone()
    try:
        css = client.minify_css("a { color: red; }")
    finally:
        client.cleanup()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from loguru import logger

from transformator_client.config.schema import ClientOptions, StandaloneOptions
from transformator_client.core.protocol import Endpoint, TransformRequest
from transformator_client.core.serialization import encode_request, response_from_payload, unwrap_response
from transformator_client.supervisor.process import SupervisedProcess, spawn_standalone
from transformator_client.transport.connection import exchange
from transformator_client.transport.endpoint import resolve
from transformator_client.utils.exceptions import ConfigError

T = TypeVar("T")

SHORTCUT_ENGINES = ("jade", "coffeescript", "minify_html", "minify_css", "minify_js")
LIST_ENGINE = "list"


def _in_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class TransformatorClient:
    """Request/response client bound to one endpoint."""

    def __init__(self, connect: str | int | Endpoint, *, options: ClientOptions | None = None):
        self.endpoint = resolve(connect)
        self.options = options or ClientOptions()
        self._supervised: SupervisedProcess | None = None
        self._runner: asyncio.Runner | None = None

    def __repr__(self) -> str:
        return f"TransformatorClient({str(self.endpoint)!r})"

    @property
    def supervised(self) -> SupervisedProcess | None:
        """The standalone server owned by this client, if any."""
        return self._supervised

    # -- standalone server --------------------------------------------------

    @classmethod
    async def standalone_async(
        cls,
        options: StandaloneOptions | None = None,
        *,
        client_options: ClientOptions | None = None,
    ) -> TransformatorClient:
        """Start a private server and return a client bound to it."""
        process = await spawn_standalone(options)
        try:
            client = cls(process.connect_target, options=client_options)
        except ConfigError:
            await process.stop()
            raise
        client._supervised = process
        return client

    @classmethod
    def standalone(
        cls,
        options: StandaloneOptions | None = None,
        *,
        client_options: ClientOptions | None = None,
    ) -> TransformatorClient:
        """Blocking variant of :meth:`standalone_async`.

        The returned client keeps the event loop that owns the child process;
        blocking calls and :meth:`cleanup` run on it.
        """
        runner = asyncio.Runner()
        try:
            client = runner.run(cls.standalone_async(options, client_options=client_options))
        except BaseException:
            runner.close()
            raise
        client._runner = runner
        return client

    async def cleanup_async(self) -> bool:
        """Stop the standalone server. Returns True when a teardown happened."""
        supervised = self._supervised
        if supervised is None:
            logger.info("cleanup() called on {!r} when no standalone server is active", self)
            return False
        self._supervised = None
        try:
            return await supervised.stop()
        except Exception as exc:
            logger.warning("Standalone server teardown failed ({}), killing pid {}", exc, supervised.pid)
            return supervised.kill_now()

    def cleanup(self) -> bool:
        """Blocking variant of :meth:`cleanup_async`. Never raises."""
        runner, self._runner = self._runner, None
        if runner is not None and not _in_running_loop():
            try:
                return runner.run(self.cleanup_async())
            finally:
                runner.close()
        supervised = self._supervised
        if supervised is None:
            logger.info("cleanup() called on {!r} when no standalone server is active", self)
            return False
        self._supervised = None
        logger.warning("Standalone server (pid {}) owned by another loop, sending SIGKILL", supervised.pid)
        return supervised.kill_now()

    def __enter__(self) -> TransformatorClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cleanup()

    async def __aenter__(self) -> TransformatorClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.cleanup_async()

    # -- request/response ---------------------------------------------------

    async def transform_async(self, engine: str, input: str | bytes, data: dict[str, Any] | None = None) -> Any:
        """Send one request and return the service result."""
        if not isinstance(engine, str) or not engine:
            raise ConfigError("Engine name must be a non-empty string", value=engine)
        if not isinstance(input, (str, bytes)):
            raise ConfigError("Input must be text or bytes", value=type(input).__name__)
        request = TransformRequest(engine=engine, input=input, data=dict(data or {}))
        payload = encode_request(request)
        logger.debug("Transform via {} engine={} input={} bytes", self.endpoint, engine, len(request.input))
        answer = await exchange(
            self.endpoint,
            payload,
            connect_timeout=self.options.connect_timeout_seconds,
            response_timeout=self.options.response_timeout_seconds,
        )
        return unwrap_response(response_from_payload(answer), engine=engine)

    def submit(self, engine: str, input: str | bytes, data: dict[str, Any] | None = None) -> asyncio.Task[Any]:
        """Schedule a transform on the running loop and return its task."""
        return asyncio.create_task(self.transform_async(engine, input, data))

    def transform(self, engine: str, input: str | bytes, data: dict[str, Any] | None = None) -> Any:
        """Blocking variant of :meth:`transform_async`."""
        return self._run_blocking(lambda: self.transform_async(engine, input, data))

    def _run_blocking(self, factory: Callable[[], Coroutine[Any, Any, T]]) -> T:
        if _in_running_loop():
            raise RuntimeError("blocking call inside a running event loop; await the *_async variant instead")
        if self._runner is not None:
            return self._runner.run(factory())
        return asyncio.run(factory())

    # -- shortcuts ------------------------------------------------------------

    def jade(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return self.transform("jade", input, data)

    def coffeescript(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return self.transform("coffeescript", input, data)

    def minify_html(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return self.transform("minify_html", input, data)

    def minify_css(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return self.transform("minify_css", input, data)

    def minify_js(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return self.transform("minify_js", input, data)

    def list_engines(self) -> Any:
        return self.transform(LIST_ENGINE, "")

    async def jade_async(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return await self.transform_async("jade", input, data)

    async def coffeescript_async(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return await self.transform_async("coffeescript", input, data)

    async def minify_html_async(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return await self.transform_async("minify_html", input, data)

    async def minify_css_async(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return await self.transform_async("minify_css", input, data)

    async def minify_js_async(self, input: str, data: dict[str, Any] | None = None) -> Any:
        return await self.transform_async("minify_js", input, data)

    async def list_engines_async(self) -> Any:
        return await self.transform_async(LIST_ENGINE, "")
