"""Lifecycle of a private transformator server started as a child process."""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
import tempfile
from enum import Enum
from pathlib import Path

from loguru import logger

from transformator_client.config.schema import StandaloneOptions
from transformator_client.utils.exceptions import LaunchError, NotFoundError, TimeoutError

SOCKET_NAME = "transformator.sock"


class LaunchState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    TIMED_OUT = "timed_out"
    LAUNCH_FAILED = "launch_failed"
    STOPPED = "stopped"


def resolve_binary(options: StandaloneOptions) -> str:
    """Locate the server executable or raise NotFoundError."""
    if options.binary_path:
        path = Path(options.binary_path).expanduser()
        if path.is_file() and os.access(path, os.X_OK):
            return str(path)
        raise NotFoundError("transformator binary", str(path))
    found = shutil.which(options.binary_name)
    if not found:
        raise NotFoundError("transformator binary in PATH", options.binary_name)
    return found


class SupervisedProcess:
    """A transformator child process bound to one connect target.

    ``launch()`` races the stdout reader against the ready timeout and leaves
    the process in READY, TIMED_OUT or LAUNCH_FAILED. ``stop()`` tears it down
    once; later calls are no-ops.
    """

    def __init__(self, binary: str, connect_target: str, options: StandaloneOptions, temp_dir: Path | None = None):
        self.binary = binary
        self.connect_target = connect_target
        self.options = options
        self.temp_dir = temp_dir
        self.state = LaunchState.PENDING
        self._torn_down = False
        self._proc: asyncio.subprocess.Process | None = None
        self._drain_tasks: list[asyncio.Task[None]] = []
        self._stop_lock = asyncio.Lock()

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc else None

    async def launch(self) -> None:
        """Start the child and wait for the readiness marker.

        Any exit from here other than READY (timeout, early exit, unreadable
        output, cancellation) kills the child and removes its temp directory.
        """
        logger.info("Starting standalone transformator: {} {}", self.binary, self.connect_target)
        try:
            self._proc = await asyncio.create_subprocess_exec(
                self.binary,
                self.connect_target,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            self.state = LaunchState.LAUNCH_FAILED
            self._remove_temp_dir()
            raise LaunchError(f"Cannot start {self.binary}: {exc}") from exc

        stdout, stderr = self._proc.stdout, self._proc.stderr
        if stdout is None or stderr is None:
            await self._abort()
            raise LaunchError(f"No output pipes for {self.binary}")
        self._drain_tasks.append(asyncio.create_task(self._drain(stderr, "stderr")))

        timeout = self.options.ready_timeout_seconds
        try:
            ready = await asyncio.wait_for(self._wait_ready(stdout), timeout=timeout)
        except asyncio.TimeoutError:
            self.state = LaunchState.TIMED_OUT
            pid = self._proc.pid
            logger.error("Standalone transformator (pid {}) not ready after {}s", pid, timeout)
            await self._terminate(grace=0)
            raise TimeoutError("standalone server startup", timeout, pid=pid)
        except ValueError as exc:
            # StreamReader.readline: line longer than the stream limit
            await self._abort()
            raise LaunchError(f"Unreadable output from standalone transformator: {exc}") from exc
        except BaseException:
            logger.warning("Standalone transformator startup aborted, killing pid {}", self._proc.pid)
            await self._abort()
            raise

        if not ready:
            self.state = LaunchState.LAUNCH_FAILED
            # stdout closed: the child is normally exiting on its own
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._proc.wait(), timeout=1.0)
            await self._terminate(grace=0)
            raise LaunchError(
                f"Standalone transformator exited before reporting '{self.options.ready_marker}'",
                returncode=self._proc.returncode,
            )

        self.state = LaunchState.READY
        self._drain_tasks.append(asyncio.create_task(self._drain(stdout, "stdout")))
        logger.info("Standalone transformator ready (pid {})", self._proc.pid)

    async def _abort(self) -> None:
        self.state = LaunchState.LAUNCH_FAILED
        await asyncio.shield(self._terminate(grace=0))

    async def _wait_ready(self, stdout: asyncio.StreamReader) -> bool:
        marker = self.options.ready_marker
        while True:
            line = await stdout.readline()
            if not line:
                return False
            text = line.decode("utf-8", errors="replace").strip()
            if text:
                logger.debug("[transformator] {}", text)
            if marker in text:
                return True

    async def _drain(self, stream: asyncio.StreamReader, name: str) -> None:
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                logger.debug("[transformator {}] dropped a line over the stream limit", name)
                continue
            if not line:
                return
            text = line.decode("utf-8", errors="replace").strip()
            if text:
                logger.debug("[transformator {}] {}", name, text)

    async def stop(self) -> bool:
        """Terminate the child: SIGTERM, then SIGKILL after the grace period.

        Returns True when this call performed the teardown.
        """
        async with self._stop_lock:
            if self._torn_down:
                return False
            await self._terminate(grace=self.options.kill_grace_seconds)
            return True

    async def _terminate(self, grace: float) -> None:
        proc = self._proc
        try:
            if proc is not None and proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    if grace > 0:
                        proc.terminate()
                    else:
                        proc.kill()
                try:
                    await asyncio.wait_for(proc.wait(), timeout=grace if grace > 0 else None)
                except asyncio.TimeoutError:
                    logger.warning("Standalone transformator (pid {}) ignored SIGTERM, killing", proc.pid)
                    with contextlib.suppress(ProcessLookupError):
                        proc.kill()
                    await proc.wait()
        finally:
            await self._cancel_drains()
            self._remove_temp_dir()
            self._torn_down = True
            if self.state is LaunchState.READY or self.state is LaunchState.PENDING:
                self.state = LaunchState.STOPPED
            logger.debug("Standalone transformator torn down (returncode {})", self.returncode)

    def kill_now(self) -> bool:
        """Send SIGKILL without waiting; for teardown outside the owning loop."""
        if self._torn_down:
            return False
        self._torn_down = True
        if self.state is LaunchState.READY or self.state is LaunchState.PENDING:
            self.state = LaunchState.STOPPED
        proc = self._proc
        if proc is not None and proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
        # drain tasks end on EOF once their loop runs again
        self._drain_tasks.clear()
        self._remove_temp_dir()
        return True

    async def _cancel_drains(self) -> None:
        tasks, self._drain_tasks = self._drain_tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _remove_temp_dir(self) -> None:
        if self.temp_dir is not None:
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.temp_dir = None


async def spawn_standalone(options: StandaloneOptions | None = None) -> SupervisedProcess:
    """Resolve the binary, launch it and wait until it reports readiness."""
    options = options or StandaloneOptions()
    binary = resolve_binary(options)
    temp_dir: Path | None = None
    connect_target = options.connect_target
    if not connect_target:
        temp_dir = Path(tempfile.mkdtemp(prefix="transformator-"))
        connect_target = str(temp_dir / SOCKET_NAME)
    process = SupervisedProcess(binary, connect_target, options, temp_dir=temp_dir)
    await process.launch()
    return process
