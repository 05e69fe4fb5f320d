"""Pandoc server lifecycle manager.

Manages a long-lived ``pandoc server`` child process for high-throughput
rendering via the Pandoc HTTP API instead of per-render subprocess calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Self

import httpx

logger = logging.getLogger(__name__)

_HEALTH_CHECK_RETRIES = 10
_HEALTH_CHECK_INTERVAL = 0.3
_STOP_TIMEOUT = 5.0


class PandocServer:
    """Manages the lifecycle of a ``pandoc server`` child process.

    Usable as an async context manager that starts the server on entry and
    stops it on exit.

    Args:
        port: TCP port the pandoc server listens on.
        timeout: Per-request timeout (seconds) passed to ``pandoc server --timeout``.
        executable: Name or path of the pandoc binary (``Settings.pandoc_executable``).
    """

    def __init__(self, port: int = 3031, timeout: int = 10, executable: str = "pandoc") -> None:
        if not (1 <= port <= 65535):
            msg = f"port must be between 1 and 65535, got {port}"
            raise ValueError(msg)
        if timeout < 1:
            msg = f"timeout must be >= 1, got {timeout}"
            raise ValueError(msg)
        self._port = port
        self._timeout = timeout
        self._executable = executable
        self._process: asyncio.subprocess.Process | None = None
        self._lock = asyncio.Lock()
        self.version: str | None = None

    @property
    def base_url(self) -> str:
        """HTTP base URL of the pandoc server."""
        return f"http://127.0.0.1:{self._port}"

    @property
    def is_running(self) -> bool:
        """Whether the subprocess is alive."""
        return self._process is not None and self._process.returncode is None

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    async def check_version(self) -> str:
        """Verify that the pandoc binary supports server mode.

        Returns the first line of ``pandoc --version``, which the build logs
        so a site can be traced to the pandoc release that rendered it.

        Raises:
            RuntimeError: If pandoc is missing, version check fails, or
                ``+server`` is absent from the feature flags.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except FileNotFoundError:
            raise RuntimeError(
                f"Pandoc executable {self._executable!r} not found. "
                "Install pandoc or set SITEGEN_PANDOC_EXECUTABLE. "
                "See https://pandoc.org/installing.html"
            ) from None
        except OSError as exc:
            raise RuntimeError(f"Failed to check pandoc version: {exc}") from None

        if proc.returncode != 0:
            raise RuntimeError(
                f"Failed to check pandoc version (exit code {proc.returncode}): "
                f"{stderr.decode(errors='replace')[:200]}"
            )

        version_output = stdout.decode(errors="replace")
        if "+server" not in version_output:
            raise RuntimeError(
                "Installed pandoc does not support server mode (+server feature flag missing). "
                "Install a pandoc build with server support."
            )

        version = version_output.splitlines()[0] if version_output else "pandoc"
        logger.info("Pandoc server support confirmed (%s)", version)
        return version

    async def _spawn(self) -> None:
        """Spawn the ``pandoc server`` subprocess."""
        self._process = await asyncio.create_subprocess_exec(
            self._executable,
            "server",
            "--port",
            str(self._port),
            "--timeout",
            str(self._timeout),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        logger.info(
            "Spawned pandoc server process (pid=%s, port=%d)",
            self._process.pid,
            self._port,
        )

    async def _wait_for_ready(self) -> None:
        """Wait until the pandoc server responds to HTTP requests.

        Raises:
            RuntimeError: If the server exits prematurely or fails to respond
                within the retry budget.
        """
        async with httpx.AsyncClient() as client:
            for attempt in range(_HEALTH_CHECK_RETRIES):
                if self._process is not None and self._process.returncode is not None:
                    stderr_bytes = b""
                    if self._process.stderr is not None:
                        stderr_bytes = await self._process.stderr.read()
                    stderr_text = stderr_bytes.decode(errors="replace").strip()
                    raise RuntimeError(
                        f"Pandoc server exited during startup "
                        f"(exit code {self._process.returncode}): {stderr_text[:500]}"
                    )

                try:
                    await client.get(self.base_url)
                except httpx.ConnectError:
                    if attempt < _HEALTH_CHECK_RETRIES - 1:
                        await asyncio.sleep(_HEALTH_CHECK_INTERVAL)
                    continue
                except httpx.HTTPError:
                    # Listening but not answering GET
                    pass
                logger.info("Pandoc server ready on port %d (attempt %d)", self._port, attempt + 1)
                return

        raise RuntimeError(
            f"Pandoc server failed to start after {_HEALTH_CHECK_RETRIES} attempts "
            f"on port {self._port}"
        )

    async def _launch(self) -> None:
        # Caller holds self._lock
        if self.is_running:
            await self._terminate()
        self.version = await self.check_version()
        await self._spawn()
        await self._wait_for_ready()
        logger.info("Pandoc server started on %s", self.base_url)

    async def start(self) -> None:
        """Start (or restart) the pandoc server.

        Raises:
            RuntimeError: If pandoc is missing, lacks server support, or
                the server fails to start.
        """
        async with self._lock:
            await self._launch()

    async def ensure_running(self) -> None:
        """Ensure the pandoc server is running, restarting if needed.

        Concurrent callers share one restart: the check runs under the lock.
        """
        async with self._lock:
            if self.is_running:
                return
            logger.warning("Pandoc server not running, restarting")
            await self._launch()

    async def _terminate(self) -> None:
        if self._process is None:
            return
        if self._process.returncode is None:
            self._process.terminate()
            try:
                await asyncio.wait_for(self._process.wait(), timeout=_STOP_TIMEOUT)
            except TimeoutError:
                logger.warning("Pandoc server did not exit after %.1fs, killing", _STOP_TIMEOUT)
                self._process.kill()
                await self._process.wait()
        self._process = None

    async def stop(self) -> None:
        """Stop the pandoc server process. Idempotent.

        Sends SIGTERM and waits up to ``_STOP_TIMEOUT`` seconds. If the
        process does not exit in time, sends SIGKILL.
        """
        if self.is_running:
            assert self._process is not None
            logger.info("Stopping pandoc server (pid=%s)", self._process.pid)
        await self._terminate()
