# wireflow/sandbox/dev_server.py
"""
Dev Server Manager

Makes sure the wireframe dev server answers on 127.0.0.1:<port> before a
capture. A server that is already reachable is reused as-is; otherwise
`npm run dev` is spawned and owned by this invocation until stop().
"""
import asyncio
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

import httpx

from wireflow.core.config import settings
from wireflow.core.exceptions import DevServerError
from wireflow.core.logging import log


def base_url(port: int) -> str:
    return f"http://127.0.0.1:{port}"


async def is_server_reachable(url: str, timeout: Optional[float] = None) -> bool:
    """A 2xx or 404 answer counts as up; anything else (or no answer) does not."""
    timeout = settings.iteration.dev_server_probe_timeout_s if timeout is None else timeout
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as client:
            response = await client.get(url)
    except httpx.HTTPError:
        return False
    return response.is_success or response.status_code == 404


async def wait_for_server(url: str, timeout: Optional[float] = None, interval: float = 1.0) -> bool:
    timeout = settings.iteration.dev_server_ready_timeout_s if timeout is None else timeout
    start_time = time.monotonic()
    while time.monotonic() - start_time < timeout:
        if await is_server_reachable(url):
            return True
        await asyncio.sleep(interval)
    return False


def dev_command(port: int) -> List[str]:
    npm = "npm.cmd" if sys.platform == "win32" else "npm"
    return [npm, "run", "dev", "--", "--port", str(port), "--host", "127.0.0.1"]


class DevServer:
    """Handle on a reachable dev server; `started` is True when we spawned it."""

    def __init__(self, port: int, process: Optional[asyncio.subprocess.Process] = None):
        self.port = port
        self.process = process
        self._pump: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self.process is not None

    @property
    def url(self) -> str:
        return base_url(self.port)

    async def _pump_output(self) -> None:
        """Echo only lines mentioning errors; the rest is dev-server noise."""
        if self.process is None or self.process.stdout is None:
            return
        async for raw in self.process.stdout:
            line = raw.decode(errors="replace").strip()
            if line and "error" in line.lower():
                log("DEV-SERVER", f"[dev] {line}")

    def start_pump(self) -> None:
        if self.process is not None and self._pump is None:
            self._pump = asyncio.create_task(self._pump_output())

    async def stop(self) -> None:
        """SIGTERM, then SIGKILL after the grace period."""
        process = self.process
        if process is None or process.returncode is not None:
            return

        log("DEV-SERVER", f"🛑 Stopping dev server on port {self.port}")
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=settings.iteration.dev_server_stop_grace_s)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()

        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None


async def ensure_dev_server(
    port: int,
    reuse_existing: bool = False,
    cwd: Optional[Path] = None,
    ready_timeout: Optional[float] = None,
) -> DevServer:
    """
    Reuse a reachable server or spawn one.

    Raises:
        DevServerError: `reuse_existing` with nothing listening, spawn failure,
        or no readiness within the timeout.
    """
    url = base_url(port)
    if await is_server_reachable(url):
        log("DEV-SERVER", f"♻️ Reusing dev server at {url}")
        return DevServer(port)

    if reuse_existing:
        raise DevServerError(
            port,
            f"Dev server not reachable at {url}. Start it manually "
            f"(npm run dev -- --port {port}) or rerun without --reuse-dev-server.",
        )

    log("DEV-SERVER", f"🚀 Starting dev server for self-iteration ({url})")
    try:
        process = await asyncio.create_subprocess_exec(
            *dev_command(port),
            cwd=str(cwd or settings.paths.project_root),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=os.environ.copy(),
        )
    except OSError as e:
        raise DevServerError(port, f"Failed to spawn dev server: {e}")

    server = DevServer(port, process)
    server.start_pump()

    timeout = settings.iteration.dev_server_ready_timeout_s if ready_timeout is None else ready_timeout
    if not await wait_for_server(url, timeout):
        await server.stop()
        raise DevServerError(port, f"Dev server did not become ready within {int(timeout)} seconds.")

    log("DEV-SERVER", "✅ Dev server ready")
    return server
