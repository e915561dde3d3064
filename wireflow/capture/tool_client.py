# wireflow/capture/tool_client.py
"""
HTTP client for the browser-automation tool bridge.

Contract: POST {endpoint}/call-tool with {"tool": ..., "params": ...}.
A non-2xx response or an `error` field in the payload raises ToolCallError;
otherwise the payload's `result` (or the payload itself) is returned.
Every call is bounded by an explicit timeout that aborts the request.
"""
import asyncio
import os
from typing import Any, Dict, Mapping, Optional

import aiohttp

from wireflow.core.config import settings
from wireflow.core.exceptions import BridgeUnavailableError, ToolCallError
from wireflow.core.logging import log


ENDPOINT_ENV_KEYS = ("MCP_HTTP_ENDPOINT", "MCP_ENDPOINT", "CHROME_DEVTOOLS_MCP_ENDPOINT")

NAVIGATE_TOOL = "chrome-devtools__navigate_page"
SNAPSHOT_TOOL = "chrome-devtools__take_snapshot"
SCREENSHOT_TOOL = "chrome-devtools__take_screenshot"
CONSOLE_TOOL = "chrome-devtools__list_console_messages"


class ToolClient:
    """
    One bridge endpoint. Owns its aiohttp session unless one is injected.

    Usage:
        async with ToolClient(endpoint) as client:
            await client.call(NAVIGATE_TOOL, {"url": url})
    """

    def __init__(self, endpoint: str, session: Optional[aiohttp.ClientSession] = None):
        self.endpoint = endpoint.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "ToolClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def call(
        self,
        tool: str,
        params: Optional[Dict[str, Any]] = None,
        timeout_ms: Optional[int] = None,
    ) -> Any:
        timeout_ms = timeout_ms or settings.tool_client.default_timeout_ms
        session = await self._get_session()
        log("TOOL-CLIENT", f"→ {tool}", data=params or None)

        try:
            async with session.post(
                f"{self.endpoint}/call-tool",
                json={"tool": tool, "params": params or {}},
                timeout=aiohttp.ClientTimeout(total=timeout_ms / 1000),
            ) as resp:
                if resp.status < 200 or resp.status >= 300:
                    text = await resp.text()
                    raise ToolCallError(tool, text, status=resp.status)
                payload = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            raise ToolCallError(tool, f"timed out after {timeout_ms}ms")
        except aiohttp.ClientConnectionError as e:
            raise BridgeUnavailableError(
                f"Tool bridge unreachable at {self.endpoint}: {e}",
                {"tool": tool, "endpoint": self.endpoint},
            )
        except (aiohttp.ClientError, ValueError) as e:
            raise ToolCallError(tool, str(e))

        if isinstance(payload, dict):
            if payload.get("error"):
                raise ToolCallError(tool, str(payload["error"]))
            if payload.get("result") is not None:
                return payload["result"]
        return payload


def resolve_endpoint(endpoint: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    if endpoint:
        return endpoint
    if env is None:
        env = os.environ
        fallback = settings.tool_client.endpoint
    else:
        fallback = None
    for key in ENDPOINT_ENV_KEYS:
        if env.get(key):
            return env[key]
    return fallback


def create_tool_client(
    endpoint: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Optional[ToolClient]:
    """Client for the configured endpoint, or None when no endpoint is set."""
    resolved = resolve_endpoint(endpoint, env)
    return ToolClient(resolved) if resolved else None
