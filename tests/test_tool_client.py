# tests/test_tool_client.py
"""
Tool bridge client against a local aiohttp server.
"""
import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from wireflow.capture.tool_client import ToolClient, create_tool_client, resolve_endpoint
from wireflow.core.exceptions import BridgeUnavailableError, ToolCallError


async def _call_tool(request: web.Request) -> web.StreamResponse:
    body = await request.json()
    tool = body["tool"]
    if tool == "fail":
        return web.Response(status=500, text="kaput")
    if tool == "error":
        return web.json_response({"error": "tool refused"})
    if tool == "slow":
        await asyncio.sleep(0.5)
    if tool == "raw":
        return web.json_response([1, 2, 3])
    return web.json_response({"result": {"tool": tool, "params": body["params"]}})


def _app() -> web.Application:
    app = web.Application()
    app.router.add_post("/call-tool", _call_tool)
    return app


@pytest.mark.asyncio
async def test_call_returns_result_field():
    async with test_utils.TestServer(_app()) as server:
        async with ToolClient(str(server.make_url("/"))) as client:
            result = await client.call("echo", {"url": "http://x"})
            assert result == {"tool": "echo", "params": {"url": "http://x"}}
            assert await client.call("raw") == [1, 2, 3]


@pytest.mark.asyncio
async def test_http_error_and_error_payload_raise():
    async with test_utils.TestServer(_app()) as server:
        async with ToolClient(str(server.make_url("/"))) as client:
            with pytest.raises(ToolCallError) as exc:
                await client.call("fail")
            assert exc.value.status == 500
            assert "kaput" in exc.value.message

            with pytest.raises(ToolCallError) as exc:
                await client.call("error")
            assert exc.value.status is None
            assert "tool refused" in exc.value.message


@pytest.mark.asyncio
async def test_timeout_aborts_request():
    async with test_utils.TestServer(_app()) as server:
        async with ToolClient(str(server.make_url("/"))) as client:
            with pytest.raises(ToolCallError) as exc:
                await client.call("slow", timeout_ms=50)
            assert "timed out" in exc.value.message


@pytest.mark.asyncio
async def test_unreachable_bridge():
    async with ToolClient("http://127.0.0.1:1") as client:
        with pytest.raises(BridgeUnavailableError):
            await client.call("echo", timeout_ms=2000)


def test_endpoint_resolution_order():
    env = {"MCP_ENDPOINT": "http://second", "CHROME_DEVTOOLS_MCP_ENDPOINT": "http://third"}
    assert resolve_endpoint(env=env) == "http://second"
    assert resolve_endpoint("http://explicit", env) == "http://explicit"
    assert resolve_endpoint(env={}) is None
    assert create_tool_client(env={}) is None
    assert create_tool_client(env={"MCP_HTTP_ENDPOINT": "http://first/"}).endpoint == "http://first"
