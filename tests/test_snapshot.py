# tests/test_snapshot.py
"""
Snapshot capture through the tool bridge.
"""
import json

import pytest

from wireflow.capture.snapshot import capture, iteration_dir, load_existing
from wireflow.core.exceptions import SnapshotError, ToolCallError

from tests.conftest import PNG_BYTES, FakeToolClient


@pytest.mark.asyncio
async def test_capture_writes_artifacts_and_manifest(temp_workspace, tool_client):
    history = temp_workspace / "history"
    artifacts = await capture(
        tool_client, "landing", 1, "http://localhost:8080/landing", history, project_root=temp_workspace,
    )

    assert artifacts.output_dir == iteration_dir(history, "landing", 1)
    assert artifacts.screenshot_path.read_bytes() == PNG_BYTES
    assert json.loads(artifacts.snapshot_path.read_text(encoding="utf-8"))["nodes"][0]["role"] == "main"

    manifest = json.loads(artifacts.meta_path.read_text(encoding="utf-8"))
    assert manifest["iteration"] == 1
    assert manifest["files"]["screenshot"] == "history/landing/iteration-1/page.png"
    assert manifest["files"]["console"] == "history/landing/iteration-1/console.json"
    assert manifest["metadata"] == {"screenshotBytes": len(PNG_BYTES), "snapshotNodeCount": 2}

    assert tool_client.tools_called()[0] == "chrome-devtools__navigate_page"
    assert tool_client.calls[0][1]["url"] == "http://localhost:8080/landing"


@pytest.mark.asyncio
async def test_console_failure_is_tolerated(temp_workspace):
    client = FakeToolClient({"chrome-devtools__list_console_messages": ToolCallError("console", "boom")})
    artifacts = await capture(client, "landing", 2, None, temp_workspace, project_root=temp_workspace)

    assert artifacts.console_messages is None
    assert artifacts.manifest["files"]["console"] is None
    assert "chrome-devtools__navigate_page" not in client.tools_called()


@pytest.mark.asyncio
async def test_screenshot_without_image_data_falls_back_to_json(temp_workspace):
    client = FakeToolClient({"chrome-devtools__take_screenshot": {"status": "no-image"}})
    artifacts = await capture(client, "landing", 1, None, temp_workspace, capture_console=False)

    assert artifacts.console_path is None
    assert artifacts.manifest["files"]["screenshot"].endswith("page.json")
    assert not artifacts.screenshot_path.exists()


@pytest.mark.asyncio
async def test_snapshot_failure_propagates(temp_workspace):
    client = FakeToolClient({"chrome-devtools__take_snapshot": ToolCallError("snapshot", "bad", status=500)})
    with pytest.raises(ToolCallError):
        await capture(client, "landing", 1, None, temp_workspace)


@pytest.mark.asyncio
@pytest.mark.parametrize("slug,iteration", [("", 1), ("landing", "1"), ("landing", True)])
async def test_invalid_arguments(temp_workspace, tool_client, slug, iteration):
    with pytest.raises(SnapshotError):
        await capture(tool_client, slug, iteration, None, temp_workspace)


@pytest.mark.asyncio
async def test_load_existing(temp_workspace, tool_client):
    assert load_existing(temp_workspace / "nothing") is None
    await capture(tool_client, "landing", 1, None, temp_workspace, project_root=temp_workspace)

    reloaded = load_existing(iteration_dir(temp_workspace, "landing", 1))
    assert reloaded.reused is True
    assert reloaded.manifest["slug"] == "landing"
    assert reloaded.console_messages == [{"level": "info", "text": "ready"}]


@pytest.mark.asyncio
async def test_load_existing_tolerates_undecodable_files(temp_workspace, tool_client):
    await capture(tool_client, "landing", 1, None, temp_workspace, project_root=temp_workspace)
    directory = iteration_dir(temp_workspace, "landing", 1)
    (directory / "console.json").write_bytes(b"[\xff\xfe]")
    (directory / "artifact.json").write_bytes(b"\xff")

    reloaded = load_existing(directory)
    assert reloaded.console_messages is None
    assert reloaded.manifest == {}
    assert reloaded.dom_snapshot is not None
