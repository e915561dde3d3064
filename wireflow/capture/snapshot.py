# wireflow/capture/snapshot.py
"""
Snapshot Capture

Asks the tool bridge to navigate, then captures the DOM snapshot, a
full-page screenshot and the console log concurrently. Each artifact is
written into the iteration directory together with an artifact.json
manifest.
"""
import asyncio
import base64
import json
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from wireflow.capture.tool_client import (
    CONSOLE_TOOL,
    NAVIGATE_TOOL,
    SCREENSHOT_TOOL,
    SNAPSHOT_TOOL,
    ToolClient,
)
from wireflow.core.config import settings
from wireflow.core.exceptions import SnapshotError, ToolCallError
from wireflow.core.logging import log
from wireflow.core.paths import to_display


SNAPSHOT_FILENAME = "dom-snapshot.json"
SCREENSHOT_FILENAME = "page.png"
CONSOLE_FILENAME = "console.json"
META_FILENAME = "artifact.json"


@dataclass
class CaptureArtifacts:
    output_dir: Path
    snapshot_path: Path
    screenshot_path: Path
    console_path: Optional[Path]
    meta_path: Path
    dom_snapshot: Any = None
    console_messages: Optional[List[Any]] = None
    manifest: Dict[str, Any] = field(default_factory=dict)
    reused: bool = False


def iteration_dir(history_root: Path, slug: str, iteration: int) -> Path:
    return Path(history_root) / slug / f"iteration-{iteration}"


async def _console_messages(client: ToolClient, slug: str) -> Optional[List[Any]]:
    """Console capture is best effort; a failure leaves the manifest entry null."""
    try:
        return await client.call(CONSOLE_TOOL, {})
    except ToolCallError as e:
        log("SNAPSHOT", f"⚠️ Console capture failed: {e}", project_id=slug)
        return None


def _write_screenshot(screenshot: Any, screenshot_path: Path, project_root: Path) -> Optional[Path]:
    """Returns the path actually written (page.json when no image came back)."""
    if isinstance(screenshot, dict) and screenshot.get("data"):
        screenshot_path.write_bytes(base64.b64decode(screenshot["data"]))
        return screenshot_path
    if isinstance(screenshot, dict) and screenshot.get("path"):
        source = Path(screenshot["path"])
        if not source.is_absolute():
            source = project_root / source
        shutil.copyfile(source, screenshot_path)
        return screenshot_path
    fallback = screenshot_path.with_suffix(".json")
    fallback.write_text(json.dumps(screenshot, indent=2), encoding="utf-8")
    return fallback


async def capture(
    client: ToolClient,
    slug: str,
    iteration: int,
    url: Optional[str],
    history_root: Path,
    delay_ms: int = 0,
    capture_console: bool = True,
    project_root: Optional[Path] = None,
) -> CaptureArtifacts:
    if client is None:
        raise SnapshotError("Missing tool client with call(tool, params) signature.")
    if not slug:
        raise SnapshotError("Missing required slug.")
    if not isinstance(iteration, int) or isinstance(iteration, bool):
        raise SnapshotError("Iteration must be an integer.")

    project_root = Path(project_root) if project_root else Path(history_root)
    output_dir = iteration_dir(history_root, slug, iteration)
    output_dir.mkdir(parents=True, exist_ok=True)

    if url:
        await client.call(
            NAVIGATE_TOOL,
            {"url": url, "timeout": settings.tool_client.navigate_timeout_ms},
        )
    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)

    dom_snapshot, screenshot, console_messages = await asyncio.gather(
        client.call(SNAPSHOT_TOOL, {}),
        client.call(SCREENSHOT_TOOL, {"fullPage": True}),
        _console_messages(client, slug) if capture_console else asyncio.sleep(0),
    )

    snapshot_path = output_dir / SNAPSHOT_FILENAME
    screenshot_path = output_dir / SCREENSHOT_FILENAME
    console_path = output_dir / CONSOLE_FILENAME if capture_console else None
    meta_path = output_dir / META_FILENAME

    def _write() -> Dict[str, Any]:
        snapshot_path.write_text(json.dumps(dom_snapshot, indent=2), encoding="utf-8")
        written_screenshot = _write_screenshot(screenshot, screenshot_path, project_root)
        if console_path is not None:
            console_path.write_text(json.dumps(console_messages or [], indent=2), encoding="utf-8")

        screenshot_bytes = None
        if isinstance(screenshot, dict) and screenshot.get("data"):
            screenshot_bytes = len(base64.b64decode(screenshot["data"]))
        nodes = dom_snapshot.get("nodes") if isinstance(dom_snapshot, dict) else None

        manifest = {
            "version": 1,
            "slug": slug,
            "iteration": iteration,
            "url": url,
            "capturedAt": datetime.now(timezone.utc).isoformat(),
            "files": {
                "domSnapshot": to_display(snapshot_path, project_root),
                "screenshot": to_display(written_screenshot, project_root),
                "console": (
                    to_display(console_path, project_root)
                    if console_path is not None and console_messages is not None
                    else None
                ),
            },
            "metadata": {
                "screenshotBytes": screenshot_bytes,
                "snapshotNodeCount": len(nodes) if isinstance(nodes, list) else None,
            },
        }
        meta_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        return manifest

    manifest = await asyncio.to_thread(_write)
    log("SNAPSHOT", f"📸 Captured iteration {iteration} ({url or 'current page'})", project_id=slug)

    return CaptureArtifacts(
        output_dir=output_dir,
        snapshot_path=snapshot_path,
        screenshot_path=screenshot_path,
        console_path=console_path,
        meta_path=meta_path,
        dom_snapshot=dom_snapshot,
        console_messages=console_messages if capture_console else None,
        manifest=manifest,
    )


def load_existing(output_dir: Path) -> Optional[CaptureArtifacts]:
    """Reload a prior capture; None unless both snapshot and screenshot exist."""
    output_dir = Path(output_dir)
    snapshot_path = output_dir / SNAPSHOT_FILENAME
    screenshot_path = output_dir / SCREENSHOT_FILENAME
    if not (snapshot_path.is_file() and screenshot_path.is_file()):
        return None

    try:
        dom_snapshot = json.loads(snapshot_path.read_text(encoding="utf-8"))
    except ValueError:
        dom_snapshot = None

    console_path = output_dir / CONSOLE_FILENAME
    console_messages = None
    if console_path.is_file():
        try:
            console_messages = json.loads(console_path.read_text(encoding="utf-8"))
        except ValueError:
            console_messages = None

    meta_path = output_dir / META_FILENAME
    manifest: Dict[str, Any] = {}
    if meta_path.is_file():
        try:
            manifest = json.loads(meta_path.read_text(encoding="utf-8"))
        except ValueError:
            manifest = {}

    return CaptureArtifacts(
        output_dir=output_dir,
        snapshot_path=snapshot_path,
        screenshot_path=screenshot_path,
        console_path=console_path if console_path.is_file() else None,
        meta_path=meta_path,
        dom_snapshot=dom_snapshot,
        console_messages=console_messages,
        manifest=manifest,
        reused=True,
    )
