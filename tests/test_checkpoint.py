# tests/test_checkpoint.py
"""
Project auto-snapshots and their retention policy.
"""
import json
from datetime import datetime, timedelta, timezone

import pytest

from wireflow.core.paths import PATHS
from wireflow.orchestration.checkpoint import MIN_SNAPSHOTS_TO_KEEP, ProjectSnapshotManager

from tests.conftest import write_agent_outputs


def _fake_snapshot(manager, slug, name, created):
    directory = manager.base_dir / slug / name
    directory.mkdir(parents=True)
    (directory / "snapshot.json").write_text(json.dumps({
        "timestamp": name,
        "project": slug,
        "created": created.isoformat(),
    }), encoding="utf-8")
    return directory


@pytest.mark.asyncio
async def test_snapshot_copies_project_and_context(temp_workspace):
    write_agent_outputs(temp_workspace, "business-context-gatherer")
    manager = ProjectSnapshotManager(temp_workspace)

    ts = await manager.save_project_snapshot("landing", "Before run")

    directory = temp_workspace / PATHS.SNAPSHOTS / "landing" / ts
    assert (directory / "wireframe-project" / "metadata.json").is_file()
    assert (directory / "BUSINESS-CONTEXT.md").is_file()
    assert (directory / "business-context.json").is_file()
    meta = json.loads((directory / "snapshot.json").read_text(encoding="utf-8"))
    assert meta["description"] == "Before run"
    assert meta["files"] == 4


@pytest.mark.asyncio
async def test_missing_project_is_skipped(temp_workspace):
    assert await ProjectSnapshotManager(temp_workspace).save_project_snapshot("ghost") is None


@pytest.mark.asyncio
async def test_cleanup_keeps_newest_and_recent(temp_workspace):
    manager = ProjectSnapshotManager(temp_workspace)
    now = datetime.now(timezone.utc)
    for index in range(5):
        _fake_snapshot(manager, "landing", f"old-{index}", now - timedelta(days=30 + index))
    recent = _fake_snapshot(manager, "landing", "recent", now - timedelta(days=1))
    (manager.base_dir / "landing" / "backup-manual").mkdir()

    removed = await manager.cleanup("landing")

    remaining = [s["path"].name for s in manager.list_snapshots("landing")]
    assert removed == 3
    assert len(remaining) == MIN_SNAPSHOTS_TO_KEEP
    assert remaining[0] == recent.name
    assert (manager.base_dir / "landing" / "backup-manual").is_dir()


def test_unreadable_manifest_is_ignored(temp_workspace):
    manager = ProjectSnapshotManager(temp_workspace)
    broken = manager.base_dir / "landing" / "broken"
    broken.mkdir(parents=True)
    (broken / "snapshot.json").write_text("{", encoding="utf-8")
    assert manager.list_snapshots("landing") == []
