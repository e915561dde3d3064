# wireflow/orchestration/checkpoint.py
"""
Project Auto-Snapshot

Copies a wireframe project plus its business context into
context/temp/snapshots/<slug>/<timestamp>/ before the orchestrator first
touches it. Old snapshots are pruned: anything older than 7 days goes,
but the newest 3 always stay.
"""
import asyncio
import json
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from wireflow.core.logging import log
from wireflow.core.paths import PATHS, project_wireframe_dir


MAX_SNAPSHOT_AGE_DAYS = 7
MIN_SNAPSHOTS_TO_KEEP = 3


class ProjectSnapshotManager:
    """
    Directory-per-snapshot store with a snapshot.json manifest in each.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.base_dir = self.root / PATHS.SNAPSHOTS

    async def save_project_snapshot(self, slug: str, description: str = "Auto-snapshot") -> Optional[str]:
        """
        Snapshot a project. Returns the snapshot timestamp, or None when the
        project directory does not exist.
        """
        return await asyncio.to_thread(self._save_sync, slug, description)

    def _save_sync(self, slug: str, description: str) -> Optional[str]:
        project_dir = project_wireframe_dir(self.root, slug)
        if not project_dir.is_dir():
            log("SNAPSHOT", f"⚠️ Project not found: {slug}, skipping snapshot", project_id=slug)
            return None

        now = datetime.now(timezone.utc)
        ts = now.strftime("%Y-%m-%d_%H-%M-%S")
        directory = self.base_dir / slug / ts
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True)

        log("SNAPSHOT", f"📸 Auto-snapshot: {slug} @ {ts}", project_id=slug)
        shutil.copytree(project_dir, directory / "wireframe-project")

        for relative in (PATHS.BUSINESS_CONTEXT_MD, PATHS.BUSINESS_CONTEXT_JSON):
            source = self.root / relative
            if source.is_file():
                shutil.copyfile(source, directory / source.name)

        meta = {
            "timestamp": ts,
            "project": slug,
            "description": description,
            "created": now.isoformat(),
            "files": sum(1 for p in directory.rglob("*") if p.is_file()),
        }
        (directory / "snapshot.json").write_text(json.dumps(meta, indent=2), encoding="utf-8")

        self._cleanup_sync(slug, now)
        return ts

    def list_snapshots(self, slug: str) -> List[Dict[str, Any]]:
        """Snapshot manifests for a project, newest first."""
        project_dir = self.base_dir / slug
        if not project_dir.is_dir():
            return []

        snapshots = []
        for entry in project_dir.iterdir():
            if entry.name.startswith("backup-") or not entry.is_dir():
                continue
            meta_path = entry / "snapshot.json"
            try:
                meta = json.loads(meta_path.read_text(encoding="utf-8"))
                created = datetime.fromisoformat(meta["created"])
            except (OSError, ValueError, KeyError, TypeError) as e:
                log("CHECKPOINT", f"Ignoring unreadable snapshot {entry.name}: {e}", project_id=slug)
                continue
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            snapshots.append({**meta, "created": created, "path": entry})

        return sorted(snapshots, key=lambda s: s["created"], reverse=True)

    def _cleanup_sync(self, slug: str, now: Optional[datetime] = None) -> int:
        snapshots = self.list_snapshots(slug)
        if len(snapshots) <= MIN_SNAPSHOTS_TO_KEEP:
            return 0

        now = now or datetime.now(timezone.utc)
        max_age = timedelta(days=MAX_SNAPSHOT_AGE_DAYS)
        removed = 0
        for snapshot in snapshots[MIN_SNAPSHOTS_TO_KEEP:]:
            if now - snapshot["created"] > max_age:
                shutil.rmtree(snapshot["path"], ignore_errors=True)
                log("CHECKPOINT", f"🧹 Cleaned up old snapshot: {snapshot['path'].name}", project_id=slug)
                removed += 1

        if removed:
            log("SNAPSHOT", f"✓ Removed {removed} old snapshot(s)", project_id=slug)
        return removed

    async def cleanup(self, slug: str) -> int:
        return await asyncio.to_thread(self._cleanup_sync, slug)
