# wireflow/orchestration/state_store.py
"""
Durable read/modify/write of workflow-state.json.

`save(..., immediate=False)` defers the write until `flush()`; the pending
document lives on the store instance, not at module level.
"""
import asyncio
import json
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from wireflow.core.exceptions import PersistenceError, StateError
from wireflow.core.logging import log
from wireflow.core.paths import PATHS
from wireflow.orchestration.state import WorkflowState


class WorkflowStateStore:
    def __init__(self, root: Path):
        self.path = Path(root) / PATHS.WORKFLOW_STATE
        self._pending: Optional[WorkflowState] = None

    # ─────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────

    async def load(self) -> Optional[WorkflowState]:
        return await asyncio.to_thread(self._load_sync)

    def _load_sync(self) -> Optional[WorkflowState]:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StateError(f"Unable to read workflow state {self.path}: {e}", {"path": str(self.path)})
        try:
            return WorkflowState.from_json_dict(raw)
        except PydanticValidationError as e:
            raise StateError(f"Malformed workflow state {self.path}: {e}", {"path": str(self.path)})

    # ─────────────────────────────────────────────────────────
    # Write
    # ─────────────────────────────────────────────────────────

    async def save(self, state: WorkflowState, immediate: bool = True) -> None:
        if not immediate:
            self._pending = state
            log("STATE", f"Deferred state write ({state.status.value}, phase={state.current_phase})")
            return
        await asyncio.to_thread(self._write_sync, state)
        self._pending = None

    async def flush(self) -> bool:
        """Write any deferred state. Returns False when nothing was pending."""
        if self._pending is None:
            return False
        pending = self._pending
        await asyncio.to_thread(self._write_sync, pending)
        self._pending = None
        return True

    def has_pending(self) -> bool:
        return self._pending is not None

    def _write_sync(self, state: WorkflowState) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(state.to_json_dict(), indent=2) + "\n", encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(str(self.path), str(e))
        log("STATE", f"💾 State saved ({state.status.value}, phase={state.current_phase})", project_id=state.project_slug)

    async def reset(self) -> bool:
        """Delete the state file. Returns True when a file was removed."""
        self._pending = None
        if not self.path.exists():
            return False
        await asyncio.to_thread(self.path.unlink)
        log("STATE", f"🗑️ Removed {PATHS.WORKFLOW_STATE}")
        return True
