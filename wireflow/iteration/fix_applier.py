# wireflow/iteration/fix_applier.py
"""
Fix Applier

Plans automatic fixes for validator issues under a hard safety limit.

Only issues carrying structured fix metadata (a recommendation string and a
non-empty targetFiles list) qualify. More qualifying issues than the limit
means nothing is planned at all. Source files are never modified; callers
treat an empty `applied` list as "no progress".
"""
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from wireflow.core.config import settings
from wireflow.core.exceptions import PersistenceError
from wireflow.core.logging import log


NOT_AUTO_FIXABLE = "not-auto-fixable"
EXCEEDS_MAX_FILES = "exceeds-max-files"
ENGINE_NOT_IMPLEMENTED = "auto-fix-engine-not-implemented"

PLAN_NOTE = (
    "Auto-fix engine scaffolded; integrate a patch application backend to enable automatic fixes."
)


@dataclass
class FixResult:
    applied: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    dry_run: bool = False
    note: Optional[str] = None
    plan_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied": self.applied,
            "skipped": self.skipped,
            "dryRun": self.dry_run,
            "note": self.note,
            "planPath": str(self.plan_path) if self.plan_path else None,
        }


def is_auto_fixable(issue: Any) -> bool:
    if not isinstance(issue, dict):
        return False
    fix = issue.get("fix")
    if not isinstance(fix, dict):
        return False
    target_files = fix.get("targetFiles")
    return (
        isinstance(fix.get("recommendation"), str)
        and bool(fix["recommendation"].strip())
        and isinstance(target_files, list)
        and len(target_files) > 0
    )


def _issue_id(issue: Any) -> Optional[str]:
    return issue.get("id") if isinstance(issue, dict) else None


def plan(
    issues: Optional[List[Any]],
    max_files_touched: Optional[int] = None,
    dry_run: bool = False,
    output_dir: Optional[Path] = None,
) -> FixResult:
    """
    Build a fix plan for the given issues.

    Returns:
        FixResult with `applied` always empty under the current policy.
    """
    issues = list(issues or [])
    limit = settings.iteration.max_files_touched if max_files_touched is None else max_files_touched
    qualifying = [issue for issue in issues if is_auto_fixable(issue)]

    if not qualifying:
        log("AUTO-FIX", f"No auto-fixable issues among {len(issues)}")
        return FixResult(
            skipped=[
                {
                    "id": _issue_id(issue),
                    "reason": NOT_AUTO_FIXABLE,
                    "message": "Issue does not include actionable fix metadata.",
                }
                for issue in issues
            ],
            dry_run=dry_run,
        )

    if len(qualifying) > limit:
        log("AUTO-FIX", f"🛑 {len(qualifying)} fixable issues exceed limit of {limit}; refusing")
        return FixResult(
            skipped=[
                {
                    "id": _issue_id(issue),
                    "reason": EXCEEDS_MAX_FILES,
                    "message": f"More than {limit} issues provided; refusing to auto-fix.",
                }
                for issue in issues
            ],
            dry_run=dry_run,
        )

    entries = [
        {
            "id": _issue_id(issue),
            "status": "skipped",
            "reason": ENGINE_NOT_IMPLEMENTED,
            "recommendation": issue["fix"]["recommendation"],
            "targetFiles": list(issue["fix"]["targetFiles"]),
        }
        for issue in qualifying
    ]

    plan_path = None
    if output_dir is not None:
        target_dir = Path(output_dir)
        plan_path = target_dir / f"auto-fix-plan-{int(time.time() * 1000)}.json"
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            plan_path.write_text(json.dumps(entries, indent=2), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(str(plan_path), str(e))
        log("AUTO-FIX", f"📝 Fix plan written: {plan_path.name} ({len(entries)} entries)")

    return FixResult(
        applied=[],
        skipped=entries,
        dry_run=dry_run,
        note=PLAN_NOTE,
        plan_path=plan_path,
    )


def print_fix_summary(result: FixResult) -> None:
    if result.dry_run:
        print("- Auto-fix dry run complete. Review plan below:")
    else:
        print("- Auto-fix attempt complete.")

    if result.applied:
        print(f"  Applied fixes: {len(result.applied)}")
        for entry in result.applied:
            files = ", ".join(entry.get("files") or []) or "unknown files"
            print(f"    • {entry.get('id')} → {files}")

    if result.skipped:
        print(f"  Skipped fixes: {len(result.skipped)}")
        for entry in result.skipped:
            print(f"    • {entry.get('id')}: {entry.get('reason')}")

    if result.note:
        print(f"  Note: {result.note}")
