# wireflow/iteration/history.py
"""
Iteration history bookkeeping.

- history.jsonl: one JSON line per resolved or pending iteration
- summary.json: per-iteration summary inside iteration-N/
- UX review sync, change log and follow-up notes
- Route / variant helpers used to target the capture
"""
import json
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from wireflow.core.exceptions import PersistenceError
from wireflow.core.logging import log
from wireflow.core.paths import PATHS, TEMP_AGENT_OUTPUTS, to_display
from wireflow.iteration.quality_gate import review_grade, review_passes


HISTORY_LOG = "history.jsonl"
SUMMARY_FILENAME = "summary.json"
FOLLOW_UP_FILENAME = "ux-review-follow-up.md"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ═══════════════════════════════════════════════════════════════════
# LOCATIONS
# ═══════════════════════════════════════════════════════════════════

def resolve_history_root(history_dir: Optional[str], root: Path) -> Path:
    """Absolute history root; relative directories hang off the project root."""
    if not history_dir:
        return Path(root) / PATHS.SELF_ITERATION
    candidate = Path(history_dir)
    if candidate.is_absolute():
        return candidate
    return Path(root) / candidate


def ux_review_output_dir(root: Path, slug: str) -> Path:
    return Path(root) / PATHS.UX_REVIEW / slug


def change_log_path(root: Path, slug: str, variant: str) -> Path:
    return Path(root) / TEMP_AGENT_OUTPUTS / slug / "ux-review" / f"{variant}-log.md"


# ═══════════════════════════════════════════════════════════════════
# ROUTES & VARIANTS
# ═══════════════════════════════════════════════════════════════════

def normalize_route(route: Optional[str]) -> str:
    if not route:
        return "/"
    return route if route.startswith("/") else f"/{route}"


def sanitize_variant_key(value: Optional[str]) -> str:
    if not value:
        return "index"
    return value.strip().lstrip("/") or "index"


def infer_variant_from_path(metadata: Optional[Dict[str, Any]], target_path: Optional[str]) -> Optional[str]:
    """Variant key whose name ends the target route, if any."""
    variants = (metadata or {}).get("variants") if isinstance(metadata, dict) else None
    if not isinstance(variants, dict) or not target_path:
        return None
    normalized = target_path.rstrip("/")
    for key in variants:
        if normalized.endswith(f"/{key}"):
            return key
    return None


# ═══════════════════════════════════════════════════════════════════
# HISTORY LOG & SUMMARIES
# ═══════════════════════════════════════════════════════════════════

def append_history_entry(history_root: Path, entry: Dict[str, Any]) -> Path:
    path = Path(history_root) / HISTORY_LOG
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry) + "\n")
    except OSError as e:
        raise PersistenceError(str(path), str(e))
    log("SELF-ITERATE", f"📝 History entry: iteration {entry.get('iteration')} → {entry.get('status')}")
    return path


def read_history(history_root: Path) -> list:
    path = Path(history_root) / HISTORY_LOG
    if not path.is_file():
        return []
    entries = []
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return entries


def write_iteration_summary(iteration_dir: Path, summary: Dict[str, Any]) -> Path:
    path = Path(iteration_dir) / SUMMARY_FILENAME
    try:
        path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    except OSError as e:
        raise PersistenceError(str(path), str(e))
    return path


def relative_artifact_summary(artifacts: Any, root: Path) -> Optional[Dict[str, Optional[str]]]:
    if artifacts is None:
        return None

    def _rel(path: Optional[Path]) -> Optional[str]:
        return to_display(path, root) if path else None

    meta_path = artifacts.meta_path if artifacts.meta_path and Path(artifacts.meta_path).exists() else None
    return {
        "snapshotPath": _rel(artifacts.snapshot_path),
        "screenshotPath": _rel(artifacts.screenshot_path),
        "consolePath": _rel(artifacts.console_path),
        "metaPath": _rel(meta_path),
    }


# ═══════════════════════════════════════════════════════════════════
# UX REVIEW BOOKKEEPING
# ═══════════════════════════════════════════════════════════════════

def _grade_line(report: Dict[str, Any], threshold: float) -> str:
    grade = review_grade(report)
    grade_text = f"{grade:.1f}" if grade is not None else "n/a"
    verdict = "passes" if review_passes(report, threshold) else "needs follow-up"
    return f"{grade_text} ({verdict})"


def sync_ux_review_outputs(
    root: Path,
    slug: str,
    variant: str,
    report_path: Optional[Path],
    summary_path: Optional[Path] = None,
) -> Optional[Path]:
    """Copy the iteration's review into the per-variant review directory."""
    if not slug or not variant or not report_path or not Path(report_path).is_file():
        return None

    destination_dir = ux_review_output_dir(root, slug)
    destination_dir.mkdir(parents=True, exist_ok=True)
    destination = destination_dir / f"{variant}.json"
    shutil.copyfile(report_path, destination)

    if summary_path and Path(summary_path).is_file():
        shutil.copyfile(summary_path, destination_dir / f"{variant}.md")
    return destination


def ensure_change_log(path: Path, slug: str, variant: str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_text(f"# UX Review Change Log: {slug} ({variant})\n\n", encoding="utf-8")
    return path


def append_change_log_entry(
    path: Path,
    iteration: int,
    report: Optional[Dict[str, Any]],
    threshold: float,
) -> bool:
    """Add a `## Iteration N` block once; returns False when already present."""
    path = Path(path)
    if not report or not path.is_file():
        return False

    heading = f"## Iteration {iteration}"
    existing = path.read_text(encoding="utf-8")
    if any(line.startswith(f"{heading} ") or line == heading for line in existing.splitlines()):
        return False

    lines = ["", f"{heading} ({now_iso()})", f"- Grade: {_grade_line(report, threshold)}"]
    next_actions = report.get("nextActions")
    if isinstance(next_actions, list) and next_actions:
        lines.append("- Next actions:")
        lines.extend(f"  - {action}" for action in next_actions)

    with path.open("a", encoding="utf-8") as handle:
        handle.write("\n".join(lines) + "\n")
    return True


def write_ux_follow_up(
    iteration_dir: Path,
    iteration: int,
    report: Optional[Dict[str, Any]],
    threshold: float,
) -> Optional[Path]:
    if not isinstance(report, dict):
        return None
    next_actions = report.get("nextActions")
    if not isinstance(next_actions, list) or not next_actions:
        return None

    lines = [
        f"# UX Review Follow-up: Iteration {iteration}",
        "",
        f"Grade: {_grade_line(report, threshold)}",
        "",
        "## Next Actions",
    ]
    lines.extend(f"- {action}" for action in next_actions)

    path = Path(iteration_dir) / FOLLOW_UP_FILENAME
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
