import sys
import os
from datetime import datetime
from typing import Any, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# LOG FILTERING
# ═══════════════════════════════════════════════════════════════════════════════
# Operator-facing scopes are always shown.
# Everything else is gated behind WIREFLOW_DEBUG.

INFO_SCOPES = {
    "ORCHESTRATOR",   # Run lifecycle
    "SCHEDULER",      # Phase / agent transitions
    "VALIDATOR",      # Output validation verdicts
    "SELF-ITERATE",   # Iteration loop decisions
    "AUTO-FIX",       # Fix planning
    "SNAPSHOT",       # Capture + auto-snapshot
    "DEV-SERVER",     # Spawned dev server
    "TEARDOWN",       # Failed cleanup steps
}

# DEBUG-only scopes (hidden by default)
DEBUG_SCOPES = {
    "STATE",
    "CONFIG",
    "ENRICHMENT",
    "PROMPTS",
    "TOOL-CLIENT",
    "TASK-QUEUE",
    "CHECKPOINT",
    "CLEANUP",
}


def is_debug_mode() -> bool:
    return os.getenv("WIREFLOW_DEBUG", "false").lower() == "true"


def log(scope: str, message: str, data: Any = None, project_id: Optional[str] = None) -> None:
    """
    Unified logging function for wireflow.

    Only INFO_SCOPES are shown by default.
    Set WIREFLOW_DEBUG=true to see all scopes.
    """
    if not is_debug_mode() and scope not in INFO_SCOPES:
        return

    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"[{timestamp}] [{scope}]"

    if project_id:
        prefix += f" [{project_id}]"

    print(f"{prefix} {message}")

    if data:
        print(f"  Data: {data}")

    sys.stdout.flush()


def log_section(scope: str, title: str, project_id: Optional[str] = None) -> None:
    """
    Log a section header with visual separator.
    """
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"\n{'='*60}")
    if project_id:
        print(f"[{timestamp}] [{scope}] [{project_id}] {title}")
    else:
        print(f"[{timestamp}] [{scope}] {title}")
    print(f"{'='*60}")
    sys.stdout.flush()


def log_issues(scope: str, issues: List[str], project_id: Optional[str] = None, max_items: int = 20) -> None:
    """
    Log an itemised issue list (validation failures, skipped fixes).
    """
    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"[{timestamp}] [{scope}]"
    if project_id:
        prefix += f" [{project_id}]"

    print(f"{prefix} Issues found ({len(issues)}):")
    for i, issue in enumerate(issues[:max_items]):
        print(f"  {i+1}. {issue}")
    if len(issues) > max_items:
        print(f"  ... ({len(issues) - max_items} more)")
    sys.stdout.flush()
