# wireflow/iteration/controller.py
"""
Self-Iteration Controller

Supervisory loop for one project + variant:

    PREPARING_ITERATION → CAPTURING_SNAPSHOT → AWAITING_UX_REVIEW
        → AWAITING_VALIDATION → DECIDING → CONTINUING | STOPPED | PENDING_EXTERNAL_INPUT

Iterations are strictly sequential. Each pass consumes one unit of the
IterationBudget; a pass that cannot collect its reports ends the loop with a
pending outcome naming the files an operator must produce.
"""
import asyncio
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from wireflow.capture.snapshot import CaptureArtifacts, capture, iteration_dir, load_existing
from wireflow.capture.tool_client import ToolClient
from wireflow.context import ProjectContext
from wireflow.core.config import SelfIterationOptions, resolve_config_path, settings
from wireflow.core.logging import log, log_section
from wireflow.core.paths import to_display
from wireflow.iteration import history
from wireflow.iteration.budget import IterationBudget
from wireflow.iteration.fix_applier import FixResult, plan as plan_fixes, print_fix_summary
from wireflow.iteration.quality_gate import (
    ATTEMPT_FIXES,
    CONTINUE,
    STOP_NO_FIXES_APPLIED,
    compute_issue_stats,
    evaluate_gate,
    review_grade,
    review_passes,
)
from wireflow.iteration.task_queue import (
    FileTaskQueue,
    ReviewTask,
    TaskHandle,
    TaskQueue,
    ux_review_task,
    validation_task,
)


ITERATION_DIR_PATTERN = re.compile(r"^iteration-(\d+)$")

PENDING_UX_REVIEW = "pending-ux-review"
PENDING_VALIDATION = "pending-validation"
BUDGET_EXHAUSTED = "budget-exhausted"


class IterationState(str, Enum):
    PREPARING_ITERATION = "preparing_iteration"
    CAPTURING_SNAPSHOT = "capturing_snapshot"
    AWAITING_UX_REVIEW = "awaiting_ux_review"
    AWAITING_VALIDATION = "awaiting_validation"
    DECIDING = "deciding"
    CONTINUING = "continuing"
    STOPPED = "stopped"
    PENDING_EXTERNAL_INPUT = "pending_external_input"


# ═══════════════════════════════════════════════════════════════════
# ITERATION NUMBERING
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class IterationPlan:
    iteration: int
    reuse_existing: bool


def existing_iterations(project_history_dir: Path) -> List[int]:
    project_history_dir = Path(project_history_dir)
    if not project_history_dir.is_dir():
        return []
    numbers = []
    for entry in project_history_dir.iterdir():
        match = ITERATION_DIR_PATTERN.match(entry.name)
        if match and entry.is_dir():
            numbers.append(int(match.group(1)))
    return sorted(numbers)


def determine_initial_iteration(project_history_dir: Path, force_new: bool = False) -> IterationPlan:
    """
    Pick the iteration to run.

    An iteration whose validation.json is missing never finished, so it is
    reused unless `force_new` is set.
    """
    numbers = existing_iterations(project_history_dir)
    if not numbers:
        return IterationPlan(iteration=1, reuse_existing=False)

    latest = numbers[-1]
    if force_new:
        return IterationPlan(iteration=latest + 1, reuse_existing=False)

    if not (Path(project_history_dir) / f"iteration-{latest}" / "validation.json").exists():
        return IterationPlan(iteration=latest, reuse_existing=True)

    return IterationPlan(iteration=latest + 1, reuse_existing=False)


# ═══════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════════

@dataclass
class IterationTarget:
    """What a pass captures and how reviewers find its inputs."""
    slug: str
    variant: str
    target_url: str
    metadata_path: Path
    brief_path: Optional[Path] = None
    business_context_path: Optional[Path] = None


@dataclass
class IterationRecord:
    iteration: int
    started_at: str
    state: IterationState = IterationState.PREPARING_ITERATION
    completed_at: Optional[str] = None
    artifacts: Optional[Dict[str, Optional[str]]] = None
    manifest: Dict[str, Any] = field(default_factory=dict)
    ux_review: Optional[Dict[str, Any]] = None
    validation: Optional[Dict[str, Any]] = None
    decision: Optional[str] = None
    issue_stats: Optional[Dict[str, int]] = None
    fix_result: Optional[FixResult] = None
    pending_instructions: List[str] = field(default_factory=list)
    note: str = ""


@dataclass
class IterationOutcome:
    status: IterationState
    iteration: int
    decision: Optional[str]
    iterations_run: int
    message: str = ""
    records: List[IterationRecord] = field(default_factory=list)

    @property
    def pending(self) -> bool:
        return self.status == IterationState.PENDING_EXTERNAL_INPUT


FixApplier = Callable[..., FixResult]
CaptureFn = Callable[..., Any]


# ═══════════════════════════════════════════════════════════════════
# CONTROLLER
# ═══════════════════════════════════════════════════════════════════

class SelfIterationController:
    """
    Drives capture → review → validate → decide passes.

    Collaborators are injectable: `task_queue` (defaults to a FileTaskQueue
    over the project root), `fix_applier` (defaults to the planning-only
    FixApplier) and `capture_fn` (defaults to SnapshotCapture).
    """

    def __init__(
        self,
        project: ProjectContext,
        options: SelfIterationOptions,
        client: Optional[ToolClient],
        target: IterationTarget,
        task_queue: Optional[TaskQueue] = None,
        fix_applier: Optional[FixApplier] = None,
        capture_fn: Optional[CaptureFn] = None,
        history_root: Optional[Path] = None,
        wait_timeout_ms: int = 0,
        force_new: bool = False,
        refresh_artifacts: bool = False,
        dry_run: bool = False,
    ):
        self.project = project
        self.options = options
        self.client = client
        self.target = target
        self.task_queue = task_queue or FileTaskQueue(project.root, project.prompts)
        self.fix_applier = fix_applier or plan_fixes
        self.capture_fn = capture_fn or capture
        self.history_root = Path(history_root) if history_root else history.resolve_history_root(
            options.history_dir, project.root
        )
        self.wait_timeout_ms = max(0, wait_timeout_ms)
        self.force_new = force_new
        self.refresh_artifacts = refresh_artifacts
        self.dry_run = dry_run

        self.state = IterationState.PREPARING_ITERATION
        self.budget = IterationBudget(iterations_max=options.max_iterations)

    @property
    def project_history_dir(self) -> Path:
        return self.history_root / self.target.slug

    @property
    def change_log_path(self) -> Path:
        return history.change_log_path(self.project.root, self.target.slug, self.target.variant)

    def _transition(self, state: IterationState) -> None:
        self.state = state
        log("SELF-ITERATE", f"→ {state.value}", project_id=self.target.slug)

    def _rel(self, path: Optional[Path]) -> Optional[str]:
        return to_display(path, self.project.root) if path else None

    # ─────────────────────────────────────────────────────────
    # Main loop
    # ─────────────────────────────────────────────────────────

    async def run(self) -> IterationOutcome:
        slug = self.target.slug
        self._transition(IterationState.PREPARING_ITERATION)

        await asyncio.to_thread(self.project_history_dir.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(history.ensure_change_log, self.change_log_path, slug, self.target.variant)

        plan = await asyncio.to_thread(determine_initial_iteration, self.project_history_dir, self.force_new)
        iteration = plan.iteration
        reuse = plan.reuse_existing
        log(
            "SELF-ITERATE",
            f"🔁 Starting at iteration {iteration}"
            f"{' (reusing incomplete iteration)' if reuse else ''}, budget {self.options.max_iterations}",
            project_id=slug,
        )

        records: List[IterationRecord] = []
        while self.budget.can_iterate():
            self.budget.use_iteration(iteration, "reuse" if reuse else "capture")
            record = await self._run_iteration(iteration, reuse)
            records.append(record)

            if record.state == IterationState.PENDING_EXTERNAL_INPUT:
                return IterationOutcome(
                    status=IterationState.PENDING_EXTERNAL_INPUT,
                    iteration=iteration,
                    decision=record.decision,
                    iterations_run=len(records),
                    message="\n".join(record.pending_instructions),
                    records=records,
                )

            if record.decision != CONTINUE:
                return IterationOutcome(
                    status=IterationState.STOPPED,
                    iteration=iteration,
                    decision=record.decision,
                    iterations_run=len(records),
                    message=self._stop_message(record),
                    records=records,
                )

            self._transition(IterationState.CONTINUING)
            iteration += 1
            reuse = False

        self._transition(IterationState.STOPPED)
        print(self.budget.get_exhaustion_diagnostic())
        return IterationOutcome(
            status=IterationState.STOPPED,
            iteration=records[-1].iteration if records else iteration,
            decision=BUDGET_EXHAUSTED,
            iterations_run=len(records),
            message="Iteration budget exhausted.",
            records=records,
        )

    @staticmethod
    def _stop_message(record: IterationRecord) -> str:
        return record.note or record.decision or ""

    # ─────────────────────────────────────────────────────────
    # One pass
    # ─────────────────────────────────────────────────────────

    async def _capture(self, iteration: int, reuse: bool) -> CaptureArtifacts:
        self._transition(IterationState.CAPTURING_SNAPSHOT)
        output_dir = iteration_dir(self.history_root, self.target.slug, iteration)

        if reuse and not self.refresh_artifacts:
            existing = await asyncio.to_thread(load_existing, output_dir)
            if existing is not None:
                log("SNAPSHOT", f"♻️ Reusing artifacts from iteration {iteration}", project_id=self.target.slug)
                return existing

        return await self.capture_fn(
            self.client,
            self.target.slug,
            iteration,
            self.target.target_url,
            self.history_root,
            delay_ms=self.options.snapshot_delay_ms,
            capture_console=True,
            project_root=self.project.root,
        )

    async def _collect(self, task: ReviewTask) -> Tuple[Optional[Dict[str, Any]], Optional[TaskHandle]]:
        existing = await self.task_queue.lookup(task)
        if existing is not None:
            return existing, None

        handle = await self.task_queue.submit(task)
        report = await self.task_queue.wait(handle, self.wait_timeout_ms, settings.iteration.poll_interval_ms)
        return report, handle

    async def _pending(
        self,
        record: IterationRecord,
        status: str,
        handle: Optional[TaskHandle],
        title: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> IterationRecord:
        self._transition(IterationState.PENDING_EXTERNAL_INPUT)
        record.state = IterationState.PENDING_EXTERNAL_INPUT
        record.decision = status
        record.pending_instructions = list(handle.instructions) if handle else []

        entry = {
            "project": self.target.slug,
            "iteration": record.iteration,
            "status": status,
            "startedAt": record.started_at,
            "artifacts": record.artifacts,
        }
        entry.update(extra or {})
        await asyncio.to_thread(history.append_history_entry, self.history_root, entry)

        print(f"\n=== {title} Pending ===")
        if status == PENDING_UX_REVIEW:
            print(f"Variant: {self.target.variant}")
        for instruction in record.pending_instructions:
            print(f"- {instruction}")
        print(
            f"\nRe-run `wireflow-self-iterate --project {self.target.slug}` "
            "once the report file is generated."
        )
        return record

    async def _run_iteration(self, iteration: int, reuse: bool) -> IterationRecord:
        slug = self.target.slug
        threshold = self.options.grade_threshold
        record = IterationRecord(iteration=iteration, started_at=history.now_iso())
        output_dir = iteration_dir(self.history_root, slug, iteration)
        await asyncio.to_thread(output_dir.mkdir, parents=True, exist_ok=True)

        log_section("SELF-ITERATE", f"Iteration {iteration}", project_id=slug)

        artifacts = await self._capture(iteration, reuse)
        record.artifacts = history.relative_artifact_summary(artifacts, self.project.root)
        record.manifest = artifacts.manifest

        # UX review
        self._transition(IterationState.AWAITING_UX_REVIEW)
        ux_task = ux_review_task(
            root=self.project.root,
            iteration_dir=output_dir,
            slug=slug,
            variant=self.target.variant,
            iteration=iteration,
            target_url=self.target.target_url,
            metadata_path=self.target.metadata_path,
            brief_path=self.target.brief_path,
            business_context_path=self.target.business_context_path,
            change_log_path=self.change_log_path,
            artifacts=record.artifacts,
        )
        ux_report, ux_handle = await self._collect(ux_task)
        if ux_report is None:
            return await self._pending(record, PENDING_UX_REVIEW, ux_handle, "UX Review")
        record.ux_review = ux_report

        await asyncio.to_thread(
            history.sync_ux_review_outputs,
            self.project.root,
            slug,
            self.target.variant,
            ux_task.result_path,
            ux_task.summary_path,
        )
        await asyncio.to_thread(history.append_change_log_entry, self.change_log_path, iteration, ux_report, threshold)
        await asyncio.to_thread(history.write_ux_follow_up, output_dir, iteration, ux_report, threshold)

        # Structural validation
        self._transition(IterationState.AWAITING_VALIDATION)
        v_task = validation_task(
            root=self.project.root,
            iteration_dir=output_dir,
            slug=slug,
            iteration=iteration,
            target_url=self.target.target_url,
            metadata_path=self.target.metadata_path,
            brief_path=self.target.brief_path,
            artifacts=record.artifacts,
        )
        report, v_handle = await self._collect(v_task)
        if report is None:
            return await self._pending(
                record,
                PENDING_VALIDATION,
                v_handle,
                "Validation",
                {"configPath": self._rel(resolve_config_path(self.project.root))},
            )
        if not isinstance(report, dict):
            log("SELF-ITERATE", "⚠️ validation.json is not an object; treating as invalid", project_id=slug)
            report = {"valid": False, "issues": []}
        record.validation = report

        record.issue_stats = compute_issue_stats(report.get("issues"))
        record.completed_at = history.now_iso()
        validation_path = v_task.result_path if v_task.result_path.exists() else None
        summary_path = v_task.summary_path if v_task.summary_path.exists() else None

        await asyncio.to_thread(history.write_iteration_summary, output_dir, {
            "iteration": iteration,
            "project": slug,
            "startedAt": record.started_at,
            "completedAt": record.completed_at,
            "report": report,
            "uxReview": ux_report,
            "artifacts": record.artifacts,
            "validationPath": self._rel(validation_path),
            "validationSummaryPath": self._rel(summary_path),
        })
        await asyncio.to_thread(history.append_history_entry, self.history_root, {
            "project": slug,
            "iteration": iteration,
            "status": "valid" if report.get("valid") is True else "issues-found",
            "startedAt": record.started_at,
            "completedAt": record.completed_at,
            "issues": record.issue_stats,
            "configPath": self._rel(resolve_config_path(self.project.root)),
            "validationPath": self._rel(validation_path),
            "uxReview": ux_report,
        })
        self._print_iteration_summary(record)

        # Decide
        self._transition(IterationState.DECIDING)
        gate = evaluate_gate(ux_report, report, self.options.auto_fix, threshold)
        if gate.outcome != ATTEMPT_FIXES:
            print(f"- {gate.reason}")
            record.state = IterationState.STOPPED
            record.decision = gate.outcome
            record.note = gate.reason
            return record

        fix_result = self.fix_applier(
            report.get("issues") or [],
            max_files_touched=settings.iteration.max_files_touched,
            dry_run=self.dry_run,
            output_dir=self.project_history_dir,
        )
        record.fix_result = fix_result
        print_fix_summary(fix_result)

        if not fix_result.applied:
            record.note = "No fixes applied automatically; iteration loop will stop."
            print(f"- {record.note}")
            record.state = IterationState.STOPPED
            record.decision = STOP_NO_FIXES_APPLIED
            return record

        log("AUTO-FIX", f"🔧 {len(fix_result.applied)} fix(es) applied; continuing", project_id=slug)
        record.state = IterationState.CONTINUING
        record.decision = CONTINUE
        return record

    def _print_iteration_summary(self, record: IterationRecord) -> None:
        report = record.validation or {}
        stats = record.issue_stats or compute_issue_stats([])
        print(f"\n=== Iteration {record.iteration} ===")
        print(f"Status: {'✅ Ready' if report.get('valid') is True else '⚠ Needs fixes'}")
        if report.get("summary"):
            print(f"Summary: {report['summary']}")
        if record.ux_review is not None:
            grade = review_grade(record.ux_review)
            passes = review_passes(record.ux_review, self.options.grade_threshold)
            grade_text = f"{grade:.1f}" if grade is not None else "n/a"
            print(f"UX Review: {grade_text} ({'passes' if passes else 'needs follow-up'})")
        print(
            f"Issues: critical {stats['critical']}, major {stats['major']}, "
            f"minor {stats['minor']}, suggestions {stats['suggestion']}"
        )
        if report.get("valid") is not True:
            print(f"shouldContinue: {'no' if report.get('shouldContinue') is False else 'yes'}")
            print(f"Auto-fix: {'enabled' if self.options.auto_fix else 'disabled'}")
