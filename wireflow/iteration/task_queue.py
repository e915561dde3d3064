# wireflow/iteration/task_queue.py
"""
External task queue for grading and validation.

A review task is handed to something outside the process (a human operator
or another agent runtime) and its JSON report is collected later.

- FileTaskQueue: writes a prompt file and a context JSON into the iteration
  directory, then watches for the report file to appear.
- InMemoryTaskQueue: results are resolved programmatically.
"""
import asyncio
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from wireflow.agents.prompts import PromptLibrary
from wireflow.agents.registry import UX_REVIEW_AGENT, VALIDATOR_AGENT
from wireflow.core.config import settings
from wireflow.core.exceptions import PersistenceError, PromptNotFoundError
from wireflow.core.logging import log
from wireflow.core.paths import to_display


UX_REVIEW_KIND = "ux-review"
VALIDATION_KIND = "validation"

GENERIC_PROMPT = (
    "Review the captured artifacts listed below and write the JSON report "
    "to the required path. Follow the agent contract documented in AGENT-WORKFLOWS.md."
)


@dataclass(frozen=True)
class ReviewTask:
    """One report requested from outside the process."""
    kind: str
    agent: str
    title: str
    iteration: int
    iteration_dir: Path
    result_path: Path
    summary_path: Path
    prompt_path: Path
    context_path: Path
    context: Dict[str, Any] = field(default_factory=dict)
    context_lines: Tuple[str, ...] = ()
    deliverables: Tuple[str, ...] = ()


@dataclass
class TaskHandle:
    task: ReviewTask
    submitted_at: float = field(default_factory=time.monotonic)
    instructions: List[str] = field(default_factory=list)


class TaskQueue(ABC):
    """Abstract queue interface."""

    @abstractmethod
    async def submit(self, task: ReviewTask) -> TaskHandle:
        """Hand the task to the external worker."""
        pass

    @abstractmethod
    async def poll(self, handle: TaskHandle) -> Optional[Dict[str, Any]]:
        """Return the report when ready, else None. Never blocks."""
        pass

    async def lookup(self, task: ReviewTask) -> Optional[Dict[str, Any]]:
        """Report produced by an earlier invocation, if any."""
        return await self.poll(TaskHandle(task=task))

    async def wait(
        self,
        handle: TaskHandle,
        timeout_ms: int,
        interval_ms: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Poll until the report appears or `timeout_ms` elapses."""
        if timeout_ms <= 0:
            return None
        interval = (interval_ms or settings.iteration.poll_interval_ms) / 1000
        deadline = time.monotonic() + timeout_ms / 1000
        while time.monotonic() < deadline:
            result = await self.poll(handle)
            if result is not None:
                return result
            await asyncio.sleep(interval)
        return None


def build_instructions(task: ReviewTask, root: Path) -> List[str]:
    instructions = [
        f"Run the {task.agent} agent using {to_display(task.prompt_path, root)}.",
        f"Store JSON output at {to_display(task.result_path, root)}.",
        f"Optional: write markdown summary to {to_display(task.summary_path, root)}.",
    ]
    change_log = task.context.get("changeLogPath")
    if change_log:
        instructions.append(f"Record findings in the change log at {change_log}.")
    return instructions


# ═══════════════════════════════════════════════════════════════════
# FILE QUEUE
# ═══════════════════════════════════════════════════════════════════

class FileTaskQueue(TaskQueue):
    """
    Human-in-the-loop queue backed by the iteration directory.

    submit() writes <prompt>.md bundling the agent prompt with the resolved
    context, plus <context>.json; poll() reads the report file when present.
    """

    def __init__(self, root: Path, prompts: Optional[PromptLibrary] = None):
        self.root = Path(root)
        self.prompts = prompts or PromptLibrary(self.root)

    def _agent_prompt(self, agent: str) -> str:
        try:
            return self.prompts.get_prompt(agent).prompt
        except PromptNotFoundError as e:
            log("TASK-QUEUE", f"⚠️ {e.message}; using generic instructions")
            return GENERIC_PROMPT

    def render_prompt(self, task: ReviewTask) -> str:
        lines = [
            f"# {task.title} Prompt: Iteration {task.iteration}",
            "",
            "```prompt",
            self._agent_prompt(task.agent),
            "```",
            "",
            "## Context Summary",
        ]
        lines.extend(task.context_lines)
        if task.deliverables:
            lines.append("")
            lines.append("Deliverables:")
            lines.extend(f"- {item}" for item in task.deliverables)
        else:
            lines.append("")
            lines.append("Provide the JSON response at the required path listed above.")
        return "\n".join(lines) + "\n"

    def _write(self, task: ReviewTask) -> None:
        task.iteration_dir.mkdir(parents=True, exist_ok=True)
        task.prompt_path.write_text(self.render_prompt(task), encoding="utf-8")
        task.context_path.write_text(json.dumps(task.context, indent=2), encoding="utf-8")

    async def submit(self, task: ReviewTask) -> TaskHandle:
        try:
            await asyncio.to_thread(self._write, task)
        except OSError as e:
            raise PersistenceError(str(task.prompt_path), str(e))
        log("TASK-QUEUE", f"📨 {task.kind} task submitted → {to_display(task.prompt_path, self.root)}")
        return TaskHandle(task=task, instructions=build_instructions(task, self.root))

    @staticmethod
    def _read_report(path: Path) -> Optional[Dict[str, Any]]:
        if not path.is_file():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except ValueError as e:
            # Possibly mid-write; treated as not ready
            log("TASK-QUEUE", f"⚠️ {path.name} is not readable JSON yet: {e}")
            return None

    async def poll(self, handle: TaskHandle) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read_report, handle.task.result_path)


# ═══════════════════════════════════════════════════════════════════
# IN-MEMORY QUEUE
# ═══════════════════════════════════════════════════════════════════

class InMemoryTaskQueue(TaskQueue):
    """
    Queue whose reports are supplied in-process.

    Reports are keyed by (kind, iteration); a `responder` callable, when
    given, is consulted for tasks without a stored report.
    """

    def __init__(self, responder: Optional[Callable[[ReviewTask], Optional[Dict[str, Any]]]] = None):
        self.responder = responder
        self.results: Dict[Tuple[str, int], Dict[str, Any]] = {}
        self.submitted: List[ReviewTask] = []

    def resolve(self, kind: str, iteration: int, report: Dict[str, Any]) -> None:
        self.results[(kind, iteration)] = report

    async def submit(self, task: ReviewTask) -> TaskHandle:
        self.submitted.append(task)
        return TaskHandle(task=task, instructions=[f"Resolve {task.kind} for iteration {task.iteration}."])

    async def poll(self, handle: TaskHandle) -> Optional[Dict[str, Any]]:
        task = handle.task
        report = self.results.get((task.kind, task.iteration))
        if report is None and self.responder is not None:
            report = self.responder(task)
        return report


# ═══════════════════════════════════════════════════════════════════
# TASK BUILDERS
# ═══════════════════════════════════════════════════════════════════

def _artifact_lines(artifacts: Optional[Dict[str, Optional[str]]], include_meta: bool) -> List[str]:
    if not artifacts:
        return []
    lines = []
    if artifacts.get("snapshotPath"):
        lines.append(f"- DOM snapshot: {artifacts['snapshotPath']}")
    if artifacts.get("screenshotPath"):
        lines.append(f"- Screenshot: {artifacts['screenshotPath']}")
    if artifacts.get("consolePath"):
        lines.append(f"- Console log: {artifacts['consolePath']}")
    if include_meta and artifacts.get("metaPath"):
        lines.append(f"- Artifact summary: {artifacts['metaPath']}")
    return lines


def ux_review_task(
    root: Path,
    iteration_dir: Path,
    slug: str,
    variant: str,
    iteration: int,
    target_url: str,
    metadata_path: Path,
    brief_path: Optional[Path],
    business_context_path: Optional[Path],
    change_log_path: Path,
    artifacts: Optional[Dict[str, Optional[str]]],
) -> ReviewTask:
    iteration_dir = Path(iteration_dir)
    result_path = iteration_dir / "ux-review.json"
    summary_path = iteration_dir / "ux-review.md"
    rel = lambda p: to_display(p, root) if p else None  # noqa: E731

    context = {
        "projectSlug": slug,
        "variant": variant,
        "iteration": iteration,
        "metadataPath": rel(metadata_path),
        "briefPath": rel(brief_path),
        "businessContextPath": rel(business_context_path),
        "changeLogPath": rel(change_log_path),
        "artifacts": artifacts,
        "targetUrl": target_url,
    }
    context_lines = [
        f"- Project slug: {slug}",
        f"- Variant key: {variant}",
        f"- Iteration: {iteration}",
        f"- Target URL: {target_url}",
        f"- Metadata: {rel(metadata_path)}",
        f"- Brief: {rel(brief_path) or '_not available_'}",
        f"- Business context: {rel(business_context_path) or '_not provided_'}",
        f"- Change log: {rel(change_log_path)}",
    ] + _artifact_lines(artifacts, include_meta=False)

    return ReviewTask(
        kind=UX_REVIEW_KIND,
        agent=UX_REVIEW_AGENT,
        title="UX Review",
        iteration=iteration,
        iteration_dir=iteration_dir,
        result_path=result_path,
        summary_path=summary_path,
        prompt_path=iteration_dir / "ux-review.prompt.md",
        context_path=iteration_dir / "ux-review-context.json",
        context=context,
        context_lines=tuple(context_lines),
        deliverables=(
            f"Write JSON review to {rel(result_path)}",
            f"Append Markdown summary to {rel(summary_path)}",
            f"Update change log at {rel(change_log_path)}",
        ),
    )


def validation_task(
    root: Path,
    iteration_dir: Path,
    slug: str,
    iteration: int,
    target_url: str,
    metadata_path: Path,
    brief_path: Optional[Path],
    artifacts: Optional[Dict[str, Optional[str]]],
) -> ReviewTask:
    iteration_dir = Path(iteration_dir)
    rel = lambda p: to_display(p, root) if p else None  # noqa: E731

    context = {
        "projectSlug": slug,
        "iteration": iteration,
        "metadataPath": rel(metadata_path),
        "briefPath": rel(brief_path),
        "artifacts": artifacts,
        "targetUrl": target_url,
    }
    context_lines = [
        f"- Project slug: {slug}",
        f"- Iteration: {iteration}",
        f"- Target URL: {target_url}",
        f"- Metadata: {rel(metadata_path)}",
        f"- Brief: {rel(brief_path) or '_not available_'}",
    ] + _artifact_lines(artifacts, include_meta=True)

    return ReviewTask(
        kind=VALIDATION_KIND,
        agent=VALIDATOR_AGENT,
        title="Wireframe Validator",
        iteration=iteration,
        iteration_dir=iteration_dir,
        result_path=iteration_dir / "validation.json",
        summary_path=iteration_dir / "validation.md",
        prompt_path=iteration_dir / "validator-prompt.md",
        context_path=iteration_dir / "validator-context.json",
        context=context,
        context_lines=tuple(context_lines),
    )
