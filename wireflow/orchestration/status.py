# wireflow/orchestration/status.py
"""
Workflow status report (`wireflow-orchestrate --status`).

Read-only scan of the state file and the artifacts on disk. Each artifact
card reports ready / partial / stale / missing, and the snapshot derives
the open tasks and the next commands to run.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from wireflow.context import ProjectContext
from wireflow.core.exceptions import StateError
from wireflow.core.paths import PATHS, to_display
from wireflow.iteration.quality_gate import review_grade, review_passes
from wireflow.orchestration.state import WorkflowState
from wireflow.orchestration.state_store import WorkflowStateStore


UX_PASS_GRADE = 80


@dataclass
class FileInfo:
    path: Path
    relative_path: str
    updated_at: str
    size: int


@dataclass
class ArtifactCard:
    key: str
    label: str
    status: str
    path: Optional[str] = None
    updated_at: Optional[str] = None
    note: Optional[str] = None
    extra_paths: Dict[str, str] = field(default_factory=dict)


@dataclass
class NextStep:
    command: str
    detail: str = ""


@dataclass
class WorkflowSnapshot:
    has_state: bool
    project_slug: Optional[str]
    workflow_id: Optional[str] = None
    status: str = "not_initialized"
    current_phase: Optional[str] = None
    current_agent: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = None
    pending_agents: List[str] = field(default_factory=list)
    completed_agents: List[str] = field(default_factory=list)
    errors: List[Dict[str, Optional[str]]] = field(default_factory=list)
    enrichment_decisions: Optional[Dict[str, Any]] = None
    self_iteration: Optional[Dict[str, Any]] = None
    artifacts: Dict[str, ArtifactCard] = field(default_factory=dict)
    open_tasks: List[str] = field(default_factory=list)
    next_steps: List[NextStep] = field(default_factory=list)


def _file_info(project: ProjectContext, relative: Optional[str]) -> Optional[FileInfo]:
    if not relative:
        return None
    path = Path(relative)
    if not path.is_absolute():
        path = project.resolve(relative)
    if not path.is_file():
        return None
    stats = path.stat()
    return FileInfo(
        path=path,
        relative_path=to_display(path, project.root),
        updated_at=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc).isoformat(),
        size=stats.st_size,
    )


def _json_with_summary(
    project: ProjectContext,
    key: str,
    label: str,
    json_path: str,
    summary_path: str,
    missing_note: str,
    partial_note: str,
) -> ArtifactCard:
    json_info = _file_info(project, json_path)
    summary_info = _file_info(project, summary_path)
    card = ArtifactCard(key=key, label=label, status="missing", note=missing_note)

    if json_info:
        card.status = "ready"
        card.note = f"Summary available at {summary_info.relative_path}" if summary_info else None
        card.path = json_info.relative_path
        card.updated_at = json_info.updated_at
    elif summary_info:
        card.status = "partial"
        card.note = partial_note
        card.path = summary_info.relative_path
        card.updated_at = summary_info.updated_at

    if json_info:
        card.extra_paths["json"] = json_info.relative_path
    if summary_info:
        card.extra_paths["summary"] = summary_info.relative_path
    return card


def _inspect_workflow_state(project: ProjectContext, state: Optional[WorkflowState]) -> ArtifactCard:
    info = _file_info(project, PATHS.WORKFLOW_STATE)
    if info is None:
        return ArtifactCard(
            key="workflowState",
            label="Workflow state",
            status="missing",
            note="Run the orchestrator to initialize workflow-state.json.",
        )
    return ArtifactCard(
        key="workflowState",
        label="Workflow state",
        status="ready",
        path=info.relative_path,
        updated_at=info.updated_at,
        note=None if state else "State file present but could not be read.",
    )


def _inspect_business_context(project: ProjectContext, state: Optional[WorkflowState]) -> ArtifactCard:
    json_info = _file_info(project, PATHS.BUSINESS_CONTEXT_JSON)
    candidates = []
    if state and state.context_files.business_context:
        candidates.append(state.context_files.business_context)
    candidates.append(PATHS.BUSINESS_CONTEXT_MD)
    markdown_info = None
    for candidate in candidates:
        markdown_info = _file_info(project, candidate)
        if markdown_info:
            break

    card = ArtifactCard(
        key="businessContext",
        label="Business context JSON",
        status="missing",
        note="Business context JSON not exported.",
    )
    if json_info:
        card.status = "ready"
        card.note = None
        card.path = json_info.relative_path
        card.updated_at = json_info.updated_at

    if markdown_info:
        card.extra_paths["source"] = markdown_info.relative_path
        if not json_info:
            card.note = "Markdown exists; run the business-context-gatherer agent to export JSON."
        elif markdown_info.updated_at > json_info.updated_at:
            card.status = "stale"
            card.note = "Markdown newer than JSON; re-export business-context.json."
    return card


def _inspect_ui_validation(project: ProjectContext, slug: Optional[str], history_dir: str) -> ArtifactCard:
    if not slug:
        return ArtifactCard(
            key="uiValidation",
            label="UI validation",
            status="missing",
            note="Provide a project slug to locate self-iteration outputs.",
        )

    project_dir = project.root / history_dir / slug
    if not project_dir.is_dir():
        return ArtifactCard(
            key="uiValidation",
            label="UI validation",
            status="missing",
            note="No self-iteration runs detected for this project.",
        )

    validations = []
    for iteration_dir in project_dir.iterdir():
        info = _file_info(project, str(iteration_dir / "validation.json"))
        if iteration_dir.is_dir() and info:
            validations.append((iteration_dir.name, info))

    if not validations:
        return ArtifactCard(
            key="uiValidation",
            label="UI validation",
            status="missing",
            note="No validation.json artifacts found under self-iteration runs.",
        )

    validations.sort(key=lambda item: item[1].updated_at, reverse=True)
    iteration, latest = validations[0]
    note = (
        f"Latest of {len(validations)} iterations ({iteration})."
        if len(validations) > 1
        else f"Iteration {iteration}."
    )
    return ArtifactCard(
        key="uiValidation",
        label="UI validation",
        status="ready",
        path=latest.relative_path,
        updated_at=latest.updated_at,
        note=note,
    )


def _inspect_ux_review(project: ProjectContext, slug: Optional[str]) -> ArtifactCard:
    if not slug:
        return ArtifactCard(
            key="uxReview",
            label="UX review",
            status="missing",
            note="Provide --project <slug> to locate UX review outputs.",
        )

    review_dir = project.root / PATHS.UX_REVIEW / slug
    json_files = [p for p in review_dir.glob("*.json") if p.is_file()] if review_dir.is_dir() else []
    if not json_files:
        return ArtifactCard(
            key="uxReview",
            label="UX review",
            status="missing",
            note="No UX review artifacts detected. Run wireflow-self-iterate to request one.",
        )

    latest = max(json_files, key=lambda p: p.stat().st_mtime)
    info = _file_info(project, str(latest))
    card = ArtifactCard(key="uxReview", label="UX review", status="ready", path=info.relative_path, updated_at=info.updated_at)

    try:
        report = json.loads(latest.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return card

    if isinstance(report, dict):
        passes = review_passes(report, UX_PASS_GRADE)
        grade = review_grade(report)
        if grade is not None:
            card.note = f"Latest grade {grade:.1f} ({'passes' if passes else 'needs follow-up'})"
        elif passes:
            card.note = "Latest review passes threshold."
        variant = report.get("variant") or latest.stem
        markdown = review_dir / f"{variant}.md"
        if markdown.is_file():
            card.extra_paths["markdown"] = to_display(markdown, project.root)
    return card


def compute_open_tasks(snapshot: WorkflowSnapshot) -> List[str]:
    if not snapshot.project_slug:
        return ["Project slug not detected. Provide --project <slug> before proceeding."]

    tasks: List[str] = []
    artifacts = snapshot.artifacts
    business = artifacts.get("businessContext")
    if business and business.status in ("stale", "missing") and business.extra_paths.get("source"):
        tasks.append("Export business context JSON (business-context-gatherer outputs).")

    brief = artifacts["briefAnalysis"].status
    strategy = artifacts["strategy"].status
    alignment = artifacts["metadataValidation"].status

    if brief != "ready":
        tasks.append("Generate brief analysis (brief-analyzer).")
    if brief == "ready" and strategy != "ready":
        tasks.append("Create wireframe strategy (wireframe-strategist).")
    if brief == "ready" and strategy == "ready" and alignment != "ready":
        tasks.append("Run business-context-validator once build updates are in place.")

    if snapshot.current_agent:
        tasks.append(f"Produce outputs for {snapshot.current_agent} (run is waiting on it).")
    if snapshot.pending_agents:
        tasks.append(f"Pending agents recorded in workflow state: {', '.join(snapshot.pending_agents)}")
    for err in snapshot.errors:
        tasks.append(f"Fix error for {err.get('agentName') or 'unknown agent'}: {err.get('error') or 'unresolved error'}")

    ux = artifacts.get("uxReview")
    if ux is None or ux.status == "missing":
        tasks.append("Run wireflow-self-iterate to log UX feedback for the latest build.")
    elif ux.note and "needs follow-up" in ux.note:
        tasks.append(f"Address open UX review findings (see {PATHS.UX_REVIEW}/).")
    return tasks


def _push_step(steps: List[NextStep], command: str, detail: str) -> None:
    if not any(step.command == command for step in steps):
        steps.append(NextStep(command, detail))


def determine_next_steps(snapshot: WorkflowSnapshot) -> List[NextStep]:
    steps: List[NextStep] = []
    slug = snapshot.project_slug
    if not slug:
        _push_step(
            steps,
            "wireflow-orchestrate --project <slug> --brief <path>",
            "Initialize the orchestrator with an intake source to generate brief-analysis outputs.",
        )
        return steps

    artifacts = snapshot.artifacts
    business = artifacts["businessContext"]
    needs_export = bool(business.extra_paths.get("source")) and business.status in ("stale", "missing")
    if needs_export:
        _push_step(
            steps,
            f"wireflow-orchestrate --project {slug} --force-business-context",
            "Refresh business-context.json so validators use the latest Markdown source.",
        )

    if artifacts["briefAnalysis"].status != "ready":
        _push_step(
            steps,
            f"wireflow-orchestrate --project {slug} --prepare-prompts",
            "Create structured brief analysis to unlock downstream strategy prompts.",
        )
    elif artifacts["strategy"].status != "ready":
        _push_step(
            steps,
            f"wireflow-orchestrate --project {slug} --resume --prepare-prompts",
            "Generate differentiated variant plans before building page templates.",
        )
    elif artifacts["metadataValidation"].status != "ready":
        _push_step(
            steps,
            f"wireflow-orchestrate --project {slug} --resume",
            "Validate business context alignment after implementing build updates.",
        )
        if not needs_export and artifacts["uiValidation"].status != "ready":
            _push_step(
                steps,
                f"wireflow-self-iterate --project {slug}",
                "Optional: add UI validation once the dev server can render the project.",
            )
    elif artifacts["uxReview"].status != "ready":
        _push_step(
            steps,
            f"wireflow-self-iterate --project {slug} --variant <key>",
            "Grade each built variant and log findings.",
        )
    else:
        _push_step(steps, f"wireflow-orchestrate --project {slug} --ux-review", "Review the latest UX summary before handoff.")

    _push_step(steps, "wireflow-orchestrate --status", "Re-run the status check after taking action to confirm remaining tasks.")
    return steps


async def build_workflow_snapshot(
    project: ProjectContext,
    store: WorkflowStateStore,
    history_dir: str = PATHS.SELF_ITERATION,
) -> WorkflowSnapshot:
    try:
        state = await store.load()
    except StateError:
        state = None

    slug = project.slug or (state.project_slug if state else None)
    if slug != project.slug:
        project = project.with_slug(slug)

    snapshot = WorkflowSnapshot(has_state=state is not None, project_slug=slug)
    if state is not None:
        snapshot.workflow_id = state.workflow_id
        snapshot.status = state.status.value
        snapshot.current_phase = state.current_phase
        snapshot.current_agent = state.current_agent
        snapshot.start_time = state.start_time
        snapshot.end_time = state.end_time
        snapshot.notes = state.metadata.get("notes")
        snapshot.pending_agents = list(state.pending_agents)
        snapshot.completed_agents = state.completed_names()
        snapshot.errors = [{"agentName": e.agent_name, "error": e.error} for e in state.errors]
        snapshot.enrichment_decisions = state.metadata.get("enrichmentDecisions")
        snapshot.self_iteration = (state.metadata.get("selfIteration") or {}).get("resolved")

    snapshot.artifacts = {
        "workflowState": _inspect_workflow_state(project, state),
        "briefAnalysis": _json_with_summary(
            project, "briefAnalysis", "Brief analysis",
            PATHS.BRIEF_ANALYSIS, PATHS.BRIEF_ANALYSIS_SUMMARY,
            "Brief analysis not generated.",
            "Summary exists but brief-analysis.json is missing.",
        ),
        "strategy": _json_with_summary(
            project, "strategy", "Wireframe strategy",
            PATHS.WIREFRAME_STRATEGY, PATHS.WIREFRAME_STRATEGY_SUMMARY,
            "Strategy artifacts not generated.",
            "Summary exists but wireframe-strategy.json is missing.",
        ),
        "businessContext": _inspect_business_context(project, state),
        "metadataValidation": _json_with_summary(
            project, "metadataValidation", "Business context validation",
            PATHS.BUSINESS_CONTEXT_VALIDATION, PATHS.BUSINESS_CONTEXT_VALIDATION_MD,
            "Business context validation not yet run.",
            "Summary exists but business-context-validation.json is missing.",
        ),
        "uiValidation": _inspect_ui_validation(project, slug, history_dir),
        "uxReview": _inspect_ux_review(project, slug),
    }
    snapshot.open_tasks = compute_open_tasks(snapshot)
    snapshot.next_steps = determine_next_steps(snapshot)
    return snapshot


def print_status_report(snapshot: WorkflowSnapshot) -> None:
    print("Workflow Snapshot")
    if not snapshot.has_state:
        print("  (No workflow-state.json found; showing artifact scan only)")
    print(f"  Project       : {snapshot.project_slug or 'Not detected'}")
    if snapshot.workflow_id:
        print(f"  Workflow      : {snapshot.workflow_id}")
    print(f"  Status        : {snapshot.status}")
    if snapshot.current_phase:
        print(f"  Current Phase : {snapshot.current_phase}")
    if snapshot.current_agent:
        print(f"  Waiting On    : {snapshot.current_agent}")
    if snapshot.start_time:
        print(f"  Started       : {snapshot.start_time}")
    if snapshot.end_time:
        print(f"  Completed     : {snapshot.end_time}")
    if snapshot.notes:
        print(f"  Notes         : {snapshot.notes}")
    print(f"  Pending Agents: {', '.join(snapshot.pending_agents) or 'None'}")
    print(f"  Completed     : {', '.join(snapshot.completed_agents) or 'None'}")
    if snapshot.errors:
        print("  Errors        :")
        for err in snapshot.errors:
            print(f"    - {err.get('agentName') or 'unknown agent'}: {err.get('error')}")

    decisions = snapshot.enrichment_decisions
    if decisions:
        print("  Enrichment decisions:")
        if decisions.get("visual"):
            print(
                f"    • visual-ux-advisor: {decisions['visual']} "
                f"(score={decisions.get('visualScore')}, reasons={'/'.join(decisions.get('visualReasons') or [])})"
            )
        if decisions.get("variant"):
            print(
                f"    • variant-differentiator: {decisions['variant']} "
                f"(score={decisions.get('variantScore')}, reasons={'/'.join(decisions.get('variantReasons') or [])})"
            )
    if snapshot.self_iteration:
        si = snapshot.self_iteration
        print(
            f"  Self-Iteration : {'enabled' if si.get('enabled') else 'disabled'} | "
            f"maxIterations={si.get('maxIterations')} | autoFix={'on' if si.get('autoFix') else 'off'}"
        )

    print("\nArtifacts:")
    for card in snapshot.artifacts.values():
        line = f"- {card.label}: {card.status.capitalize()}"
        if card.path:
            line += f" ({card.path})"
        if card.updated_at:
            line += f" updated {card.updated_at}"
        print(line)
        if card.note:
            print(f"    • {card.note}")
        for key, value in card.extra_paths.items():
            print(f"    • {key}: {value}")

    print("\nOpen Tasks:")
    for task in snapshot.open_tasks or ["None."]:
        print(f"- {task}")

    print("\nNext Options:")
    if snapshot.next_steps:
        for index, step in enumerate(snapshot.next_steps, start=1):
            detail = f": {step.detail}" if step.detail else ""
            print(f"{index}. {step.command}{detail}")
    else:
        print("- No immediate actions detected.")
