# wireflow/orchestration/scheduler.py
"""
Phase Scheduler

Walks the phase sequence and, for each agent, decides whether to skip it,
wait for its outputs, fail on invalid outputs, or record it as complete.

State is persisted after every transition, so an interrupted run resumes
from the last completed step. Halting for missing outputs or invalid
outputs is an outcome, not an exception: `advance` returns a
SchedulerResult whose signal maps directly to the process exit code.
"""
import asyncio
import json
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from wireflow.agents.registry import (
    ANALYSIS_AGENT,
    BUSINESS_CONTEXT_AGENT,
    VARIANT_AGENT,
    VISUAL_AGENT,
    AgentDefinition,
)
from wireflow.context import ProjectContext
from wireflow.core.exceptions import WireflowError
from wireflow.core.logging import log, log_issues, log_section
from wireflow.core.paths import PATHS, to_display
from wireflow.core.platform import PlatformInfo
from wireflow.orchestration.checkpoint import ProjectSnapshotManager
from wireflow.orchestration.enrichment import EnrichmentDecisionEngine
from wireflow.orchestration.state import (
    CompletedAgent,
    ErrorRecord,
    WorkflowState,
    WorkflowStatus,
    append_completed_agent,
    mark_complete,
    mark_status,
    push_error,
    set_context_file,
    set_current_agent,
    set_metadata,
    set_pending_agents,
    update_phase,
)
from wireflow.orchestration.state_store import WorkflowStateStore
from wireflow.validation.output_validator import OutputValidator


class ExitCode(IntEnum):
    SUCCESS = 0
    USAGE_ERROR = 1
    PENDING_INPUT = 2
    VALIDATION_FAILED = 3


@dataclass
class SkipDecision:
    skip: bool
    reason: str = ""


@dataclass
class SchedulerResult:
    state: WorkflowState
    signal: ExitCode
    agent: Optional[str] = None
    issues: List[str] = field(default_factory=list)
    prompt_path: Optional[Path] = None


def merged_options(state: WorkflowState, options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Persisted run options overlaid by this invocation's options."""
    return {**(state.metadata.get("options") or {}), **(options or {})}


def evaluate_skip(agent_name: str, state: WorkflowState, options: Mapping[str, Any]) -> SkipDecision:
    """
    Skip rules, first match wins. Skip flags are checked before cached
    enrichment decisions, and a force flag disables the skip flag.
    """
    decisions = state.metadata.get("enrichmentDecisions") or {}

    if agent_name == BUSINESS_CONTEXT_AGENT:
        if options.get("skipBusinessContext") and not options.get("forceBusinessContext"):
            return SkipDecision(True, "skip flag set for business context")
        if state.context_files.business_context and not options.get("forceBusinessContext"):
            return SkipDecision(True, "existing business context detected")

    if agent_name == VISUAL_AGENT:
        if options.get("skipVisual") and not options.get("forceVisual"):
            return SkipDecision(True, "skip flag set for visual agent")
        if decisions.get("visual") == "skip" and not options.get("forceVisual"):
            return SkipDecision(True, "visual score above threshold")

    if agent_name == VARIANT_AGENT:
        if options.get("skipVariant") and not options.get("forceVariant"):
            return SkipDecision(True, "skip flag set for variant agent")
        if decisions.get("variant") == "skip" and not options.get("forceVariant"):
            return SkipDecision(True, "variant score above threshold")

    return SkipDecision(False)


def print_agent_action(
    info: AgentDefinition,
    platform_info: PlatformInfo,
    project: ProjectContext,
    prompt_path: Optional[Path] = None,
    prompt_requested: bool = False,
) -> None:
    """Tell the operator exactly which files the next agent must produce."""
    print("\n────────────────────────────────────────────────────────")
    print(f"Next agent: {info.label}")
    print(f"Platform detected: {platform_info.platform}")
    if platform_info.capabilities.get("parallelExecution"):
        print("Note: Parallel execution supported. You can prepare other enrichment agents concurrently.")
    print("\nExpected outputs:")
    for output in info.outputs:
        path = to_display(project.resolve(output.path), project.root)
        print(f"  • {path}{' (required)' if output.required else ''}")
    print(f"\nReference: {info.documentation}")
    print("Run instructions:")
    print(f"  1. Consult {PATHS.WORKFLOW_GUIDE} for the agent prompt.")
    print("  2. Generate output and write to the paths listed above.")
    print("  3. Re-run the orchestrator to continue.")
    print(f"Tip: wireflow-orchestrate --agent-help {info.name}")
    if prompt_path is not None:
        print(f"Prompt template ready at {to_display(prompt_path, project.root)}")
    elif prompt_requested:
        print("Prompt preparation was requested but the template could not be created automatically.")
    print("────────────────────────────────────────────────────────\n")


class PhaseScheduler:
    """
    Drives one workflow forward until it completes or must halt.

    Dependencies declared on agents are advisory; the phase sequence alone
    determines execution order.
    """

    def __init__(
        self,
        project: ProjectContext,
        store: WorkflowStateStore,
        platform_info: PlatformInfo,
        options: Optional[Mapping[str, Any]] = None,
        validator: Optional[OutputValidator] = None,
        engine: Optional[EnrichmentDecisionEngine] = None,
        snapshots: Optional[ProjectSnapshotManager] = None,
    ):
        self.project = project
        self.registry = project.registry
        self.store = store
        self.platform_info = platform_info
        self.options = dict(options or {})
        self.validator = validator or OutputValidator(project)
        self.engine = engine or EnrichmentDecisionEngine()
        self.snapshots = snapshots

    async def advance(self, state: WorkflowState) -> SchedulerResult:
        if state.status == WorkflowStatus.COMPLETED:
            log("SCHEDULER", f"Workflow {state.workflow_id} already completed.", project_id=state.project_slug)
            return SchedulerResult(state=state, signal=ExitCode.SUCCESS)

        if self.snapshots is not None and state.project_slug and not state.completed_agents:
            await self.snapshots.save_project_snapshot(
                state.project_slug,
                f"Before orchestrator workflow {state.workflow_id}",
            )

        for phase in self.registry.sequence:
            state = update_phase(state, phase.name)
            await self.store.save(state)
            log("SCHEDULER", f"Phase: {phase.name}", project_id=state.project_slug)

            for agent_name in phase.agents:
                info = self.registry.get(agent_name)
                if info is None or state.is_completed(agent_name):
                    continue

                options = merged_options(state, self.options)
                decision = evaluate_skip(agent_name, state, options)
                if decision.skip:
                    state = await self._skip(state, agent_name, decision.reason)
                    continue

                if not self.validator.outputs_present(agent_name):
                    return await self._await_outputs(state, info, options)

                report = await self.validator.validate(agent_name)
                if not report.valid:
                    return await self._fail_validation(state, agent_name, report.issues)

                state = await self._complete(state, info)

        state = mark_complete(state)
        await self.store.save(state)
        log_section("SCHEDULER", f"✅ Workflow {state.workflow_id} completed", state.project_slug)
        print(f"Final prompt available at {to_display(self.project.resolve(PATHS.FINAL_PROMPT), self.project.root)}")
        return SchedulerResult(state=state, signal=ExitCode.SUCCESS)

    # ─────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────

    async def _skip(self, state: WorkflowState, agent_name: str, reason: str) -> WorkflowState:
        skipped = list(state.metadata.get("skippedAgents") or [])
        if not any(item.get("name") == agent_name for item in skipped):
            state = set_metadata(state, {"skippedAgents": [*skipped, {"name": agent_name, "reason": reason}]})
        state = set_pending_agents(state, [name for name in state.pending_agents if name != agent_name])
        if state.current_agent == agent_name:
            state = set_current_agent(state, None)
        await self.store.save(state)
        log("SCHEDULER", f"⏭️ Skipping {agent_name}: {reason}", project_id=state.project_slug)
        return state

    async def _await_outputs(
        self,
        state: WorkflowState,
        info: AgentDefinition,
        options: Mapping[str, Any],
    ) -> SchedulerResult:
        prompt_path: Optional[Path] = None
        if options.get("preparePrompts"):
            try:
                prompt_path = self.project.prompts.prepare_prompt_file(info.name, state.project_slug)
                log("SCHEDULER", f"📝 Prepared prompt template at {to_display(prompt_path, self.project.root)}")
            except (WireflowError, OSError) as e:
                log("SCHEDULER", f"⚠️ Unable to prepare prompt for {info.name}: {e}", project_id=state.project_slug)

        state = set_current_agent(state, info.name)
        await self.store.save(state)
        log("SCHEDULER", f"⏸️ Waiting on outputs from {info.name}", project_id=state.project_slug)
        print_agent_action(
            info,
            self.platform_info,
            self.project,
            prompt_path=prompt_path,
            prompt_requested=bool(options.get("preparePrompts")),
        )
        return SchedulerResult(
            state=state,
            signal=ExitCode.PENDING_INPUT,
            agent=info.name,
            prompt_path=prompt_path,
        )

    async def _fail_validation(self, state: WorkflowState, agent_name: str, issues: List[str]) -> SchedulerResult:
        state = set_current_agent(state, agent_name)
        state = push_error(state, ErrorRecord(
            agent_name=agent_name,
            error=f"Validation failed: {', '.join(issues)}",
            validation_failures=list(issues),
        ))
        state = mark_status(state, WorkflowStatus.VALIDATION_FAILED)
        await self.store.save(state)
        log("VALIDATOR", f"❌ Validation failed for {agent_name}", project_id=state.project_slug)
        log_issues("VALIDATOR", issues, project_id=state.project_slug)
        return SchedulerResult(
            state=state,
            signal=ExitCode.VALIDATION_FAILED,
            agent=agent_name,
            issues=list(issues),
        )

    async def _complete(self, state: WorkflowState, info: AgentDefinition) -> WorkflowState:
        primary = info.primary_output
        state = append_completed_agent(state, CompletedAgent(
            name=info.name,
            output_path=primary.path if primary else None,
            success=True,
            validation_passed=True,
        ))
        if info.name == BUSINESS_CONTEXT_AGENT:
            state = set_context_file(state, "business_context", str(self.project.resolve(PATHS.BUSINESS_CONTEXT_MD)))
        if info.name == ANALYSIS_AGENT:
            state = set_context_file(state, "brief_analysis", str(self.project.resolve(PATHS.BRIEF_ANALYSIS)))
        state = mark_status(state, WorkflowStatus.IN_PROGRESS)
        await self.store.save(state)
        log("SCHEDULER", f"✅ {info.label} complete", project_id=state.project_slug)

        if info.name == ANALYSIS_AGENT:
            analysis = await self._read_analysis()
            if analysis is not None:
                state = self.engine.decide(state, analysis, merged_options(state, self.options))
                await self.store.save(state)
        return state

    async def _read_analysis(self) -> Optional[Dict[str, Any]]:
        path = self.project.resolve(PATHS.BRIEF_ANALYSIS)
        if not path.is_file():
            return None
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return json.loads(raw)
