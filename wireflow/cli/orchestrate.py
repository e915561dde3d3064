# wireflow/cli/orchestrate.py
"""
wireflow-orchestrate

Advances the agent workflow of one project as far as the available outputs
allow. Exit codes: 0 completed (or nothing to do), 1 usage/environment
error, 2 waiting on agent outputs, 3 agent outputs failed validation.
"""
import argparse
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from wireflow.agents.registry import BUSINESS_CONTEXT_AGENT, AgentRegistry
from wireflow.cli.common import WireflowArgumentParser, run_cli
from wireflow.context import ProjectContext
from wireflow.core.config import describe_provenance, load_self_iteration_options, settings
from wireflow.core.logging import log
from wireflow.core.paths import PATHS, to_display
from wireflow.core.platform import detect_platform
from wireflow.iteration.quality_gate import review_grade, review_passes
from wireflow.orchestration.checkpoint import ProjectSnapshotManager
from wireflow.orchestration.scheduler import ExitCode, PhaseScheduler, merged_options
from wireflow.orchestration.state import (
    WorkflowState,
    WorkflowStatus,
    create_initial_state,
    mark_status,
    set_metadata,
    set_pending_agents,
)
from wireflow.orchestration.state_store import WorkflowStateStore
from wireflow.orchestration.status import build_workflow_snapshot, print_status_report


# CLI flag → persisted option key
RUN_FLAGS = {
    "skip_business_context": "skipBusinessContext",
    "force_business_context": "forceBusinessContext",
    "skip_visual": "skipVisual",
    "force_visual": "forceVisual",
    "skip_variant": "skipVariant",
    "force_variant": "forceVariant",
    "prepare_prompts": "preparePrompts",
    "ux_review": "uxReview",
}

# camelCase override key (as persisted) → resolver option name
OVERRIDE_KEYS = {
    "enabled": "enabled",
    "maxIterations": "max_iterations",
    "autoFix": "auto_fix",
}


def build_parser() -> argparse.ArgumentParser:
    parser = WireflowArgumentParser(
        prog="wireflow-orchestrate",
        description="Drive the wireframe agent workflow for a project.",
    )
    parser.add_argument("--project", help="Project slug (required for a new workflow)")
    parser.add_argument("--brief", help="Path to the project brief, relative to the root")
    parser.add_argument("--resume", action="store_true", help="Continue after --reset")
    parser.add_argument("--reset", action="store_true", help="Delete the workflow state file")
    parser.add_argument("--start", action="store_true", help="Start a fresh run after --reset")
    parser.add_argument("--status", action="store_true", help="Print the workflow status report")
    parser.add_argument("--skip-business-context", action="store_true")
    parser.add_argument("--force-business-context", action="store_true")
    parser.add_argument("--skip-visual", action="store_true")
    parser.add_argument("--force-visual", action="store_true")
    parser.add_argument("--skip-variant", action="store_true")
    parser.add_argument("--force-variant", action="store_true")
    parser.add_argument("--prepare-prompts", action="store_true", help="Write a prompt file for the next agent")
    parser.add_argument("--notes", help="Free-form notes stored in workflow metadata")
    parser.add_argument("--self-iteration", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--max-iterations", type=int)
    parser.add_argument("--auto-fix", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--ux-review", action="store_true", help="Summarise the latest UX review afterwards")
    parser.add_argument("--ux-variant", help="Variant key for --ux-review (default: index)")
    parser.add_argument("--agent-help", metavar="AGENT", help="Describe one agent and exit")
    parser.add_argument("--root", help="Project root (default: WIREFLOW_ROOT or cwd)")
    return parser


# ═══════════════════════════════════════════════════════════════════
# OPTIONS
# ═══════════════════════════════════════════════════════════════════

def extract_options(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Run options set on this invocation.

    Only flags that were actually given are included, so a resume without
    flags keeps the persisted ones.
    """
    options: Dict[str, Any] = {key: True for flag, key in RUN_FLAGS.items() if getattr(args, flag, False)}
    if args.notes:
        options["notes"] = args.notes
    if args.ux_variant:
        options["uxReviewVariant"] = args.ux_variant
    return options


def self_iteration_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.self_iteration is not None:
        overrides["enabled"] = args.self_iteration
    if args.max_iterations is not None:
        overrides["maxIterations"] = args.max_iterations
    if args.auto_fix is not None:
        overrides["autoFix"] = args.auto_fix
    return overrides


def initial_pending_agents(registry: AgentRegistry, options: Mapping[str, Any]) -> List[str]:
    agents = registry.flatten_sequence()
    if options.get("skipBusinessContext") and not options.get("forceBusinessContext"):
        return [name for name in agents if name != BUSINESS_CONTEXT_AGENT]
    return agents


def apply_self_iteration_metadata(
    state: WorkflowState,
    project: ProjectContext,
    cli_overrides: Mapping[str, Any],
    env: Optional[Mapping[str, str]] = None,
) -> WorkflowState:
    """Record resolved self-iteration options and where they came from."""
    previous = state.metadata.get("selfIteration") or {}
    overrides = {**(previous.get("overrides") or {}), **cli_overrides}
    resolved = load_self_iteration_options(
        project.root,
        overrides={OVERRIDE_KEYS[key]: value for key, value in overrides.items() if key in OVERRIDE_KEYS},
        env=env,
        cache=project.config_cache,
    )
    provenance = describe_provenance(project.root, env)
    return set_metadata(state, {
        "selfIteration": {
            "resolved": resolved.to_dict(),
            "overrides": overrides,
            "lastInvocationOverrides": dict(cli_overrides) or None,
            "source": {
                "configPath": provenance["configPath"],
                "configExists": provenance["configExists"],
                "env": provenance["env"],
            },
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
    })


# ═══════════════════════════════════════════════════════════════════
# OUTPUT
# ═══════════════════════════════════════════════════════════════════

def print_agent_help(registry: AgentRegistry, agent_name: str) -> int:
    info = registry.get(agent_name)
    if info is None:
        print(f"! Unknown agent: {agent_name}")
        return ExitCode.USAGE_ERROR

    required, optional = registry.dependencies(agent_name)
    print(f"Agent: {info.label}")
    print(f"Name: {info.name}")
    print(f"Description: {info.description}")
    print("Outputs:")
    for output in info.outputs:
        print(f"  - {output.path}{' (required)' if output.required else ''}")
    if required or optional:
        print("Dependencies:")
        for name in required:
            print(f"  - {name}")
        for name in optional:
            print(f"  - {name} (optional)")
    print("\nReference guidance:")
    print(f"  {info.documentation}\n")
    print("Tips:")
    print(f"  • Review {PATHS.WORKFLOW_GUIDE} for the full prompt template.")
    print("  • Write outputs to the paths listed above using markdown/JSON as required.")
    print("  • Re-run the orchestrator to validate and continue.")
    return ExitCode.SUCCESS


def print_ux_review_summary(project: ProjectContext, slug: Optional[str], variant: Optional[str]) -> None:
    if not slug:
        print("> UX review flag set, but project slug is unavailable. Re-run with --project <slug>.")
        return

    variant = variant or "index"
    review_dir = project.root / PATHS.UX_REVIEW / slug
    json_path = review_dir / f"{variant}.json"
    markdown_path = review_dir / f"{variant}.md"
    rel_json = to_display(json_path, project.root)
    rel_markdown = to_display(markdown_path, project.root)

    print("\n──────────────── UX Review ────────────────")
    if not json_path.is_file():
        print(f"No UX review JSON detected for {slug}/{variant}.")
        print(f"Run: wireflow-self-iterate --project {slug} --variant {variant}")
        print("Expected outputs:")
        print(f"  • JSON → {rel_json}")
        print(f"  • Markdown → {rel_markdown}")
        print("───────────────────────────────────────────\n")
        return

    try:
        report = json.loads(json_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"Unable to read {rel_json}: {e}")
        print("───────────────────────────────────────────\n")
        return

    grade = review_grade(report)
    passes = review_passes(report)
    print(f"Variant: {slug}/{variant}")
    print(f"Overall grade: {f'{grade:.1f}' if grade is not None else 'n/a'} ({'passes' if passes else 'needs follow-up'})")
    next_actions = report.get("nextActions") if isinstance(report, dict) else None
    if isinstance(next_actions, list) and next_actions:
        print("Next actions:")
        for action in next_actions[:3]:
            print(f"  • {action}")
        if len(next_actions) > 3:
            print(f"  • …and {len(next_actions) - 3} more")
    print(f"JSON: {rel_json}")
    if markdown_path.is_file():
        print(f"Markdown: {rel_markdown}")
    print("───────────────────────────────────────────\n")


# ═══════════════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════════════

async def run(args: argparse.Namespace, env: Optional[Mapping[str, str]] = None) -> int:
    root = Path(args.root) if args.root else settings.paths.project_root
    project = ProjectContext(root=root, slug=args.project)

    if args.agent_help:
        return print_agent_help(project.registry, args.agent_help)

    store = WorkflowStateStore(project.root)

    if args.status:
        history_dir = load_self_iteration_options(project.root, env=env, cache=project.config_cache).history_dir
        snapshot = await build_workflow_snapshot(project, store, history_dir)
        print_status_report(snapshot)
        return ExitCode.SUCCESS

    if args.reset:
        if await store.reset():
            print("> Removed existing workflow state.")
        if not (args.resume or args.start):
            return ExitCode.SUCCESS

    state = await store.load()
    platform_info = detect_platform(env)
    options = extract_options(args)
    initialized = False

    if state is None:
        if not args.project:
            print("! Missing required option: --project <slug>")
            build_parser().print_usage()
            return ExitCode.USAGE_ERROR

        business_context = project.resolve(PATHS.BUSINESS_CONTEXT_MD)
        has_context = not options.get("skipBusinessContext") and business_context.is_file()
        state = create_initial_state(
            project_slug=args.project,
            platform=platform_info.platform,
            capabilities=platform_info.capabilities,
            brief_path=str((project.root / args.brief).resolve()) if args.brief else None,
            business_context_path=str(business_context) if has_context else None,
            options=options,
        )
        state = set_pending_agents(state, initial_pending_agents(project.registry, options))
        state = mark_status(state, WorkflowStatus.IN_PROGRESS)
        initialized = True
    else:
        if args.project and state.project_slug and args.project != state.project_slug:
            log("ORCHESTRATOR", f"⚠️ Workflow state belongs to {state.project_slug}; ignoring --project {args.project}")
        patch: Dict[str, Any] = {"options": merged_options(state, options)}
        if options.get("notes"):
            patch["notes"] = options["notes"]
        state = set_metadata(state, patch)

    state = apply_self_iteration_metadata(state, project, self_iteration_overrides(args), env)
    await store.save(state)
    if initialized:
        print(f"> Initialized workflow {state.workflow_id} for {state.project_slug}")

    project = project.with_slug(state.project_slug)
    scheduler = PhaseScheduler(
        project,
        store,
        platform_info,
        options=options,
        snapshots=ProjectSnapshotManager(project.root),
    )
    result = await scheduler.advance(state)

    if options.get("uxReview"):
        print_ux_review_summary(project, result.state.project_slug, options.get("uxReviewVariant"))
    return int(result.signal)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    run_cli(lambda: run(args), "Orchestrator")


if __name__ == "__main__":
    main()
