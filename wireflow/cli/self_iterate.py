# wireflow/cli/self_iterate.py
"""
wireflow-self-iterate

Captures the rendered project, collects UX review and validation reports and
decides whether to iterate again. Exit codes: 0 loop stopped, 1 usage or
environment error, 2 waiting on a review or validation report.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from wireflow.capture.tool_client import create_tool_client
from wireflow.cli.common import WireflowArgumentParser, run_cli
from wireflow.context import ProjectContext
from wireflow.core.config import SelfIterationOptions, load_self_iteration_options, settings
from wireflow.core.logging import log
from wireflow.core.paths import PATHS, to_display
from wireflow.iteration.controller import IterationTarget, SelfIterationController
from wireflow.iteration.history import (
    infer_variant_from_path,
    normalize_route,
    resolve_history_root,
    sanitize_variant_key,
)
from wireflow.orchestration.scheduler import ExitCode
from wireflow.sandbox.cleanup import CleanupStack
from wireflow.sandbox.dev_server import base_url, ensure_dev_server


def build_parser() -> argparse.ArgumentParser:
    parser = WireflowArgumentParser(
        prog="wireflow-self-iterate",
        description="Self-iteration loop: capture, review, validate, decide.",
    )
    parser.add_argument("--project", required=True, help="Target wireframe project")
    parser.add_argument("--max-iterations", type=int, help="Override max iteration count")
    parser.add_argument("--auto-fix", action=argparse.BooleanOptionalAction, default=None,
                        help="Enable or disable automatic fix attempts")
    parser.add_argument("--dry-run", action="store_true", help="Plan fixes without applying patches")
    parser.add_argument("--dev-server-port", type=int, help="Override dev server port")
    parser.add_argument("--reuse-dev-server", action="store_true",
                        help="Assume the dev server is running; fail if unreachable")
    parser.add_argument("--force-new-iteration", action="store_true",
                        help="Always create a new iteration directory")
    parser.add_argument("--wait-for-validation", action="store_true",
                        help="Wait for report files before exiting")
    parser.add_argument("--validation-timeout-ms", type=int,
                        help="Max wait when --wait-for-validation is set")
    parser.add_argument("--target-path", help="Navigation path (default: metadata routes.index)")
    parser.add_argument("--variant", help="Variant key for UX review outputs (default: index)")
    parser.add_argument("--snapshot-delay-ms", type=int, help="Delay after navigation before capture")
    parser.add_argument("--history-dir", help="History output directory, relative to the root")
    parser.add_argument("--refresh-artifacts", action="store_true",
                        help="Re-capture even when the previous iteration is incomplete")
    parser.add_argument("--no-auto-bridge", action="store_true",
                        help="Never start a tool bridge (an endpoint must be configured)")
    parser.add_argument("--grade-threshold", type=int, help="Passing UX grade (0-100)")
    parser.add_argument("--non-interactive", action="store_true", help="Skip interactive prompts")
    parser.add_argument("--root", help="Project root (default: WIREFLOW_ROOT or cwd)")
    return parser


def collect_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.max_iterations is not None:
        overrides["max_iterations"] = args.max_iterations
    if args.auto_fix is not None:
        overrides["auto_fix"] = args.auto_fix
    if args.snapshot_delay_ms is not None:
        overrides["snapshot_delay_ms"] = args.snapshot_delay_ms
    if args.history_dir:
        overrides["history_dir"] = args.history_dir
    if args.dev_server_port is not None:
        overrides["dev_server_port"] = args.dev_server_port
    if args.grade_threshold is not None:
        overrides["grade_threshold"] = args.grade_threshold
    return overrides


async def prompt_missing_options(
    args: argparse.Namespace,
    overrides: Dict[str, Any],
    resolved: SelfIterationOptions,
) -> Dict[str, Any]:
    """Ask for auto-fix and threshold on a TTY when they were not passed."""
    overrides = dict(overrides)
    if args.auto_fix is None:
        answer = await asyncio.to_thread(input, "Enable auto-fix for issues? (yes/no) [no]: ")
        if answer.strip().lower() == "yes":
            overrides["auto_fix"] = True
    if args.grade_threshold is None:
        answer = await asyncio.to_thread(
            input, f"Passing grade threshold? (0-100) [{resolved.grade_threshold}]: "
        )
        try:
            parsed = int(answer.strip())
        except ValueError:
            parsed = None
        if parsed is not None and 0 <= parsed <= 100:
            overrides["grade_threshold"] = parsed
    return overrides


def resolve_target(
    project: ProjectContext,
    metadata: Mapping[str, Any],
    port: int,
    target_path: Optional[str],
    variant: Optional[str],
) -> IterationTarget:
    slug = project.slug
    routes = metadata.get("routes") if isinstance(metadata.get("routes"), dict) else {}
    route = normalize_route(target_path or routes.get("index") or f"/{slug}")
    variant_key = sanitize_variant_key(variant or infer_variant_from_path(metadata, route) or "index")

    brief_path = project.wireframe_dir / "brief.txt"
    business_context = project.root / PATHS.BUSINESS_CONTEXT_JSON
    return IterationTarget(
        slug=slug,
        variant=variant_key,
        target_url=f"{base_url(port)}{route}",
        metadata_path=project.wireframe_dir / "metadata.json",
        brief_path=brief_path if brief_path.is_file() else None,
        business_context_path=business_context if business_context.is_file() else None,
    )


async def run(args: argparse.Namespace, env: Optional[Mapping[str, str]] = None) -> int:
    root = Path(args.root) if args.root else settings.paths.project_root
    project = ProjectContext(root=root, slug=args.project)

    project_dir = project.wireframe_dir
    if not project_dir.is_dir():
        print(f"! Project directory not found: {to_display(project_dir, project.root)}")
        return ExitCode.USAGE_ERROR

    metadata_path = project_dir / "metadata.json"
    if not metadata_path.is_file():
        print(f"! metadata.json missing for project {args.project}")
        return ExitCode.USAGE_ERROR
    if not (project_dir / "brief.txt").is_file():
        print(f"⚠ brief.txt missing for {args.project}. Validator will run without brief context.")

    try:
        metadata = json.loads(await asyncio.to_thread(metadata_path.read_text, encoding="utf-8"))
    except ValueError as e:
        print(f"! metadata.json for {args.project} is not valid JSON: {e}")
        return ExitCode.USAGE_ERROR
    if not isinstance(metadata, dict):
        metadata = {}

    overrides = collect_overrides(args)
    options = load_self_iteration_options(project.root, overrides, env=env, cache=project.config_cache)
    if sys.stdin.isatty() and not args.non_interactive:
        overrides = await prompt_missing_options(args, overrides, options)
        options = load_self_iteration_options(project.root, overrides, env=env, cache=project.config_cache)

    client = create_tool_client(env=env)
    if client is None:
        print("! No tool bridge endpoint detected. Set MCP_HTTP_ENDPOINT (or MCP_ENDPOINT / "
              "CHROME_DEVTOOLS_MCP_ENDPOINT) before running self-iterate.")
        return ExitCode.USAGE_ERROR
    if args.no_auto_bridge:
        log("SELF-ITERATE", f"Using configured tool bridge at {client.endpoint}")

    target = resolve_target(project, metadata, options.dev_server_port, args.target_path, args.variant)
    history_root = resolve_history_root(options.history_dir, project.root)
    wait_ms = 0
    if args.wait_for_validation:
        wait_ms = args.validation_timeout_ms if args.validation_timeout_ms is not None else settings.iteration.default_wait_ms

    async with CleanupStack() as cleanup:
        cleanup.push(client.close, "tool client")
        server = await ensure_dev_server(options.dev_server_port, args.reuse_dev_server, cwd=project.root)
        if server.started:
            cleanup.push(server.stop, "dev server")

        controller = SelfIterationController(
            project,
            options,
            client,
            target,
            history_root=history_root,
            wait_timeout_ms=wait_ms,
            force_new=args.force_new_iteration,
            refresh_artifacts=args.refresh_artifacts,
            dry_run=args.dry_run,
        )
        outcome = await controller.run()

    if outcome.pending:
        return ExitCode.PENDING_INPUT
    log("SELF-ITERATE", f"Self-iteration stopped at iteration {outcome.iteration} ({outcome.decision})")
    return ExitCode.SUCCESS


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    run_cli(lambda: run(args), "Self-iteration")


if __name__ == "__main__":
    main()
