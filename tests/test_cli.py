# tests/test_cli.py
"""
Command-line entry points and their exit codes.

0 done, 1 usage/environment error, 2 pending external input, 3 validation failed.
"""
import json
from unittest.mock import AsyncMock, patch

import pytest

from wireflow.cli import orchestrate, self_iterate
from wireflow.core.paths import PATHS
from wireflow.orchestration.scheduler import ExitCode
from wireflow.sandbox.dev_server import DevServer

from tests.conftest import FakeToolClient, write_file


def _orchestrate_args(root, *argv):
    return orchestrate.build_parser().parse_args([*argv, "--root", str(root)])


def _state(root):
    return json.loads((root / PATHS.WORKFLOW_STATE).read_text(encoding="utf-8"))


# ════════════════════════════════════════════════════════════════════
# ORCHESTRATE
# ════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_first_run_waits_on_first_agent(temp_workspace):
    code = await orchestrate.run(_orchestrate_args(temp_workspace, "--project", "landing"), env={})

    assert code == ExitCode.PENDING_INPUT
    state = _state(temp_workspace)
    assert state["status"] == "in_progress"
    assert state["currentAgent"] == "business-context-gatherer"
    assert state["pendingAgents"] == [
        "brief-analyzer",
        "visual-ux-advisor",
        "variant-differentiator",
        "wireframe-strategist",
        "business-context-validator",
        "prompt-generator",
    ]
    assert state["metadata"]["selfIteration"]["resolved"]["maxIterations"] == 2
    assert (temp_workspace / PATHS.SNAPSHOTS / "landing").is_dir()


@pytest.mark.asyncio
async def test_new_workflow_requires_project(temp_workspace):
    code = await orchestrate.run(_orchestrate_args(temp_workspace), env={})
    assert code == ExitCode.USAGE_ERROR
    assert not (temp_workspace / PATHS.WORKFLOW_STATE).exists()


@pytest.mark.asyncio
async def test_validation_failure_exit_code(temp_workspace):
    write_file(temp_workspace, PATHS.BRIEF_ANALYSIS, {"projectOverview": {}})
    write_file(temp_workspace, PATHS.BRIEF_ANALYSIS_SUMMARY, "summary")

    args = _orchestrate_args(temp_workspace, "--project", "landing", "--skip-business-context")
    assert await orchestrate.run(args, env={}) == ExitCode.VALIDATION_FAILED
    assert _state(temp_workspace)["status"] == "validation_failed"


@pytest.mark.asyncio
async def test_self_iteration_overrides_persist(temp_workspace):
    await orchestrate.run(
        _orchestrate_args(temp_workspace, "--project", "landing", "--self-iteration", "--max-iterations", "4"),
        env={},
    )
    await orchestrate.run(_orchestrate_args(temp_workspace), env={})

    meta = _state(temp_workspace)["metadata"]["selfIteration"]
    assert meta["overrides"] == {"enabled": True, "maxIterations": 4}
    assert meta["resolved"]["enabled"] is True
    assert meta["resolved"]["maxIterations"] == 4
    assert meta["lastInvocationOverrides"] is None
    assert meta["source"]["configPath"] == PATHS.CONFIG_FILE


@pytest.mark.asyncio
async def test_reset_without_resume_stops(temp_workspace):
    await orchestrate.run(_orchestrate_args(temp_workspace, "--project", "landing"), env={})
    code = await orchestrate.run(_orchestrate_args(temp_workspace, "--reset"), env={})
    assert code == ExitCode.SUCCESS
    assert not (temp_workspace / PATHS.WORKFLOW_STATE).exists()


@pytest.mark.asyncio
async def test_agent_help_and_status(temp_workspace, capsys):
    assert await orchestrate.run(_orchestrate_args(temp_workspace, "--agent-help", "ghost"), env={}) == 1
    assert await orchestrate.run(_orchestrate_args(temp_workspace, "--agent-help", "brief-analyzer"), env={}) == 0
    assert await orchestrate.run(_orchestrate_args(temp_workspace, "--status", "--project", "landing"), env={}) == 0

    out = capsys.readouterr().out
    assert "Agent: Brief Analyzer" in out
    assert "Workflow Snapshot" in out


def test_bad_flags_exit_with_usage_code():
    with pytest.raises(SystemExit) as exc:
        orchestrate.build_parser().parse_args(["--max-iterations", "many"])
    assert exc.value.code == ExitCode.USAGE_ERROR


def test_only_given_flags_become_options(temp_workspace):
    args = _orchestrate_args(temp_workspace, "--skip-visual", "--notes", "hello")
    assert orchestrate.extract_options(args) == {"skipVisual": True, "notes": "hello"}


# ════════════════════════════════════════════════════════════════════
# SELF-ITERATE
# ════════════════════════════════════════════════════════════════════

def _self_iterate_args(root, *argv):
    return self_iterate.build_parser().parse_args([
        "--project", "landing", "--root", str(root), "--non-interactive", "--snapshot-delay-ms", "0", *argv,
    ])


def test_missing_project_exits_1(temp_workspace):
    with pytest.raises(SystemExit) as exc:
        self_iterate.main(["--project", "ghost", "--root", str(temp_workspace), "--non-interactive"])
    assert exc.value.code == ExitCode.USAGE_ERROR


@pytest.mark.asyncio
async def test_no_bridge_endpoint_exits_1(temp_workspace):
    assert await self_iterate.run(_self_iterate_args(temp_workspace), env={}) == ExitCode.USAGE_ERROR


@pytest.mark.asyncio
async def test_pending_review_exits_2(temp_workspace):
    client = FakeToolClient()
    with patch("wireflow.cli.self_iterate.create_tool_client", return_value=client), \
         patch("wireflow.cli.self_iterate.ensure_dev_server", AsyncMock(return_value=DevServer(8080))):
        code = await self_iterate.run(_self_iterate_args(temp_workspace, "--variant", "b"), env={})

    assert code == ExitCode.PENDING_INPUT
    assert client.closed
    iteration_dir = temp_workspace / PATHS.SELF_ITERATION / "landing" / "iteration-1"
    assert (iteration_dir / "ux-review.prompt.md").is_file()
    context = json.loads((iteration_dir / "ux-review-context.json").read_text(encoding="utf-8"))
    assert context["variant"] == "b"
    assert context["targetUrl"] == "http://127.0.0.1:8080/landing"


def test_target_resolution(project):
    metadata = {"routes": {"index": "/landing"}, "variants": {"a": {}, "b": {}}}
    target = self_iterate.resolve_target(project, metadata, 9000, "/landing/a", None)
    assert target.variant == "a"
    assert target.target_url == "http://127.0.0.1:9000/landing/a"
    assert target.brief_path.name == "brief.txt"
    assert target.business_context_path is None
