# tests/test_status.py
"""
Status report: artifact cards, open tasks and next steps.
"""
import os

import pytest

from wireflow.core.paths import PATHS
from wireflow.orchestration.state import create_initial_state, set_current_agent, set_pending_agents
from wireflow.orchestration.status import build_workflow_snapshot, print_status_report

from tests.conftest import write_agent_outputs, write_file


@pytest.mark.asyncio
async def test_empty_project(project, store):
    snapshot = await build_workflow_snapshot(project, store)

    assert not snapshot.has_state
    assert snapshot.status == "not_initialized"
    assert snapshot.artifacts["workflowState"].status == "missing"
    assert snapshot.artifacts["briefAnalysis"].status == "missing"
    assert "Generate brief analysis (brief-analyzer)." in snapshot.open_tasks
    assert snapshot.next_steps[0].command == "wireflow-orchestrate --project landing --prepare-prompts"
    assert snapshot.next_steps[-1].command == "wireflow-orchestrate --status"


@pytest.mark.asyncio
async def test_waiting_state_is_reported(project, store, temp_workspace, capsys):
    state = create_initial_state("landing")
    state = set_pending_agents(state, ["brief-analyzer", "wireframe-strategist"])
    state = set_current_agent(state, "brief-analyzer")
    await store.save(state)
    write_file(temp_workspace, PATHS.BRIEF_ANALYSIS_SUMMARY, "summary only")

    snapshot = await build_workflow_snapshot(project.with_slug(None), store)

    assert snapshot.project_slug == "landing"
    assert snapshot.current_agent == "brief-analyzer"
    assert snapshot.artifacts["briefAnalysis"].status == "partial"
    assert "Produce outputs for brief-analyzer (run is waiting on it)." in snapshot.open_tasks

    print_status_report(snapshot)
    out = capsys.readouterr().out
    assert "Waiting On    : brief-analyzer" in out
    assert "Pending Agents: wireframe-strategist" in out


@pytest.mark.asyncio
async def test_stale_business_context(project, store, temp_workspace):
    write_agent_outputs(temp_workspace, "business-context-gatherer")
    json_path = temp_workspace / PATHS.BUSINESS_CONTEXT_JSON
    md_path = temp_workspace / PATHS.BUSINESS_CONTEXT_MD
    os.utime(json_path, (1_000_000, 1_000_000))
    os.utime(md_path, (2_000_000, 2_000_000))

    snapshot = await build_workflow_snapshot(project, store)

    card = snapshot.artifacts["businessContext"]
    assert card.status == "stale"
    assert any("--force-business-context" in step.command for step in snapshot.next_steps)


@pytest.mark.asyncio
async def test_ux_review_and_ui_validation_cards(project, store, temp_workspace):
    for agent in ("brief-analyzer", "wireframe-strategist", "business-context-validator"):
        write_agent_outputs(temp_workspace, agent)
    write_file(temp_workspace, f"{PATHS.UX_REVIEW}/landing/index.json", {"grade": {"overall": 70}, "passes": True})
    write_file(temp_workspace, f"{PATHS.SELF_ITERATION}/landing/iteration-1/validation.json", {"valid": False})

    snapshot = await build_workflow_snapshot(project, store)

    ux = snapshot.artifacts["uxReview"]
    assert ux.status == "ready"
    assert ux.note == "Latest grade 70.0 (needs follow-up)"
    assert snapshot.artifacts["uiValidation"].note == "Iteration iteration-1."
    assert any("Address open UX review findings" in task for task in snapshot.open_tasks)
    assert snapshot.next_steps[0].command == "wireflow-orchestrate --project landing --ux-review"
