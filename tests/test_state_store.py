# tests/test_state_store.py
"""
Workflow state transitions and the on-disk store.
"""
import json

import pytest

from wireflow.core.exceptions import StateError
from wireflow.core.paths import PATHS
from wireflow.orchestration.state import (
    CompletedAgent,
    WorkflowStatus,
    append_completed_agent,
    create_initial_state,
    mark_complete,
    set_current_agent,
    set_metadata,
    set_pending_agents,
)


# ════════════════════════════════════════════════════════════════════
# TRANSITIONS
# ════════════════════════════════════════════════════════════════════

def test_transitions_do_not_mutate_input():
    state = create_initial_state("landing", options={"notes": "hi"})
    updated = set_pending_agents(state, ["a", "b"])
    assert state.pending_agents == []
    assert updated.pending_agents == ["a", "b"]


def test_initial_state_records_options_and_trigger():
    state = create_initial_state("landing", platform="codex", options={"notes": "first run", "userName": "sam"})
    assert state.workflow_id.startswith("wf_")
    assert state.status == WorkflowStatus.INITIALIZING
    assert state.metadata["triggerSource"] == "cli"
    assert state.metadata["userName"] == "sam"
    assert state.metadata["options"]["notes"] == "first run"


def test_completed_agent_leaves_pending_and_current():
    state = set_pending_agents(create_initial_state("landing"), ["a", "b"])
    state = set_current_agent(state, "a")
    assert state.pending_agents == ["b"]

    state = append_completed_agent(state, CompletedAgent(name="a"))
    assert state.current_agent is None
    assert state.completed_names() == ["a"]
    assert "a" not in state.pending_agents


def test_pending_never_includes_completed():
    state = append_completed_agent(create_initial_state("landing"), CompletedAgent(name="a"))
    state = set_pending_agents(state, ["a", "b"])
    assert state.pending_agents == ["b"]


def test_mark_complete_clears_queue():
    state = set_pending_agents(create_initial_state("landing"), ["a"])
    state = mark_complete(state)
    assert state.status == WorkflowStatus.COMPLETED
    assert state.pending_agents == []
    assert state.end_time is not None


def test_set_metadata_is_shallow_merge():
    state = set_metadata(create_initial_state("landing"), {"notes": "x", "extra": {"a": 1}})
    state = set_metadata(state, {"extra": {"b": 2}})
    assert state.metadata["notes"] == "x"
    assert state.metadata["extra"] == {"b": 2}


# ════════════════════════════════════════════════════════════════════
# STORE
# ════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_load_missing_returns_none(store):
    assert await store.load() is None


@pytest.mark.asyncio
async def test_save_and_load_round_trip_uses_camel_case(store, temp_workspace):
    state = set_pending_agents(create_initial_state("landing"), ["brief-analyzer"])
    await store.save(state)

    raw = json.loads((temp_workspace / PATHS.WORKFLOW_STATE).read_text(encoding="utf-8"))
    assert raw["projectSlug"] == "landing"
    assert raw["pendingAgents"] == ["brief-analyzer"]
    assert not (temp_workspace / (PATHS.WORKFLOW_STATE + ".tmp")).exists()

    loaded = await store.load()
    assert loaded.workflow_id == state.workflow_id
    assert loaded.pending_agents == ["brief-analyzer"]


@pytest.mark.asyncio
async def test_deferred_save_waits_for_flush(store, temp_workspace):
    state = create_initial_state("landing")
    await store.save(state, immediate=False)
    assert store.has_pending()
    assert not (temp_workspace / PATHS.WORKFLOW_STATE).exists()

    assert await store.flush() is True
    assert (temp_workspace / PATHS.WORKFLOW_STATE).exists()
    assert await store.flush() is False


@pytest.mark.asyncio
async def test_unreadable_state_raises(store, temp_workspace):
    (temp_workspace / PATHS.WORKFLOW_STATE).write_text("{not json", encoding="utf-8")
    with pytest.raises(StateError):
        await store.load()


@pytest.mark.asyncio
async def test_reset_reports_whether_file_existed(store):
    assert await store.reset() is False
    await store.save(create_initial_state("landing"))
    assert await store.reset() is True
    assert await store.load() is None


@pytest.mark.asyncio
async def test_undecodable_state_raises_state_error(store, temp_workspace):
    (temp_workspace / PATHS.WORKFLOW_STATE).write_bytes(b'{"projectSlug": "\xff\xfe"}')
    with pytest.raises(StateError):
        await store.load()
