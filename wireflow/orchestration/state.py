# wireflow/orchestration/state.py
"""
Workflow state model and its pure transitions.

Every transition returns a new WorkflowState; the input is never mutated.
On disk the document uses camelCase keys (`model_dump(by_alias=True)`).
"""
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class WorkflowStatus(str, Enum):
    INITIALIZING = "initializing"
    IN_PROGRESS = "in_progress"
    VALIDATION_FAILED = "validation_failed"
    COMPLETED = "completed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class CompletedAgent(_CamelModel):
    name: str
    completed_at: str = Field(default_factory=utc_now_iso)
    output_path: Optional[str] = None
    success: bool = True
    validation_passed: bool = True


class ErrorRecord(_CamelModel):
    agent_name: str
    timestamp: str = Field(default_factory=utc_now_iso)
    error: str
    validation_failures: List[str] = Field(default_factory=list)


class ContextFiles(_CamelModel):
    business_context: Optional[str] = None
    brief: Optional[str] = None
    brief_analysis: Optional[str] = None


class WorkflowState(_CamelModel):
    """
    Persisted state of one project's workflow.

    Invariants:
    - pending_agents never names an agent already in completed_agents
    - status == completed implies pending_agents is empty
    """
    workflow_id: str
    project_slug: Optional[str] = None
    platform: str = "unknown"
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    status: WorkflowStatus = WorkflowStatus.INITIALIZING
    current_phase: str = "init"
    current_agent: Optional[str] = None
    completed_agents: List[CompletedAgent] = Field(default_factory=list)
    pending_agents: List[str] = Field(default_factory=list)
    errors: List[ErrorRecord] = Field(default_factory=list)
    context_files: ContextFiles = Field(default_factory=ContextFiles)
    start_time: str = Field(default_factory=utc_now_iso)
    end_time: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def completed_names(self) -> List[str]:
        return [entry.name for entry in self.completed_agents]

    def is_completed(self, agent_name: str) -> bool:
        return any(entry.name == agent_name for entry in self.completed_agents)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json_dict(cls, data: Mapping[str, Any]) -> "WorkflowState":
        return cls.model_validate(data)


# ═══════════════════════════════════════════════════════════════════
# TRANSITIONS
# ═══════════════════════════════════════════════════════════════════

def new_workflow_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"wf_{now.strftime('%Y%m%d')}_{now.strftime('%H%M%S')}"


def create_initial_state(
    project_slug: Optional[str],
    platform: str = "unknown",
    capabilities: Optional[Dict[str, Any]] = None,
    brief_path: Optional[str] = None,
    business_context_path: Optional[str] = None,
    options: Optional[Dict[str, Any]] = None,
) -> WorkflowState:
    options = dict(options or {})
    return WorkflowState(
        workflow_id=new_workflow_id(),
        project_slug=project_slug,
        platform=platform,
        capabilities=dict(capabilities or {}),
        context_files=ContextFiles(
            business_context=business_context_path or None,
            brief=brief_path or None,
        ),
        metadata={
            "triggerSource": "cli",
            "userName": options.get("userName") or os.getenv("USER") or os.getenv("USERNAME"),
            "notes": options.get("notes"),
            "options": options,
        },
    )


def update_phase(state: WorkflowState, phase: str) -> WorkflowState:
    return state.model_copy(update={"current_phase": phase})


def mark_status(state: WorkflowState, status: WorkflowStatus) -> WorkflowState:
    return state.model_copy(update={"status": WorkflowStatus(status)})


def append_completed_agent(state: WorkflowState, entry: CompletedAgent) -> WorkflowState:
    return state.model_copy(update={
        "completed_agents": [*state.completed_agents, entry],
        "pending_agents": [name for name in state.pending_agents if name != entry.name],
        "current_agent": None if state.current_agent == entry.name else state.current_agent,
    })


def set_pending_agents(state: WorkflowState, pending: List[str]) -> WorkflowState:
    completed = set(state.completed_names())
    return state.model_copy(update={
        "pending_agents": [name for name in pending if name not in completed],
    })


def set_metadata(state: WorkflowState, metadata: Mapping[str, Any]) -> WorkflowState:
    """Shallow merge into state.metadata."""
    return state.model_copy(update={"metadata": {**state.metadata, **metadata}})


def set_context_file(state: WorkflowState, key: str, path: Optional[str]) -> WorkflowState:
    context_files = state.context_files.model_copy(update={key: path})
    return state.model_copy(update={"context_files": context_files})


def push_error(state: WorkflowState, error: ErrorRecord) -> WorkflowState:
    return state.model_copy(update={"errors": [*state.errors, error]})


def mark_complete(state: WorkflowState) -> WorkflowState:
    return state.model_copy(update={
        "status": WorkflowStatus.COMPLETED,
        "current_phase": "complete",
        "end_time": utc_now_iso(),
        "pending_agents": [],
        "current_agent": None,
    })


def set_current_agent(state: WorkflowState, agent_name: Optional[str]) -> WorkflowState:
    """The agent whose outputs the run is waiting on; it leaves the pending queue."""
    return state.model_copy(update={
        "current_agent": agent_name,
        "pending_agents": [name for name in state.pending_agents if name != agent_name],
    })
