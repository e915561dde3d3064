# wireflow/orchestration/__init__.py
"""
Orchestration - workflow state, phase scheduling and enrichment decisions.
"""
from .state import WorkflowState, WorkflowStatus, create_initial_state
from .state_store import WorkflowStateStore
from .enrichment import EnrichmentDecisionEngine, Scorer, ScoreResult, VariantScorer, VisualScorer
from .scheduler import ExitCode, PhaseScheduler, SchedulerResult
from .checkpoint import ProjectSnapshotManager

__all__ = [
    # State
    "WorkflowState",
    "WorkflowStatus",
    "create_initial_state",
    "WorkflowStateStore",
    # Enrichment
    "EnrichmentDecisionEngine",
    "Scorer",
    "ScoreResult",
    "VariantScorer",
    "VisualScorer",
    # Scheduling
    "ExitCode",
    "PhaseScheduler",
    "SchedulerResult",
    "ProjectSnapshotManager",
]
