# wireflow/iteration/__init__.py
"""
Self-iteration - capture, review, validate and decide loop.
"""
from .budget import IterationBudget
from .fix_applier import FixResult, plan
from .quality_gate import check_quality_gate, evaluate_gate, review_passes
from .task_queue import FileTaskQueue, InMemoryTaskQueue, ReviewTask, TaskHandle, TaskQueue
from .controller import (
    IterationOutcome,
    IterationRecord,
    IterationState,
    IterationTarget,
    SelfIterationController,
    determine_initial_iteration,
)

__all__ = [
    "IterationBudget",
    "FixResult",
    "plan",
    "check_quality_gate",
    "evaluate_gate",
    "review_passes",
    "FileTaskQueue",
    "InMemoryTaskQueue",
    "ReviewTask",
    "TaskHandle",
    "TaskQueue",
    "IterationOutcome",
    "IterationRecord",
    "IterationState",
    "IterationTarget",
    "SelfIterationController",
    "determine_initial_iteration",
]
