# tests/test_budget.py
"""
Iteration budget hard cap.
"""
from wireflow.iteration.budget import IterationBudget


def test_budget_denies_past_max():
    budget = IterationBudget(iterations_max=2)
    assert budget.use_iteration(1, "capture")
    assert budget.use_iteration(2, "capture")
    assert not budget.use_iteration(3, "capture")

    assert budget.iterations_used == 2
    assert budget.is_exhausted()
    assert not budget.can_iterate()
    assert budget.remaining == 0


def test_status_and_diagnostic():
    budget = IterationBudget(iterations_max=1)
    budget.use_iteration(4, "reuse")

    status = budget.get_status()
    assert status["iterations"] == {"used": 1, "max": 1, "remaining": 0}
    assert status["exhausted"] is True

    diagnostic = budget.get_exhaustion_diagnostic()
    assert "ITERATION BUDGET EXHAUSTED" in diagnostic
    assert "iteration-4: reuse" in diagnostic
