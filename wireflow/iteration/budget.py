# wireflow/iteration/budget.py
"""
Iteration Budget

Bounds the self-iteration loop. Every captured-and-graded pass consumes one
iteration; the loop never runs more passes than `iterations_max`.
"""

from dataclasses import dataclass, field
from threading import RLock
from typing import Dict, Optional
from datetime import datetime, timezone

from wireflow.core.logging import log


# ═══════════════════════════════════════════════════════════════════
# ITERATION BUDGET
# ═══════════════════════════════════════════════════════════════════

@dataclass
class IterationBudget:
    """
    Budget for one self-iteration invocation.

    When exhausted, the loop stops with a diagnostic instead of retrying.
    """

    iterations_max: int = 2
    iterations_used: int = 0

    started_at: Optional[str] = None
    call_log: list = field(default_factory=list)

    _lock: RLock = field(default_factory=RLock)

    def __post_init__(self):
        if self.started_at is None:
            self.started_at = datetime.now(timezone.utc).isoformat()

    # ─────────────────────────────────────────────────────────
    # Remaining budget (read-only)
    # ─────────────────────────────────────────────────────────

    @property
    def remaining(self) -> int:
        with self._lock:
            return max(0, self.iterations_max - self.iterations_used)

    def can_iterate(self) -> bool:
        return self.remaining > 0

    def is_exhausted(self) -> bool:
        with self._lock:
            return self.iterations_used >= self.iterations_max

    # ─────────────────────────────────────────────────────────
    # Budget consumption (write)
    # ─────────────────────────────────────────────────────────

    def use_iteration(self, iteration: int, reason: str = "") -> bool:
        with self._lock:
            if self.iterations_used >= self.iterations_max:
                log("SELF-ITERATE", f"🛑 Iteration {iteration} DENIED - budget exhausted")
                return False

            self.iterations_used += 1
            self.call_log.append({
                "type": "iteration",
                "iteration": iteration,
                "reason": reason,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })

            log(
                "SELF-ITERATE",
                f"📊 Iteration {iteration} started: "
                f"{self.iterations_used}/{self.iterations_max}",
            )
            return True

    # ─────────────────────────────────────────────────────────
    # Status & Diagnostics
    # ─────────────────────────────────────────────────────────

    def get_status(self) -> Dict:
        with self._lock:
            return {
                "iterations": {
                    "used": self.iterations_used,
                    "max": self.iterations_max,
                    "remaining": self.remaining,
                },
                "exhausted": self.is_exhausted(),
                "started_at": self.started_at,
            }

    def get_exhaustion_diagnostic(self) -> str:
        status = self.get_status()

        lines = [
            "═══════════════════════════════════════════════════════",
            "🛑 ITERATION BUDGET EXHAUSTED",
            "═══════════════════════════════════════════════════════",
            "",
            f"Iterations: {status['iterations']['used']}/{status['iterations']['max']}",
            "",
            "Iterations run:",
        ]

        for op in self.call_log[-5:]:
            lines.append(f"  • iteration-{op['iteration']}: {op['reason'] or 'capture'}")

        lines.extend([
            "",
            "Raise --max-iterations or resolve the remaining issues manually.",
            "═══════════════════════════════════════════════════════",
        ])

        return "\n".join(lines)
