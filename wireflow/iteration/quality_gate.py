# wireflow/iteration/quality_gate.py
"""
Quality gate - decides whether the self-iteration loop continues.

Order of checks:
1. UX review below threshold -> stop (never applies fixes)
2. Validation report valid, or shouldContinue explicitly false -> stop
3. Auto-fix disabled -> stop
4. Otherwise the caller attempts fixes and continues only if any applied
"""
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


DEFAULT_GRADE_THRESHOLD = 80

# Decision outcomes
STOP_REVIEW_FAILED = "review-failed"
STOP_VALID = "valid"
STOP_SHOULD_NOT_CONTINUE = "should-not-continue"
STOP_AUTO_FIX_DISABLED = "auto-fix-disabled"
STOP_NO_FIXES_APPLIED = "no-fixes-applied"
ATTEMPT_FIXES = "attempt-fixes"
CONTINUE = "continue"


def review_grade(report: Optional[Dict[str, Any]]) -> Optional[float]:
    """Numeric `grade.overall`, or None when absent or not a number."""
    if not isinstance(report, dict):
        return None
    grade = report.get("grade")
    if not isinstance(grade, dict):
        return None
    value = grade.get("overall")
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def review_passes(report: Optional[Dict[str, Any]], threshold: float = DEFAULT_GRADE_THRESHOLD) -> bool:
    """A numeric grade decides; the `passes` flag only counts without one."""
    grade = review_grade(report)
    if grade is not None:
        return grade >= threshold
    return isinstance(report, dict) and report.get("passes") is True


@dataclass(frozen=True)
class GateDecision:
    outcome: str
    reason: str

    @property
    def should_stop(self) -> bool:
        return self.outcome != ATTEMPT_FIXES


def check_quality_gate(
    ux_report: Optional[Dict[str, Any]],
    validation_report: Dict[str, Any],
    auto_fix: bool,
    grade_threshold: float = DEFAULT_GRADE_THRESHOLD,
) -> Tuple[bool, str]:
    """
    Check whether the loop must stop before attempting fixes.

    Returns: (should_stop, reason)
    """
    decision = evaluate_gate(ux_report, validation_report, auto_fix, grade_threshold)
    return decision.should_stop, decision.reason


def evaluate_gate(
    ux_report: Optional[Dict[str, Any]],
    validation_report: Dict[str, Any],
    auto_fix: bool,
    grade_threshold: float = DEFAULT_GRADE_THRESHOLD,
) -> GateDecision:
    if not review_passes(ux_report, grade_threshold):
        grade = review_grade(ux_report)
        grade_text = f"{grade:.1f}" if grade is not None else "n/a"
        return GateDecision(
            STOP_REVIEW_FAILED,
            f"UX review grade {grade_text} below threshold ({grade_threshold}). "
            "Apply recommendations before rerunning self-iterate.",
        )

    if validation_report.get("valid") is True:
        return GateDecision(STOP_VALID, "Validation passed.")

    if validation_report.get("shouldContinue") is False:
        return GateDecision(STOP_SHOULD_NOT_CONTINUE, "Validator requested the loop to stop.")

    if not auto_fix:
        return GateDecision(
            STOP_AUTO_FIX_DISABLED,
            "Auto-fix disabled. Resolve issues listed above and rerun self-iterate when ready.",
        )

    return GateDecision(ATTEMPT_FIXES, "")


def compute_issue_stats(issues: Any) -> Dict[str, int]:
    issues = issues if isinstance(issues, list) else []
    stats = {"total": len(issues), "critical": 0, "major": 0, "minor": 0, "suggestion": 0}
    for issue in issues:
        severity = str((issue or {}).get("severity") or "").lower() if isinstance(issue, dict) else ""
        if severity in stats and severity != "total":
            stats[severity] += 1
    return stats
