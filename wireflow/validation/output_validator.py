# wireflow/validation/output_validator.py
"""
Output Validator

Checks the declared outputs of one agent: existence, minimum size, JSON
parseability and required dotted key paths. All outputs of an agent are
checked concurrently and the failures aggregated into one report.

Issue codes:
- missing:<path>
- too-small:<path>
- invalid-json:<path>
- missing-key:<path>:<key>
- empty:<path>
- unknown-agent:<name>

Read-only: nothing here writes to disk.
"""
import asyncio
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from wireflow.agents.registry import OutputSpec
from wireflow.context import ProjectContext
from wireflow.core.logging import log


@dataclass
class OutputCheck:
    path: str
    issues: List[str] = field(default_factory=list)
    detail: Optional[Dict[str, Any]] = None


@dataclass
class ValidationReport:
    valid: bool
    issues: List[str] = field(default_factory=list)
    details: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "issues": list(self.issues), "details": dict(self.details)}


_MISSING = object()
_ITERATION_NUMBER = re.compile(r"(\d+)")


def has_nested_key(data: Any, dotted_key: str) -> bool:
    """Walk `a.b.c` through nested dicts; a None terminal counts as absent."""
    current = data
    for part in dotted_key.split("."):
        if not isinstance(current, dict):
            return False
        current = current.get(part, _MISSING)
        if current is _MISSING or current is None:
            return False
    return True


def _resolve_output_path(project: ProjectContext, output: OutputSpec, variant: Optional[str]) -> Path:
    """
    Absolute path of a declared output. Wildcard templates resolve to the
    highest-numbered match, or to the literal template when nothing matches.
    """
    candidate = project.resolve(output.path, variant)
    if "*" not in output.path:
        return candidate
    relative = candidate.relative_to(project.root).as_posix()
    matches = list(project.root.glob(relative))
    if not matches:
        return candidate

    def sort_key(path: Path):
        numbers = [int(n) for n in _ITERATION_NUMBER.findall(path.as_posix())]
        return numbers, path.as_posix()

    return sorted(matches, key=sort_key)[-1]


def _check_output_sync(project: ProjectContext, output: OutputSpec, variant: Optional[str]) -> OutputCheck:
    result = OutputCheck(path=output.path)
    abs_path = _resolve_output_path(project, output, variant)

    if not abs_path.is_file():
        if output.required:
            result.issues.append(f"missing:{output.path}")
        return result

    size = abs_path.stat().st_size
    detail: Dict[str, Any] = {"size": size}
    result.detail = detail

    if output.required and output.min_bytes and size < output.min_bytes:
        result.issues.append(f"too-small:{output.path}")

    if output.kind == "json":
        try:
            data = json.loads(abs_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            result.issues.append(f"invalid-json:{output.path}")
            detail["error"] = str(e)
        else:
            detail["parsed"] = True
            for key in output.required_keys:
                if not has_nested_key(data, key):
                    result.issues.append(f"missing-key:{output.path}:{key}")

    elif output.kind == "markdown":
        content = abs_path.read_text(encoding="utf-8", errors="replace")
        if not content.strip():
            result.issues.append(f"empty:{output.path}")

    return result


class OutputValidator:
    def __init__(self, project: ProjectContext):
        self.project = project

    async def validate(self, agent_name: str, variant: Optional[str] = None) -> ValidationReport:
        info = self.project.registry.get(agent_name)
        if info is None:
            return ValidationReport(valid=False, issues=[f"unknown-agent:{agent_name}"])

        checks = await asyncio.gather(*(
            asyncio.to_thread(_check_output_sync, self.project, output, variant)
            for output in info.outputs
        ))

        issues: List[str] = []
        details: Dict[str, Dict[str, Any]] = {}
        for check in checks:
            issues.extend(check.issues)
            if check.detail is not None:
                details[check.path] = check.detail

        report = ValidationReport(valid=not issues, issues=issues, details=details)
        log(
            "VALIDATOR",
            f"{'✅' if report.valid else '❌'} {agent_name}: "
            f"{len(info.outputs)} output(s), {len(issues)} issue(s)",
            project_id=self.project.slug,
        )
        return report

    def outputs_present(self, agent_name: str, variant: Optional[str] = None) -> bool:
        """True when every declared output file already exists."""
        info = self.project.registry.get(agent_name)
        if info is None:
            return False
        return all(
            _resolve_output_path(self.project, output, variant).is_file()
            for output in info.outputs
        )
