# wireflow/core/paths.py
"""
Relative path constants for agent outputs and context files.

All paths are POSIX-style and relative to the project root; they double as
the identifiers used in validation issue codes.
"""
from pathlib import Path
from typing import Optional


TEMP_AGENT_OUTPUTS = "context/temp-agent-outputs"


class PATHS:
    TEMP_AGENT_OUTPUTS = TEMP_AGENT_OUTPUTS
    SELF_ITERATION = f"{TEMP_AGENT_OUTPUTS}/self-iteration"
    UX_REVIEW = f"{TEMP_AGENT_OUTPUTS}/ux-review"
    PROMPTS = f"{TEMP_AGENT_OUTPUTS}/prompts"

    WORKFLOW_STATE = f"{TEMP_AGENT_OUTPUTS}/workflow-state.json"

    BUSINESS_CONTEXT_MD = "context/BUSINESS-CONTEXT.md"
    BUSINESS_CONTEXT_JSON = f"{TEMP_AGENT_OUTPUTS}/business-context.json"
    BUSINESS_CONTEXT_VALIDATION = f"{TEMP_AGENT_OUTPUTS}/business-context-validation.json"
    BUSINESS_CONTEXT_VALIDATION_MD = f"{TEMP_AGENT_OUTPUTS}/business-context-validation.md"

    BRIEF_ANALYSIS = f"{TEMP_AGENT_OUTPUTS}/brief-analysis.json"
    BRIEF_ANALYSIS_SUMMARY = f"{TEMP_AGENT_OUTPUTS}/brief-analysis-summary.md"

    WIREFRAME_STRATEGY = f"{TEMP_AGENT_OUTPUTS}/wireframe-strategy.json"
    WIREFRAME_STRATEGY_SUMMARY = f"{TEMP_AGENT_OUTPUTS}/wireframe-strategy-summary.md"

    VISUAL_GUIDANCE = f"{TEMP_AGENT_OUTPUTS}/visual-guidance.json"
    VARIANT_STRATEGY = f"{TEMP_AGENT_OUTPUTS}/variant-strategy.json"

    FINAL_PROMPT = f"{TEMP_AGENT_OUTPUTS}/final-prompt.md"

    TRANSCRIBE = f"{TEMP_AGENT_OUTPUTS}/transcribe.json"
    ITERATE_PLAN = f"{TEMP_AGENT_OUTPUTS}/iterate-plan.json"

    SNAPSHOTS = "context/temp/snapshots"
    WORKFLOW_GUIDE = "AGENT-WORKFLOWS.md"
    CONFIG_FILE = "wireframe.config.json"


def fill_placeholders(template: str, slug: Optional[str] = None, variant: Optional[str] = None) -> str:
    """Substitute <slug>/<project>/<variant> placeholders in an output path template."""
    result = template
    if slug:
        result = result.replace("<slug>", slug).replace("<project>", slug)
    if variant:
        result = result.replace("<variant>", variant)
    return result


def project_wireframe_dir(root: Path, slug: str) -> Path:
    """Source directory of a wireframe project."""
    return root / "src" / "wireframes" / slug


def to_display(path: Path, root: Path) -> str:
    """Render a path relative to the project root when possible."""
    try:
        return Path(path).resolve().relative_to(Path(root).resolve()).as_posix()
    except ValueError:
        return Path(path).as_posix()
