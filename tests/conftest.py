# tests/conftest.py
"""
Shared pytest fixtures for wireflow tests.

Provides:
- Temporary project roots with a wireframe project on disk
- Brief analysis documents (rich and sparse)
- Writers for valid agent outputs
- A fake tool bridge client
"""
import base64
import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from wireflow.context import ProjectContext
from wireflow.core.config import resolve_configuration
from wireflow.core.paths import PATHS
from wireflow.orchestration.state_store import WorkflowStateStore


PROJECT_SLUG = "landing"

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


# ═══════════════════════════════════════════════════════
# FAKE TOOL CLIENT
# ═══════════════════════════════════════════════════════

class FakeToolClient:
    """
    In-process stand-in for the tool bridge.

    `responses` maps tool name → result; a value that is an Exception
    instance is raised instead.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.endpoint = "http://bridge.test"
        self.responses = {
            "chrome-devtools__navigate_page": {"ok": True},
            "chrome-devtools__take_snapshot": {"nodes": [{"role": "main"}, {"role": "heading"}]},
            "chrome-devtools__take_screenshot": {"data": base64.b64encode(PNG_BYTES).decode("ascii")},
            "chrome-devtools__list_console_messages": [{"level": "info", "text": "ready"}],
        }
        self.responses.update(responses or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.closed = False

    async def call(self, tool: str, params: Optional[Dict[str, Any]] = None, timeout_ms: Optional[int] = None):
        self.calls.append((tool, params or {}))
        result = self.responses.get(tool)
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True

    def tools_called(self) -> List[str]:
        return [tool for tool, _ in self.calls]


# ═══════════════════════════════════════════════════════
# FIXTURES - Project Setup
# ═══════════════════════════════════════════════════════

@pytest.fixture
def temp_workspace():
    """Create a temporary project root with one wireframe project."""
    temp_dir = tempfile.mkdtemp(prefix="wireflow_test_")
    workspace = Path(temp_dir)

    project_dir = workspace / "src" / "wireframes" / PROJECT_SLUG
    project_dir.mkdir(parents=True)
    (project_dir / "metadata.json").write_text(json.dumps({
        "slug": PROJECT_SLUG,
        "routes": {"index": f"/{PROJECT_SLUG}"},
        "variants": {"a": {}, "b": {}},
    }, indent=2), encoding="utf-8")
    (project_dir / "brief.txt").write_text("A landing page for a coffee subscription.", encoding="utf-8")
    (workspace / PATHS.TEMP_AGENT_OUTPUTS).mkdir(parents=True)

    yield workspace

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def project_id() -> str:
    return PROJECT_SLUG


@pytest.fixture
def project(temp_workspace) -> ProjectContext:
    return ProjectContext(root=temp_workspace, slug=PROJECT_SLUG)


@pytest.fixture
def store(temp_workspace) -> WorkflowStateStore:
    return WorkflowStateStore(temp_workspace)


@pytest.fixture
def default_options():
    """Resolved self-iteration options with defaults and no env."""
    return resolve_configuration()


@pytest.fixture
def tool_client() -> FakeToolClient:
    return FakeToolClient()


# ═══════════════════════════════════════════════════════
# FIXTURES - Brief Analysis
# ═══════════════════════════════════════════════════════

@pytest.fixture
def rich_analysis() -> Dict[str, Any]:
    """Analysis that already covers visual guidance and variant planning."""
    return {
        "projectOverview": {"name": "Beanbox", "visualDirection": "Warm, editorial"},
        "sectionStructure": [
            {"id": "hero", "layoutHints": "Two column grid", "variantNotes": "A leads with price"},
            {"id": "plans"},
        ],
        "contentRequirements": {
            "visualUxNotes": (
                "Sticky header with hover animation, responsive mobile breakpoints, "
                "WCAG contrast and a clear visual hierarchy."
            ),
        },
        "routingInputs": {
            "variantOutline": [
                {"name": "Price", "targetSegment": "Deal seekers", "differentiator": "Price-first hero",
                 "hypothesis": "Price anchors convert"},
                {"name": "Story", "targetSegment": "Enthusiasts", "differentiator": "Origin story"},
                {"name": "Gift", "targetSegment": "Gift buyers", "differentiator": "Gift bundles"},
            ],
        },
    }


@pytest.fixture
def sparse_analysis() -> Dict[str, Any]:
    """Analysis with no layout, interaction or accessibility vocabulary."""
    return {
        "projectOverview": {"name": "Beanbox", "designNotes": ""},
        "sectionStructure": [{"id": "hero", "layoutHints": ""}, {"id": "plans"}],
        "contentRequirements": {"layoutPreferences": None, "copyTone": "friendly"},
        "routingInputs": {},
    }


# ═══════════════════════════════════════════════════════
# HELPERS - Agent Outputs
# ═══════════════════════════════════════════════════════

def write_file(root: Path, relative: str, content: Any) -> Path:
    path = Path(root) / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, (dict, list)):
        content = json.dumps(content, indent=2)
    path.write_text(content, encoding="utf-8")
    return path


def long_markdown(title: str, size: int = 260) -> str:
    body = f"# {title}\n\n"
    while len(body) < size:
        body += "Findings and recommendations for the wireframe workflow.\n"
    return body


def write_agent_outputs(root: Path, agent: str, analysis: Optional[Dict[str, Any]] = None) -> None:
    """Write outputs that pass validation for one agent."""
    if agent == "business-context-gatherer":
        write_file(root, PATHS.BUSINESS_CONTEXT_MD, long_markdown("Business Context"))
        write_file(root, PATHS.BUSINESS_CONTEXT_JSON, {
            "strategicGoals": {"shortTerm": ["Grow trials"]},
            "targetAudiences": ["Coffee lovers"],
        })
    elif agent == "brief-analyzer":
        write_file(root, PATHS.BRIEF_ANALYSIS, analysis or {
            "projectOverview": {}, "sectionStructure": [], "contentRequirements": {}, "routingInputs": {},
        })
        write_file(root, PATHS.BRIEF_ANALYSIS_SUMMARY, long_markdown("Brief Analysis", 140))
    elif agent == "visual-ux-advisor":
        write_file(root, PATHS.VISUAL_GUIDANCE, {"layout": "grid"})
    elif agent == "variant-differentiator":
        write_file(root, PATHS.VARIANT_STRATEGY, {"variants": []})
    elif agent == "wireframe-strategist":
        write_file(root, PATHS.WIREFRAME_STRATEGY, {"variants": ["a", "b"]})
    elif agent == "business-context-validator":
        write_file(root, PATHS.BUSINESS_CONTEXT_VALIDATION, {"aligned": True})
        write_file(root, PATHS.BUSINESS_CONTEXT_VALIDATION_MD, long_markdown("Alignment", 140))
    elif agent == "prompt-generator":
        write_file(root, PATHS.FINAL_PROMPT, long_markdown("Final Prompt"))
    else:
        raise ValueError(f"No output writer for {agent}")
