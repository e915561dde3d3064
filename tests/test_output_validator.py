# tests/test_output_validator.py
"""
Output validation: existence, size, JSON parseability and required keys.
"""
import pytest

from wireflow.agents.registry import AgentDefinition, AgentRegistry, OutputSpec, Phase
from wireflow.context import ProjectContext
from wireflow.core.paths import PATHS
from wireflow.validation.output_validator import OutputValidator, has_nested_key

from tests.conftest import write_agent_outputs, write_file


def test_has_nested_key():
    data = {"a": {"b": {"c": 0}}, "n": None}
    assert has_nested_key(data, "a.b.c")
    assert not has_nested_key(data, "a.b.d")
    assert not has_nested_key(data, "n")
    assert not has_nested_key(["a"], "a")


@pytest.mark.asyncio
async def test_valid_outputs_pass(project, temp_workspace):
    write_agent_outputs(temp_workspace, "business-context-gatherer")
    report = await OutputValidator(project).validate("business-context-gatherer")
    assert report.valid
    assert report.issues == []
    assert report.details[PATHS.BUSINESS_CONTEXT_JSON]["parsed"] is True


@pytest.mark.asyncio
async def test_issues_are_aggregated_across_outputs(project, temp_workspace):
    write_file(temp_workspace, PATHS.BUSINESS_CONTEXT_MD, "# too short")
    write_file(temp_workspace, PATHS.BUSINESS_CONTEXT_JSON, {"strategicGoals": {}})

    report = await OutputValidator(project).validate("business-context-gatherer")
    assert not report.valid
    assert f"too-small:{PATHS.BUSINESS_CONTEXT_MD}" in report.issues
    assert f"missing-key:{PATHS.BUSINESS_CONTEXT_JSON}:strategicGoals.shortTerm" in report.issues
    assert f"missing-key:{PATHS.BUSINESS_CONTEXT_JSON}:targetAudiences" in report.issues


@pytest.mark.asyncio
async def test_missing_and_invalid_json(project, temp_workspace):
    report = await OutputValidator(project).validate("wireframe-strategist")
    assert report.issues == [f"missing:{PATHS.WIREFRAME_STRATEGY}"]

    write_file(temp_workspace, PATHS.WIREFRAME_STRATEGY, "{broken")
    report = await OutputValidator(project).validate("wireframe-strategist")
    assert report.issues == [f"invalid-json:{PATHS.WIREFRAME_STRATEGY}"]
    assert "error" in report.details[PATHS.WIREFRAME_STRATEGY]


@pytest.mark.asyncio
async def test_optional_output_is_not_size_checked(project, temp_workspace):
    write_agent_outputs(temp_workspace, "brief-analyzer")
    write_file(temp_workspace, PATHS.BRIEF_ANALYSIS_SUMMARY, "short")

    report = await OutputValidator(project).validate("brief-analyzer")
    assert report.valid


@pytest.mark.asyncio
async def test_empty_markdown_is_flagged(project, temp_workspace):
    write_agent_outputs(temp_workspace, "brief-analyzer")
    write_file(temp_workspace, PATHS.BRIEF_ANALYSIS_SUMMARY, "   \n")

    report = await OutputValidator(project).validate("brief-analyzer")
    assert report.issues == [f"empty:{PATHS.BRIEF_ANALYSIS_SUMMARY}"]


@pytest.mark.asyncio
async def test_unknown_agent(project):
    report = await OutputValidator(project).validate("ghost-writer")
    assert not report.valid
    assert report.issues == ["unknown-agent:ghost-writer"]


def test_outputs_present_requires_every_declared_output(project, temp_workspace):
    validator = OutputValidator(project)
    write_file(temp_workspace, PATHS.BRIEF_ANALYSIS, {"projectOverview": {}})
    assert not validator.outputs_present("brief-analyzer")

    write_file(temp_workspace, PATHS.BRIEF_ANALYSIS_SUMMARY, "summary")
    assert validator.outputs_present("brief-analyzer")
    assert not validator.outputs_present("ghost-writer")


@pytest.mark.asyncio
async def test_wildcard_output_resolves_highest_iteration(temp_workspace):
    definitions = (AgentDefinition(
        name="checker",
        label="Checker",
        description="",
        outputs=(OutputSpec("out/<slug>/iteration-*/report.json", "json", required_keys=("valid",)),),
    ),)
    project = ProjectContext(
        root=temp_workspace,
        slug="landing",
        registry=AgentRegistry(definitions, (Phase("check", ("checker",)),)),
    )
    write_file(temp_workspace, "out/landing/iteration-2/report.json", {"other": 1})
    write_file(temp_workspace, "out/landing/iteration-10/report.json", {"valid": True})

    report = await OutputValidator(project).validate("checker")
    assert report.valid
