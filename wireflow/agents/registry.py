# wireflow/agents/registry.py
"""
Agent Registry

Static table of every agent: label, dependencies, inputs and the output
artifacts the orchestrator validates. The phase sequence is the
authoritative execution order; dependency declarations are advisory and
only surface in help text.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from wireflow.core.exceptions import RegistryError
from wireflow.core.paths import PATHS


@dataclass(frozen=True)
class OutputSpec:
    """One declared output artifact of an agent."""
    path: str
    kind: str  # "json" | "markdown"
    required: bool = True
    min_bytes: int = 0
    required_keys: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AgentInput:
    path: str
    required: bool = False


@dataclass(frozen=True)
class AgentDefinition:
    name: str
    label: str
    description: str
    required: bool = False
    dependencies: Tuple[str, ...] = ()
    optional_dependencies: Tuple[str, ...] = ()
    inputs: Tuple[AgentInput, ...] = ()
    outputs: Tuple[OutputSpec, ...] = ()
    documentation: str = ""

    @property
    def primary_output(self) -> Optional[OutputSpec]:
        """First required output, else the first declared one."""
        for output in self.outputs:
            if output.required:
                return output
        return self.outputs[0] if self.outputs else None


@dataclass(frozen=True)
class Phase:
    name: str
    agents: Tuple[str, ...]


# ═══════════════════════════════════════════════════════════════════
# PHASE SEQUENCE
# ═══════════════════════════════════════════════════════════════════

AGENT_SEQUENCE: Tuple[Phase, ...] = (
    Phase("context", ("business-context-gatherer",)),
    Phase("analysis", ("brief-analyzer",)),
    Phase("enrichment", ("visual-ux-advisor", "variant-differentiator")),
    Phase("strategy", ("wireframe-strategist",)),
    Phase("alignment", ("business-context-validator",)),
    Phase("generation", ("prompt-generator",)),
)

BUSINESS_CONTEXT_AGENT = "business-context-gatherer"
ANALYSIS_AGENT = "brief-analyzer"
VISUAL_AGENT = "visual-ux-advisor"
VARIANT_AGENT = "variant-differentiator"
VALIDATOR_AGENT = "wireframe-validator"
UX_REVIEW_AGENT = "ux-review"


# ═══════════════════════════════════════════════════════════════════
# AGENT DEFINITIONS
# ═══════════════════════════════════════════════════════════════════

_DEFINITIONS: Tuple[AgentDefinition, ...] = (
    AgentDefinition(
        name=BUSINESS_CONTEXT_AGENT,
        label="Business Context Gatherer",
        description="Captures strategic intelligence for new wireframe projects.",
        outputs=(
            OutputSpec(PATHS.BUSINESS_CONTEXT_MD, "markdown", required=True, min_bytes=200),
            OutputSpec(
                PATHS.BUSINESS_CONTEXT_JSON, "json", required=True,
                required_keys=("strategicGoals.shortTerm", "targetAudiences"),
            ),
        ),
        documentation="AGENT-WORKFLOWS.md#agent-0-business-context-gatherer",
    ),
    AgentDefinition(
        name=ANALYSIS_AGENT,
        label="Brief Analyzer",
        description="Transforms the design brief into structured requirements.",
        required=True,
        optional_dependencies=(BUSINESS_CONTEXT_AGENT,),
        inputs=(AgentInput(PATHS.BUSINESS_CONTEXT_JSON, required=False),),
        outputs=(
            OutputSpec(
                PATHS.BRIEF_ANALYSIS, "json", required=True,
                required_keys=("projectOverview", "sectionStructure", "contentRequirements", "routingInputs"),
            ),
            OutputSpec(PATHS.BRIEF_ANALYSIS_SUMMARY, "markdown", required=False, min_bytes=120),
        ),
        documentation="AGENT-WORKFLOWS.md#agent-1-brief-analyzer",
    ),
    AgentDefinition(
        name=VISUAL_AGENT,
        label="Visual UX Advisor",
        description="Recommends layout and interaction guidance when requests lack detail.",
        dependencies=(ANALYSIS_AGENT,),
        inputs=(
            AgentInput(PATHS.BRIEF_ANALYSIS, required=True),
            AgentInput(PATHS.BUSINESS_CONTEXT_JSON, required=False),
        ),
        outputs=(OutputSpec(PATHS.VISUAL_GUIDANCE, "json", required=True),),
        documentation="AGENT-WORKFLOWS.md#agent-4-visual-ux-advisor",
    ),
    AgentDefinition(
        name=VARIANT_AGENT,
        label="Variant Differentiator",
        description="Defines hypotheses and differentiators for each variant.",
        dependencies=(ANALYSIS_AGENT,),
        inputs=(
            AgentInput(PATHS.BRIEF_ANALYSIS, required=True),
            AgentInput(PATHS.BUSINESS_CONTEXT_JSON, required=False),
        ),
        outputs=(OutputSpec(PATHS.VARIANT_STRATEGY, "json", required=True),),
        documentation="AGENT-WORKFLOWS.md#agent-5-variant-differentiator",
    ),
    AgentDefinition(
        name="wireframe-strategist",
        label="Wireframe Strategist",
        description="Synthesizes analysis into variant-specific layout strategies.",
        required=True,
        dependencies=(ANALYSIS_AGENT,),
        optional_dependencies=(VISUAL_AGENT, VARIANT_AGENT),
        inputs=(
            AgentInput(PATHS.BRIEF_ANALYSIS, required=True),
            AgentInput(PATHS.BUSINESS_CONTEXT_JSON, required=False),
            AgentInput(PATHS.VISUAL_GUIDANCE, required=False),
            AgentInput(PATHS.VARIANT_STRATEGY, required=False),
        ),
        outputs=(OutputSpec(PATHS.WIREFRAME_STRATEGY, "json", required=True),),
        documentation="AGENT-WORKFLOWS.md#agent-2-wireframe-strategist",
    ),
    AgentDefinition(
        name="business-context-validator",
        label="Business Context Validator",
        description="Checks variant plans against business goals/personas and flags misalignment.",
        dependencies=("wireframe-strategist",),
        inputs=(
            AgentInput(PATHS.WIREFRAME_STRATEGY, required=True),
            AgentInput(PATHS.BUSINESS_CONTEXT_JSON, required=True),
        ),
        outputs=(
            OutputSpec(PATHS.BUSINESS_CONTEXT_VALIDATION, "json", required=True),
            OutputSpec(PATHS.BUSINESS_CONTEXT_VALIDATION_MD, "markdown", required=False, min_bytes=120),
        ),
        documentation="AGENT-WORKFLOWS.md#agent-6-business-context-validator",
    ),
    AgentDefinition(
        name=VALIDATOR_AGENT,
        label="Wireframe Validator",
        description="Grades generated wireframes against the brief, metadata, and accessibility checklist.",
        dependencies=("wireframe-strategist",),
        inputs=(
            AgentInput(PATHS.BRIEF_ANALYSIS, required=True),
            AgentInput(PATHS.WIREFRAME_STRATEGY, required=False),
        ),
        outputs=(
            OutputSpec(
                f"{PATHS.SELF_ITERATION}/<slug>/iteration-*/validation.json", "json", required=True,
                required_keys=("valid", "issues", "summary"),
            ),
            OutputSpec(
                f"{PATHS.SELF_ITERATION}/<slug>/iteration-*/validation.md", "markdown",
                required=False, min_bytes=120,
            ),
        ),
        documentation="AGENT-WORKFLOWS.md#agent-7-wireframe-validator",
    ),
    AgentDefinition(
        name="prompt-generator",
        label="Prompt Generator",
        description="Produces the final LLM-ready prompt for code generation.",
        required=True,
        dependencies=("wireframe-strategist",),
        optional_dependencies=("business-context-validator",),
        inputs=(
            AgentInput(PATHS.BRIEF_ANALYSIS, required=True),
            AgentInput(PATHS.WIREFRAME_STRATEGY, required=True),
            AgentInput(PATHS.BUSINESS_CONTEXT_JSON, required=False),
            AgentInput(PATHS.VISUAL_GUIDANCE, required=False),
            AgentInput(PATHS.BUSINESS_CONTEXT_VALIDATION, required=False),
        ),
        outputs=(OutputSpec(PATHS.FINAL_PROMPT, "markdown", required=True, min_bytes=200),),
        documentation="AGENT-WORKFLOWS.md#agent-3-prompt-generator",
    ),
    AgentDefinition(
        name="wireframe-transcriber",
        label="Wireframe Transcriber",
        description="Normalize an existing page into the universal wireframe section map.",
        outputs=(OutputSpec(PATHS.TRANSCRIBE, "json", required=True),),
        documentation="AGENT-WORKFLOWS.md#agent-wireframe-transcriber",
    ),
    AgentDefinition(
        name="wireframe-iter",
        label="Wireframe Iteration Planner",
        description="Generate a delta plan and proposed updated metadata for iteration.",
        outputs=(OutputSpec(PATHS.ITERATE_PLAN, "json", required=True),),
        documentation="AGENT-WORKFLOWS.md#agent-wireframe-iter",
    ),
    AgentDefinition(
        name=UX_REVIEW_AGENT,
        label="UX Review",
        description="Grades a built variant against UX heuristics and stated goals, emitting actionable feedback.",
        inputs=(AgentInput(PATHS.BUSINESS_CONTEXT_JSON, required=False),),
        outputs=(
            OutputSpec(f"{PATHS.UX_REVIEW}/<project>/<variant>.json", "json", required=True),
            OutputSpec(f"{PATHS.UX_REVIEW}/<project>/<variant>.md", "markdown", required=False, min_bytes=60),
        ),
        documentation="AGENT-WORKFLOWS.md#agent-8-ux-review",
    ),
)


class AgentRegistry:
    """
    Pure lookup over agent definitions and the phase sequence.
    """

    def __init__(
        self,
        definitions: Tuple[AgentDefinition, ...] = _DEFINITIONS,
        sequence: Tuple[Phase, ...] = AGENT_SEQUENCE,
    ):
        self._agents: Dict[str, AgentDefinition] = {d.name: d for d in definitions}
        self.sequence: Tuple[Phase, ...] = sequence

    def get(self, name: str) -> Optional[AgentDefinition]:
        return self._agents.get(name)

    def require(self, name: str) -> AgentDefinition:
        info = self._agents.get(name)
        if info is None:
            raise RegistryError(name)
        return info

    def __contains__(self, name: str) -> bool:
        return name in self._agents

    def list_agents(self) -> List[str]:
        return list(self._agents.keys())

    def agents_for_phase(self, phase: str) -> List[str]:
        for entry in self.sequence:
            if entry.name == phase:
                return list(entry.agents)
        return []

    def flatten_sequence(self) -> List[str]:
        return [name for entry in self.sequence for name in entry.agents]

    def dependencies(self, name: str) -> Tuple[List[str], List[str]]:
        """(required, optional) dependency names. Advisory only."""
        info = self._agents.get(name)
        if info is None:
            return [], []
        return list(info.dependencies), list(info.optional_dependencies)

    def inputs(self, name: str) -> List[AgentInput]:
        info = self._agents.get(name)
        return list(info.inputs) if info else []

    def primary_output(self, name: str) -> Optional[OutputSpec]:
        info = self._agents.get(name)
        return info.primary_output if info else None


# Default registry instance
registry = AgentRegistry()
