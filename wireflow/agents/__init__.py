# wireflow/agents/__init__.py
"""
Agent definitions and prompts.
"""
from .registry import (
    AgentDefinition,
    AgentInput,
    AgentRegistry,
    OutputSpec,
    Phase,
    AGENT_SEQUENCE,
    registry,
)
from .prompts import AgentPrompt, PromptLibrary

__all__ = [
    "AgentDefinition",
    "AgentInput",
    "AgentRegistry",
    "OutputSpec",
    "Phase",
    "AGENT_SEQUENCE",
    "registry",
    "AgentPrompt",
    "PromptLibrary",
]
