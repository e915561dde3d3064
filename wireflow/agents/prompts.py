# wireflow/agents/prompts.py
"""
Agent prompt library.

Prompts live in AGENT-WORKFLOWS.md at the project root, one `### Agent N:`
section per agent. The parsed document is cached on the library instance and
re-read whenever the file's mtime changes.
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from wireflow.agents.registry import AgentRegistry, OutputSpec, registry as default_registry
from wireflow.core.exceptions import PromptNotFoundError, RegistryError
from wireflow.core.logging import log
from wireflow.core.paths import PATHS


SECTION_PATTERN = re.compile(r"###\s+Agent(?:\s+\d+)?:[\s\S]*?(?=###\s+Agent(?:\s+\d+)?:|\Z)")
NAME_PATTERN = re.compile(r"\*\*1\) name\*\*\s*`([^`]+)`", re.IGNORECASE)
PROMPT_PATTERN = re.compile(r"```prompt\n([\s\S]*?)```", re.IGNORECASE)
DESCRIPTION_PATTERN = re.compile(r"\*\*2\) description\*\*\n([\s\S]*?)\n\n")


@dataclass
class AgentPrompt:
    agent: str
    label: str
    description: str
    prompt: str
    outputs: List[OutputSpec]


class PromptLibrary:
    """Reads agent prompts out of the workflow guide."""

    def __init__(self, root: Path, registry: Optional[AgentRegistry] = None):
        self.root = Path(root)
        self.registry = registry or default_registry
        self.guide_path = self.root / PATHS.WORKFLOW_GUIDE
        self._content: Optional[str] = None
        self._mtime: Optional[float] = None

    def clear_cache(self) -> None:
        self._content = None
        self._mtime = None

    def _read_guide(self) -> str:
        try:
            mtime = self.guide_path.stat().st_mtime
        except OSError as e:
            raise PromptNotFoundError("*", f"Unable to read {PATHS.WORKFLOW_GUIDE}: {e}")

        if self._content is not None and self._mtime == mtime:
            return self._content

        try:
            self._content = self.guide_path.read_text(encoding="utf-8")
        except OSError as e:
            raise PromptNotFoundError("*", f"Unable to read {PATHS.WORKFLOW_GUIDE}: {e}")
        self._mtime = mtime
        log("PROMPTS", f"Loaded {PATHS.WORKFLOW_GUIDE} ({len(self._content)} chars)")
        return self._content

    @staticmethod
    def _find_section(content: str, agent_name: str) -> Optional[str]:
        for match in SECTION_PATTERN.finditer(content):
            section = match.group(0)
            name_match = NAME_PATTERN.search(section)
            if name_match and name_match.group(1).strip() == agent_name:
                return section
        return None

    def get_prompt(self, agent_name: str) -> AgentPrompt:
        try:
            info = self.registry.require(agent_name)
        except RegistryError:
            raise PromptNotFoundError(agent_name, f"Unknown agent: {agent_name}")

        section = self._find_section(self._read_guide(), agent_name)
        if section is None:
            raise PromptNotFoundError(agent_name)

        prompt_match = PROMPT_PATTERN.search(section)
        if prompt_match is None:
            raise PromptNotFoundError(agent_name, f"Prompt block not found for agent: {agent_name}")

        description_match = DESCRIPTION_PATTERN.search(section)
        description = description_match.group(1).strip() if description_match else info.description

        return AgentPrompt(
            agent=agent_name,
            label=info.label,
            description=description,
            prompt=prompt_match.group(1).strip(),
            outputs=list(info.outputs),
        )

    def prepare_prompt_file(self, agent_name: str, slug: Optional[str] = None) -> Path:
        """Write `<slug>-<agent>.prompt.md` into the prompts directory and return its path."""
        agent_prompt = self.get_prompt(agent_name)
        prompts_dir = self.root / PATHS.PROMPTS
        prompts_dir.mkdir(parents=True, exist_ok=True)

        prefix = f"{slug}-" if slug else ""
        prompt_path = prompts_dir / f"{prefix}{agent_name}.prompt.md"
        prompt_path.write_text(
            f"# {agent_prompt.label} Prompt\n\n```prompt\n{agent_prompt.prompt}\n```\n",
            encoding="utf-8",
        )
        log("PROMPTS", f"📝 Prepared prompt file for {agent_name}", project_id=slug)
        return prompt_path
