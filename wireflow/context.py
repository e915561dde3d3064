# wireflow/context.py
"""
Per-invocation project context.

Carries the project root, the active slug and the explicit caches
(config file, prompt library) that would otherwise be module globals.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from wireflow.agents.prompts import PromptLibrary
from wireflow.agents.registry import AgentRegistry, registry as default_registry
from wireflow.core.config import ConfigCache, settings
from wireflow.core.paths import fill_placeholders, project_wireframe_dir


@dataclass
class ProjectContext:
    root: Path = field(default_factory=lambda: settings.paths.project_root)
    slug: Optional[str] = None
    registry: AgentRegistry = field(default_factory=lambda: default_registry)
    config_cache: ConfigCache = field(default_factory=ConfigCache)
    prompts: Optional[PromptLibrary] = None

    def __post_init__(self):
        self.root = Path(self.root).resolve()
        if self.prompts is None:
            self.prompts = PromptLibrary(self.root, self.registry)

    def resolve(self, relative: str, variant: Optional[str] = None) -> Path:
        """Absolute path for a registry path template."""
        return self.root / fill_placeholders(relative, self.slug, variant)

    def with_slug(self, slug: Optional[str]) -> "ProjectContext":
        return ProjectContext(
            root=self.root,
            slug=slug,
            registry=self.registry,
            config_cache=self.config_cache,
            prompts=self.prompts,
        )

    @property
    def wireframe_dir(self) -> Optional[Path]:
        return project_wireframe_dir(self.root, self.slug) if self.slug else None
