# wireflow/core/config.py
"""
Application configuration - single source of truth for all settings.

Self-iteration options come from four layers with a fixed precedence:
invocation overrides > environment > wireframe.config.json > defaults.
`resolve_configuration` merges already-parsed layers into one frozen
`SelfIterationOptions`.
"""
import os
import re
import json
from pathlib import Path
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from wireflow.core.exceptions import ConfigError
from wireflow.core.logging import log
from wireflow.core.paths import PATHS

load_dotenv()


# ═══════════════════════════════════════════════════════════════════
# STATIC SETTINGS
# ═══════════════════════════════════════════════════════════════════

@dataclass
class PathSettings:
    """Path configuration."""
    project_root: Path = field(default_factory=lambda: Path(os.getenv("WIREFLOW_ROOT") or os.getcwd()))
    config_filename: str = PATHS.CONFIG_FILE


@dataclass
class EnrichmentSettings:
    """Skip thresholds for the optional enrichment agents."""
    visual_threshold: int = 3
    variant_threshold: int = 3


@dataclass
class IterationSettings:
    """Self-iteration loop timing."""
    poll_interval_ms: int = 2000
    default_wait_ms: int = 0
    dev_server_ready_timeout_s: float = 45.0
    dev_server_probe_timeout_s: float = 1.0
    dev_server_stop_grace_s: float = 3.0
    max_files_touched: int = 3


@dataclass
class ToolClientSettings:
    """Tool-call bridge configuration."""
    endpoint: Optional[str] = field(default_factory=lambda: (
        os.getenv("MCP_HTTP_ENDPOINT")
        or os.getenv("MCP_ENDPOINT")
        or os.getenv("CHROME_DEVTOOLS_MCP_ENDPOINT")
    ))
    default_timeout_ms: int = 20000
    navigate_timeout_ms: int = 15000


@dataclass
class Settings:
    """Main application settings."""
    paths: PathSettings = field(default_factory=PathSettings)
    enrichment: EnrichmentSettings = field(default_factory=EnrichmentSettings)
    iteration: IterationSettings = field(default_factory=IterationSettings)
    tool_client: ToolClientSettings = field(default_factory=ToolClientSettings)
    debug: bool = field(default_factory=lambda: os.getenv("WIREFLOW_DEBUG", "false").lower() == "true")


# Singleton instance
settings = Settings()


# ═══════════════════════════════════════════════════════════════════
# SELF-ITERATION OPTIONS
# ═══════════════════════════════════════════════════════════════════

DEFAULT_SELF_ITERATION: Dict[str, Any] = {
    "enabled": False,
    "max_iterations": 2,
    "auto_fix": False,
    "grade_threshold": 80,
    "snapshot_delay_ms": 750,
    "history_dir": PATHS.SELF_ITERATION,
    "dev_server_port": 8080,
}

SELF_ITERATION_ENV_KEYS = {
    "WIREFRAME_SELF_ITERATION": "enabled",
    "WIREFRAME_SELF_ITERATION_MAX_ITERATIONS": "max_iterations",
    "WIREFRAME_SELF_ITERATION_AUTO_FIX": "auto_fix",
    "WIREFRAME_SELF_ITERATION_SNAPSHOT_DELAY_MS": "snapshot_delay_ms",
    "WIREFRAME_SELF_ITERATION_HISTORY_DIR": "history_dir",
    "WIREFRAME_SELF_ITERATION_DEV_SERVER_PORT": "dev_server_port",
    "WIREFRAME_SELF_ITERATION_GRADE_THRESHOLD": "grade_threshold",
}

BOOLEAN_KEYS = {"enabled", "auto_fix"}
INTEGER_KEYS = {"max_iterations", "snapshot_delay_ms", "dev_server_port", "grade_threshold"}

# (min, max) applied after all layers are merged
CLAMPS = {
    "max_iterations": (1, 10),
    "snapshot_delay_ms": (0, 10_000),
    "dev_server_port": (1024, 65535),
    "grade_threshold": (0, 100),
}

_TRUE_VALUES = {"1", "true", "yes", "y", "on", "enabled"}
_FALSE_VALUES = {"0", "false", "no", "n", "off", "disabled"}
_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")


@dataclass(frozen=True)
class SelfIterationOptions:
    """Resolved, immutable self-iteration options."""
    enabled: bool
    max_iterations: int
    auto_fix: bool
    grade_threshold: int
    snapshot_delay_ms: int
    history_dir: str
    dev_server_port: int

    def to_dict(self) -> Dict[str, Any]:
        """camelCase view used in workflow-state metadata."""
        return {
            "enabled": self.enabled,
            "maxIterations": self.max_iterations,
            "autoFix": self.auto_fix,
            "gradeThreshold": self.grade_threshold,
            "snapshotDelayMs": self.snapshot_delay_ms,
            "historyDir": self.history_dir,
            "devServerPort": self.dev_server_port,
        }


def parse_boolean(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


def parse_integer(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value:  # NaN
            return None
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def sanitize_integer(value: Any, fallback: int, minimum: int, maximum: int) -> int:
    parsed = parse_integer(value)
    if parsed is None:
        return fallback
    return max(minimum, min(parsed, maximum))


def _parse_layer(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalise one layer of snake_case options, dropping unusable values."""
    layer: Dict[str, Any] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if key in BOOLEAN_KEYS:
            parsed = parse_boolean(value)
            if parsed is not None:
                layer[key] = parsed
        elif key in INTEGER_KEYS:
            parsed = parse_integer(value)
            if parsed is not None:
                layer[key] = parsed
        elif key == "history_dir":
            if value:
                layer[key] = str(value)
    return layer


def parse_env_layer(env: Mapping[str, str]) -> Dict[str, Any]:
    """Extract the self-iteration layer from environment variables."""
    raw = {
        option: env.get(env_key)
        for env_key, option in SELF_ITERATION_ENV_KEYS.items()
        if env.get(env_key) is not None
    }
    return _parse_layer(raw)


def collect_env_keys(env: Mapping[str, str]) -> Dict[str, str]:
    """Raw env values that influenced resolution (for provenance)."""
    return {key: env[key] for key in SELF_ITERATION_ENV_KEYS if key in env}


def resolve_configuration(
    overrides: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, Any]] = None,
    file: Optional[Mapping[str, Any]] = None,
) -> SelfIterationOptions:
    """
    Merge option layers into one immutable struct.

    Precedence: overrides > env > file > defaults. Each layer is a mapping of
    snake_case option names; integer options are clamped after merging.
    """
    resolved = dict(DEFAULT_SELF_ITERATION)
    for layer in (file or {}, env or {}, overrides or {}):
        resolved.update(_parse_layer(layer))

    for key, (minimum, maximum) in CLAMPS.items():
        resolved[key] = sanitize_integer(resolved[key], DEFAULT_SELF_ITERATION[key], minimum, maximum)

    return SelfIterationOptions(**resolved)


# ═══════════════════════════════════════════════════════════════════
# CONFIG FILE
# ═══════════════════════════════════════════════════════════════════

class SelfIterationFileConfig(BaseModel):
    """`selfIteration` block of wireframe.config.json."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    enabled: Optional[StrictBool] = None
    max_iterations: Optional[StrictInt] = Field(default=None, alias="maxIterations", ge=1, le=10)
    auto_fix: Optional[StrictBool] = Field(default=None, alias="autoFix")
    snapshot_delay_ms: Optional[StrictInt] = Field(default=None, alias="snapshotDelayMs", ge=0)
    history_dir: Optional[StrictStr] = Field(default=None, alias="historyDir")
    dev_server_port: Optional[StrictInt] = Field(default=None, alias="devServerPort", ge=1024, le=65535)
    grade_threshold: Optional[StrictInt] = Field(default=None, alias="gradeThreshold", ge=0, le=100)


class WireframeFileConfig(BaseModel):
    """wireframe.config.json"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    default_project: Optional[StrictStr] = Field(default=None, alias="defaultProject")
    self_iteration: SelfIterationFileConfig = Field(default_factory=SelfIterationFileConfig, alias="selfIteration")

    def self_iteration_layer(self) -> Dict[str, Any]:
        return self.self_iteration.model_dump(exclude_none=True, include=set(DEFAULT_SELF_ITERATION))


def _format_validation_error(exc: PydanticValidationError) -> str:
    lines = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        lines.append(f"{location}: {error.get('msg')}")
    return "; ".join(lines)


class ConfigCache:
    """
    Parsed wireframe.config.json, reloaded only when the file's mtime changes.

    One instance lives on the project context; nothing is cached at module level.
    """

    def __init__(self):
        self._path: Optional[Path] = None
        self._mtime: Optional[float] = None
        self._config: Optional[WireframeFileConfig] = None

    def invalidate(self) -> None:
        self._path = None
        self._mtime = None
        self._config = None

    def load(self, config_path: Path, fresh: bool = False) -> WireframeFileConfig:
        config_path = Path(config_path)
        try:
            mtime = config_path.stat().st_mtime
        except FileNotFoundError:
            mtime = None

        if (
            not fresh
            and self._config is not None
            and self._path == config_path
            and self._mtime == mtime
        ):
            return self._config.model_copy(deep=True)

        if mtime is None:
            config = WireframeFileConfig()
        else:
            config = self._parse(config_path)
            log("CONFIG", f"Loaded {config_path.name}")

        self._path = config_path
        self._mtime = mtime
        self._config = config
        return config.model_copy(deep=True)

    @staticmethod
    def _parse(config_path: Path) -> WireframeFileConfig:
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigError(str(config_path), f"failed to read: {e}")
        if not isinstance(raw, dict):
            raise ConfigError(str(config_path), "top level must be an object")
        try:
            return WireframeFileConfig.model_validate(raw)
        except PydanticValidationError as e:
            raise ConfigError(str(config_path), _format_validation_error(e))


def resolve_config_path(root: Path) -> Path:
    return Path(root) / settings.paths.config_filename


def load_self_iteration_options(
    root: Path,
    overrides: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    cache: Optional[ConfigCache] = None,
) -> SelfIterationOptions:
    """Read the config file and environment, then resolve with `overrides`."""
    cache = cache or ConfigCache()
    file_config = cache.load(resolve_config_path(root))
    env_layer = parse_env_layer(os.environ if env is None else env)
    return resolve_configuration(overrides=overrides, env=env_layer, file=file_config.self_iteration_layer())


def describe_provenance(root: Path, env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Where the resolved options came from, for workflow metadata."""
    config_path = resolve_config_path(root)
    return {
        "configPath": PATHS.CONFIG_FILE,
        "configExists": config_path.exists(),
        "env": collect_env_keys(os.environ if env is None else env),
        "resolvedAt": datetime.now(timezone.utc).isoformat(),
    }


