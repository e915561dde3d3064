# wireflow/core/__init__.py
"""
Core module - configuration, exceptions, logging and path constants.
"""
from .config import (
    settings,
    SelfIterationOptions,
    ConfigCache,
    resolve_configuration,
    load_self_iteration_options,
)
from .exceptions import (
    WireflowError,
    ConfigError,
    StateError,
    RegistryError,
    PromptNotFoundError,
    ToolCallError,
    BridgeUnavailableError,
    DevServerError,
    SnapshotError,
    PersistenceError,
)
from .paths import PATHS

__all__ = [
    # Config
    "settings",
    "SelfIterationOptions",
    "ConfigCache",
    "resolve_configuration",
    "load_self_iteration_options",
    # Exceptions
    "WireflowError",
    "ConfigError",
    "StateError",
    "RegistryError",
    "PromptNotFoundError",
    "ToolCallError",
    "BridgeUnavailableError",
    "DevServerError",
    "SnapshotError",
    "PersistenceError",
    # Paths
    "PATHS",
]
