# wireflow/core/exceptions.py
"""
Custom exceptions for wireflow.

Only environment failures are raised. Pending input, validation failures,
quality-gate stops and refused fixes travel as return values.
"""
from typing import Optional, Dict, Any


class WireflowError(Exception):
    """Base exception for all wireflow errors."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(WireflowError):
    """Configuration file could not be read or failed validation."""
    def __init__(self, path: str, message: str):
        super().__init__(
            f"Invalid configuration in {path}: {message}",
            {"path": path}
        )
        self.path = path


class StateError(WireflowError):
    """Workflow state file is unreadable."""
    pass


class RegistryError(WireflowError):
    """Unknown agent requested from the registry."""
    def __init__(self, agent_name: str):
        super().__init__(
            f"Unknown agent: {agent_name}",
            {"agent": agent_name}
        )
        self.agent_name = agent_name


class PromptNotFoundError(WireflowError):
    """Agent prompt section or prompt block missing from the workflow guide."""
    def __init__(self, agent_name: str, message: Optional[str] = None):
        super().__init__(
            message or f"Prompt not found for agent: {agent_name}",
            {"agent": agent_name}
        )
        self.agent_name = agent_name


class ToolCallError(WireflowError):
    """Tool-call bridge returned an error."""
    def __init__(self, tool: str, message: str, status: Optional[int] = None):
        if status is not None:
            text = f"Tool {tool} failed ({status}): {message}"
        else:
            text = f"Tool {tool} error: {message}"
        super().__init__(text, {"tool": tool, "status": status})
        self.tool = tool
        self.status = status


class BridgeUnavailableError(WireflowError):
    """No tool-call endpoint configured or reachable."""
    pass


class DevServerError(WireflowError):
    """Local dev server could not be reached or started."""
    def __init__(self, port: int, message: str):
        super().__init__(
            f"Dev server error on port {port}: {message}",
            {"port": port}
        )
        self.port = port


class SnapshotError(WireflowError):
    """Snapshot capture received invalid arguments."""
    pass


class PersistenceError(WireflowError):
    """File persistence error."""
    def __init__(self, path: str, message: str):
        super().__init__(
            f"Cannot write to {path}: {message}",
            {"path": path}
        )
        self.path = path
