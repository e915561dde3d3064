# wireflow/capture/__init__.py
"""
Capture - tool bridge client and page snapshots.
"""
from .tool_client import ToolClient, create_tool_client, resolve_endpoint
from .snapshot import CaptureArtifacts, capture, iteration_dir, load_existing

__all__ = [
    "ToolClient",
    "create_tool_client",
    "resolve_endpoint",
    "CaptureArtifacts",
    "capture",
    "iteration_dir",
    "load_existing",
]
