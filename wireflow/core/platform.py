# wireflow/core/platform.py
"""
Detects which agent host is driving the workflow.

Later checks win, so a shell exposing several hints resolves to the last
matching platform (codex > claude-code > antigravity).
"""
import os
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


def _default_capabilities() -> Dict[str, Any]:
    return {
        "parallelExecution": False,
        "contextWindow": 80000,
        "fileOperations": ["read", "write", "edit"],
        "stateManagement": "stateless",
    }


@dataclass
class PlatformInfo:
    platform: str = "unknown"
    capabilities: Dict[str, Any] = field(default_factory=_default_capabilities)
    detected: Dict[str, Any] = field(default_factory=dict)


def _int_env(env: Mapping[str, str], key: str, default: int) -> int:
    try:
        return int(env[key]) if env.get(key) else default
    except ValueError:
        return default


def detect_platform(env: Optional[Mapping[str, str]] = None) -> PlatformInfo:
    env = os.environ if env is None else env
    info = PlatformInfo()

    bundle = env.get("__CFBundleIdentifier") or ""
    if env.get("ANTIGRAVITY_CLI_ALIAS") or env.get("GEMINI_CLI_IDE_SERVER_PORT") or "antigravity" in bundle:
        info.platform = "antigravity"
        info.capabilities = {
            "parallelExecution": True,
            "contextWindow": _int_env(env, "ANTIGRAVITY_MAX_CONTEXT", 128000),
            "fileOperations": ["read", "write", "edit"],
            "stateManagement": "stateless",
        }
        if env.get("ANTIGRAVITY_CLI_ALIAS"):
            info.detected["hint"] = "ANTIGRAVITY_CLI_ALIAS"
        elif env.get("GEMINI_CLI_IDE_SERVER_PORT"):
            info.detected["hint"] = "GEMINI_CLI_IDE_SERVER_PORT"
        else:
            info.detected["hint"] = "__CFBundleIdentifier"

    if env.get("CLAUDECODE") or env.get("CLAUDE_CODE_VERSION") or env.get("CLAUDE_RELEASE") or env.get("ANTHROPIC_API_KEY"):
        info.platform = "claude-code"
        info.capabilities = {
            "parallelExecution": True,
            "contextWindow": 200000,
            "fileOperations": ["read", "write", "edit"],
            "stateManagement": "stateless",
        }
        for hint in ("CLAUDECODE", "CLAUDE_CODE_VERSION", "CLAUDE_RELEASE", "ANTHROPIC_API_KEY"):
            if env.get(hint):
                info.detected["hint"] = hint
                break

    if env.get("CODEX_CLI") or env.get("CODEX_VERSION") or env.get("OPENAI_API_KEY"):
        info.platform = "codex"
        info.capabilities = {
            "parallelExecution": False,
            "contextWindow": _int_env(env, "CODEX_MAX_CONTEXT", 120000),
            "fileOperations": ["read", "write", "edit"],
            "stateManagement": "stateless",
        }
        for hint in ("CODEX_CLI", "CODEX_VERSION", "OPENAI_API_KEY"):
            if env.get(hint):
                info.detected["hint"] = hint
                break

    info.capabilities["fileOperations"] = list(dict.fromkeys(info.capabilities["fileOperations"]))
    info.detected["hostname"] = socket.gethostname()
    return info
