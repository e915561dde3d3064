# tests/test_config.py
"""
Self-iteration option resolution.

Precedence: overrides > env > wireframe.config.json > defaults.
"""
import json
import os

import pytest

from wireflow.core.config import (
    ConfigCache,
    describe_provenance,
    load_self_iteration_options,
    parse_boolean,
    parse_env_layer,
    parse_integer,
    resolve_configuration,
)
from wireflow.core.exceptions import ConfigError
from wireflow.core.paths import PATHS


def _write_config(root, payload):
    path = root / PATHS.CONFIG_FILE
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_defaults():
    options = resolve_configuration()
    assert options.enabled is False
    assert options.max_iterations == 2
    assert options.grade_threshold == 80
    assert options.history_dir == PATHS.SELF_ITERATION
    assert options.dev_server_port == 8080


def test_precedence_overrides_env_file():
    options = resolve_configuration(
        overrides={"max_iterations": 5},
        env={"max_iterations": 4, "auto_fix": True},
        file={"max_iterations": 3, "auto_fix": False, "snapshot_delay_ms": 100},
    )
    assert options.max_iterations == 5
    assert options.auto_fix is True
    assert options.snapshot_delay_ms == 100


def test_values_are_clamped():
    options = resolve_configuration(overrides={
        "max_iterations": 99,
        "snapshot_delay_ms": -5,
        "dev_server_port": 80,
        "grade_threshold": 150,
    })
    assert options.max_iterations == 10
    assert options.snapshot_delay_ms == 0
    assert options.dev_server_port == 1024
    assert options.grade_threshold == 100


def test_unparseable_values_fall_through():
    options = resolve_configuration(
        overrides={"max_iterations": "lots", "auto_fix": "maybe"},
        env={"max_iterations": "7"},
    )
    assert options.max_iterations == 7
    assert options.auto_fix is False


def test_options_are_immutable():
    options = resolve_configuration()
    with pytest.raises(Exception):
        options.max_iterations = 9


@pytest.mark.parametrize("raw,expected", [
    ("yes", True), ("ON", True), ("0", False), ("disabled", False), ("perhaps", None), (None, None),
])
def test_parse_boolean(raw, expected):
    assert parse_boolean(raw) is expected


@pytest.mark.parametrize("raw,expected", [("12ms", 12), ("  -3", -3), ("abc", None), (True, None), (4.9, 4)])
def test_parse_integer(raw, expected):
    assert parse_integer(raw) == expected


def test_env_layer_reads_wireframe_keys():
    layer = parse_env_layer({
        "WIREFRAME_SELF_ITERATION": "true",
        "WIREFRAME_SELF_ITERATION_MAX_ITERATIONS": "3",
        "WIREFRAME_SELF_ITERATION_HISTORY_DIR": "custom/history",
        "UNRELATED": "1",
    })
    assert layer == {"enabled": True, "max_iterations": 3, "history_dir": "custom/history"}


# ════════════════════════════════════════════════════════════════════
# CONFIG FILE
# ════════════════════════════════════════════════════════════════════

def test_file_layer_is_applied(temp_workspace):
    _write_config(temp_workspace, {"selfIteration": {"maxIterations": 4, "autoFix": True}})
    options = load_self_iteration_options(temp_workspace, env={})
    assert options.max_iterations == 4
    assert options.auto_fix is True


def test_env_beats_file(temp_workspace):
    _write_config(temp_workspace, {"selfIteration": {"maxIterations": 4}})
    options = load_self_iteration_options(
        temp_workspace,
        overrides={"auto_fix": True},
        env={"WIREFRAME_SELF_ITERATION_MAX_ITERATIONS": "6"},
    )
    assert options.max_iterations == 6
    assert options.auto_fix is True


def test_invalid_file_raises(temp_workspace):
    _write_config(temp_workspace, {"selfIteration": {"maxIterations": "three"}})
    with pytest.raises(ConfigError) as exc:
        load_self_iteration_options(temp_workspace, env={})
    assert "maxIterations" in exc.value.message


def test_unreadable_file_raises(temp_workspace):
    (temp_workspace / PATHS.CONFIG_FILE).write_text("{", encoding="utf-8")
    with pytest.raises(ConfigError):
        ConfigCache().load(temp_workspace / PATHS.CONFIG_FILE)


def test_cache_reloads_only_on_mtime_change(temp_workspace):
    path = _write_config(temp_workspace, {"selfIteration": {"maxIterations": 2}})
    stat = path.stat()
    cache = ConfigCache()
    assert cache.load(path).self_iteration.max_iterations == 2

    path.write_text(json.dumps({"selfIteration": {"maxIterations": 5}}), encoding="utf-8")
    os.utime(path, (stat.st_atime, stat.st_mtime))
    assert cache.load(path).self_iteration.max_iterations == 2

    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    assert cache.load(path).self_iteration.max_iterations == 5


def test_cache_returns_copies(temp_workspace):
    path = _write_config(temp_workspace, {"selfIteration": {"maxIterations": 2}})
    cache = ConfigCache()
    first = cache.load(path)
    first.self_iteration.max_iterations = 9
    assert cache.load(path).self_iteration.max_iterations == 2


def test_missing_file_uses_defaults(temp_workspace):
    options = load_self_iteration_options(temp_workspace, env={})
    assert options == resolve_configuration()


def test_provenance(temp_workspace):
    provenance = describe_provenance(temp_workspace, {"WIREFRAME_SELF_ITERATION": "1", "HOME": "/root"})
    assert provenance["configPath"] == PATHS.CONFIG_FILE
    assert provenance["configExists"] is False
    assert provenance["env"] == {"WIREFRAME_SELF_ITERATION": "1"}
