# tests/test_history.py
"""
History log, UX review bookkeeping and route helpers.
"""
import json

from wireflow.core.paths import PATHS
from wireflow.iteration.history import (
    append_change_log_entry,
    append_history_entry,
    ensure_change_log,
    infer_variant_from_path,
    normalize_route,
    read_history,
    resolve_history_root,
    sanitize_variant_key,
    sync_ux_review_outputs,
    write_ux_follow_up,
)


def test_route_and_variant_helpers():
    assert normalize_route(None) == "/"
    assert normalize_route("landing") == "/landing"
    assert sanitize_variant_key("/b ") == "b"
    assert sanitize_variant_key("") == "index"
    metadata = {"variants": {"a": {}, "b": {}}}
    assert infer_variant_from_path(metadata, "/landing/b/") == "b"
    assert infer_variant_from_path(metadata, "/landing") is None


def test_history_root_resolution(temp_workspace):
    assert resolve_history_root(None, temp_workspace) == temp_workspace / PATHS.SELF_ITERATION
    assert resolve_history_root("out/history", temp_workspace) == temp_workspace / "out" / "history"
    absolute = temp_workspace / "abs"
    assert resolve_history_root(str(absolute), temp_workspace) == absolute


def test_history_log_appends_lines(temp_workspace):
    root = temp_workspace / "history"
    append_history_entry(root, {"iteration": 1, "status": "issues-found"})
    append_history_entry(root, {"iteration": 2, "status": "valid"})
    with (root / "history.jsonl").open("a", encoding="utf-8") as handle:
        handle.write("not json\n")

    assert [entry["iteration"] for entry in read_history(root)] == [1, 2]


def test_change_log_entry_is_written_once(temp_workspace):
    path = ensure_change_log(temp_workspace / "logs" / "index-log.md", "landing", "index")
    report = {"grade": {"overall": 84}, "nextActions": ["Shorten form"]}

    assert append_change_log_entry(path, 1, report, 80) is True
    assert append_change_log_entry(path, 1, report, 80) is False
    assert append_change_log_entry(path, 1, None, 80) is False

    text = path.read_text(encoding="utf-8")
    assert text.startswith("# UX Review Change Log: landing (index)")
    assert text.count("## Iteration 1 ") == 1
    assert "84.0 (passes)" in text


def test_sync_copies_review_and_summary(temp_workspace):
    source = temp_workspace / "iteration-1"
    source.mkdir()
    (source / "ux-review.json").write_text(json.dumps({"grade": {"overall": 90}}), encoding="utf-8")
    (source / "ux-review.md").write_text("# Review", encoding="utf-8")

    destination = sync_ux_review_outputs(
        temp_workspace, "landing", "index", source / "ux-review.json", source / "ux-review.md",
    )
    assert destination == temp_workspace / PATHS.UX_REVIEW / "landing" / "index.json"
    assert (destination.parent / "index.md").is_file()
    assert sync_ux_review_outputs(temp_workspace, "landing", "index", source / "missing.json") is None


def test_follow_up_requires_next_actions(temp_workspace):
    assert write_ux_follow_up(temp_workspace, 1, {"grade": {"overall": 50}}, 80) is None
    path = write_ux_follow_up(temp_workspace, 2, {"grade": {"overall": 50}, "nextActions": ["Fix nav"]}, 80)
    text = path.read_text(encoding="utf-8")
    assert "Iteration 2" in text
    assert "- Fix nav" in text
