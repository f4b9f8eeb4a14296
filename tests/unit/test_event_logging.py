"""Unit tests for the JSON Lines build event log."""

import json

import pytest

from latexsync.utils.event_logging import get_recent_events, log_build_event


@pytest.fixture(autouse=True)
def no_env_events_file(monkeypatch):
    monkeypatch.delenv("LATEXSYNC_EVENTS_FILE", raising=False)


@pytest.mark.unit
def test_no_file_configured_is_noop(tmp_path):
    log_build_event("build_started", tmp_path / "main.tex", "save")

    assert get_recent_events() == []
    assert list(tmp_path.iterdir()) == []


@pytest.mark.unit
def test_events_appended_and_filtered(tmp_path):
    events_file = tmp_path / "logs" / "events.jsonl"
    log_build_event("build_started", "/p/a.tex", "save", events_file=events_file)
    log_build_event("build_completed", "/p/a.tex", "save", events_file=events_file, revision=1)
    log_build_event("build_started", "/p/b.tex", "manual", events_file=events_file)

    lines = events_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert json.loads(lines[1])["revision"] == 1

    by_root = get_recent_events(root="/p/a.tex", events_file=events_file)
    assert [e["event_type"] for e in by_root] == ["build_started", "build_completed"]

    started = get_recent_events(event_type="build_started", events_file=events_file)
    assert [e["root"] for e in started] == ["/p/a.tex", "/p/b.tex"]

    assert len(get_recent_events(n=1, events_file=events_file)) == 1


@pytest.mark.unit
def test_env_events_file_and_malformed_lines(tmp_path, monkeypatch):
    events_file = tmp_path / "events.jsonl"
    events_file.write_text("{not json\n", encoding="utf-8")
    monkeypatch.setenv("LATEXSYNC_EVENTS_FILE", str(events_file))

    log_build_event("trigger_suppressed", "/p/a.tex", "change", reason="just built")

    events = get_recent_events()
    assert len(events) == 1
    assert events[0]["reason"] == "just built"
