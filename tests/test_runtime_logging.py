from __future__ import annotations

from datetime import date
from pathlib import Path

import numpy as np

import healthmeter.runtime_logging as runtime_logging


def test_runtime_logging_append_and_read(tmp_path, monkeypatch):
    monkeypatch.setattr(runtime_logging, "LOG_DIR", Path(tmp_path))
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", Path(tmp_path) / "runtime_events.jsonl")

    runtime_logging.append_runtime_event(
        level="warning",
        event="test_event",
        message="Test warning.",
        context={"case": "append_and_read", "months": (3, 4)},
    )
    events = runtime_logging.read_runtime_events(limit=10)
    assert len(events) == 1
    assert events[0]["event"] == "test_event"
    assert events[0]["level"] == "WARNING"
    assert events[0]["context"]["months"] == [3, 4]


def test_runtime_logging_records_exception_details(tmp_path, monkeypatch):
    monkeypatch.setattr(runtime_logging, "LOG_DIR", Path(tmp_path))
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", Path(tmp_path) / "runtime_events.jsonl")

    try:
        raise ValueError("bad window")
    except ValueError as exc:
        runtime_logging.append_runtime_event(level="error", event="boom", message="Failed.", exc=exc)
    event = runtime_logging.read_runtime_events(limit=1)[0]
    assert event["exception_type"] == "ValueError"
    assert event["exception_message"] == "bad window"
    assert "Traceback" in event["traceback"]


def test_truncated_anchor_event_line_reads_back_as_parse_error(tmp_path, monkeypatch):
    log_file = Path(tmp_path) / "runtime_events.jsonl"
    monkeypatch.setattr(runtime_logging, "LOG_DIR", Path(tmp_path))
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", log_file)

    runtime_logging.append_runtime_event(
        level="warning",
        event="anchor_unresolved",
        message="No anchor.",
        context={"window_start": date(2024, 3, 1)},
    )
    with log_file.open("a", encoding="utf-8") as f:
        f.write('{"event": "survival_goal_unbounded", "context": {"target_cogs_pct"\n\n')

    events = runtime_logging.read_runtime_events()
    assert [e["event"] for e in events] == ["anchor_unresolved", "log_parse_error"]
    assert events[0]["context"]["window_start"] == "2024-03-01"
    assert events[1]["context"]["line"].startswith('{"event": "survival_goal_unbounded"')
    assert runtime_logging.read_runtime_events(event="log_parse_error")[0]["level"] == "ERROR"


def test_runtime_logging_is_a_no_op_without_a_log_root(monkeypatch):
    monkeypatch.setattr(runtime_logging, "LOG_DIR", None)
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", None)

    runtime_logging.append_runtime_event(level="info", event="ignored", message="Nothing written.")
    assert runtime_logging.read_runtime_events() == []
    assert runtime_logging.runtime_log_path() is None


def test_configure_log_root(tmp_path, monkeypatch):
    monkeypatch.setattr(runtime_logging, "LOG_DIR", None)
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", None)

    assert runtime_logging.configure_log_root(tmp_path) == Path(tmp_path)
    assert runtime_logging.runtime_log_path().endswith("runtime_events.jsonl")
    assert runtime_logging.configure_log_root("   ") is None
    assert runtime_logging.RUNTIME_EVENTS_LOG_FILE is None


def test_runtime_logging_serializes_dates_and_numpy_and_filters_by_event(tmp_path, monkeypatch):
    monkeypatch.setattr(runtime_logging, "LOG_DIR", Path(tmp_path))
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", Path(tmp_path) / "runtime_events.jsonl")

    runtime_logging.append_runtime_event(
        level="warning",
        event="anchor_unresolved",
        message="No anchor.",
        context={"window_start": date(2024, 1, 1), "cents": np.int64(1250)},
    )
    runtime_logging.append_runtime_event(level="info", event="other", message="Other.")

    anchors = runtime_logging.read_runtime_events(event="anchor_unresolved")
    assert len(anchors) == 1
    assert anchors[0]["context"] == {"window_start": "2024-01-01", "cents": 1250}
    assert len(runtime_logging.read_runtime_events()) == 2
    assert runtime_logging.read_runtime_events(limit=1)[0]["event"] == "other"
