"""JSONL diagnostics for the engine's degenerate paths (unanchored windows, unbounded goals, findings).

Nothing is written until a log root is configured, either through the
HEALTHMETER_LOG_ROOT environment variable or configure_log_root().
"""

from __future__ import annotations

import json
import os
import traceback
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np


LOG_DIR: Path | None = None
RUNTIME_EVENTS_LOG_FILE: Path | None = None

_LOG_ROOT_ENV_VAR = "HEALTHMETER_LOG_ROOT"
_EVENTS_FILE_NAME = "runtime_events.jsonl"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _event_json_default(value: Any):
    # Contexts carry window dates, numpy cents and (year, month) keys.
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _resolve_root(path_value: str | Path | None) -> Path | None:
    text = "" if path_value is None else str(path_value).strip()
    if not text:
        return None
    return Path(os.path.expandvars(os.path.expanduser(text)))


def configure_log_root(path_value: str | Path | None) -> Path | None:
    """Point diagnostics at a directory. None or blank disables them."""
    global LOG_DIR, RUNTIME_EVENTS_LOG_FILE
    LOG_DIR = _resolve_root(path_value)
    RUNTIME_EVENTS_LOG_FILE = None if LOG_DIR is None else LOG_DIR / _EVENTS_FILE_NAME
    return LOG_DIR


def runtime_log_path() -> str | None:
    return None if RUNTIME_EVENTS_LOG_FILE is None else str(RUNTIME_EVENTS_LOG_FILE.resolve())


def _exception_fields(exc: BaseException) -> dict[str, str]:
    if exc.__traceback__ is not None:
        tb_text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    else:
        tb_text = traceback.format_exc()
    return {"exception_type": type(exc).__name__, "exception_message": str(exc), "traceback": tb_text}


def append_runtime_event(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> None:
    """Append one event line. A no-op without a log root; write failures are dropped."""
    if LOG_DIR is None or RUNTIME_EVENTS_LOG_FILE is None:
        return
    record: dict[str, Any] = {
        "timestamp_utc": _now_iso(),
        "level": str(level).upper(),
        "event": str(event),
        "message": str(message),
        "context": dict(context or {}),
    }
    if exc is not None:
        record.update(_exception_fields(exc))
    line = json.dumps(record, default=_event_json_default, ensure_ascii=False)
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        with RUNTIME_EVENTS_LOG_FILE.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        pass


def _parse_line(line: str) -> dict[str, Any]:
    try:
        return json.loads(line)
    except json.JSONDecodeError:
        return {
            "timestamp_utc": _now_iso(),
            "level": "ERROR",
            "event": "log_parse_error",
            "message": "Malformed log line encountered.",
            "context": {"line": line},
        }


def read_runtime_events(limit: int = 200, event: str | None = None) -> list[dict[str, Any]]:
    """Newest `limit` records, oldest first, optionally only those named `event`."""
    if limit <= 0 or RUNTIME_EVENTS_LOG_FILE is None or not RUNTIME_EVENTS_LOG_FILE.exists():
        return []
    try:
        lines = RUNTIME_EVENTS_LOG_FILE.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    records = [_parse_line(line) for line in lines if line.strip()]
    if event is not None:
        records = [r for r in records if r.get("event") == event]
    return records[-int(limit) :]


configure_log_root(os.getenv(_LOG_ROOT_ENV_VAR, ""))
