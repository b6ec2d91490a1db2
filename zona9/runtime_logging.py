"""JSON-lines event log shared by the dashboard, bulk save and the capture service.

The log lives under the storage root as ``runtime_events.jsonl``. Entry points
point it there explicitly with ``configure_log_root(config.storage_root)``;
until then it writes to ``.local_store``.
"""

from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from streamlit.runtime.scriptrunner import get_script_run_ctx


LOG_FILE_NAME = "runtime_events.jsonl"
LOG_DIR = Path(".local_store")
RUNTIME_EVENTS_LOG_FILE = LOG_DIR / LOG_FILE_NAME

_hook_installed = False

# Keyword signature of append_runtime_event; components take one as `log_event`.
EventLogger = Callable[..., Any]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_fallback(value: Any):
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def configure_log_root(root: str | Path | None) -> Path:
    """Move the log file under `root` (empty means `.local_store`)."""
    global LOG_DIR, RUNTIME_EVENTS_LOG_FILE
    text = "" if root is None else str(root).strip()
    LOG_DIR = Path(text) if text else Path(".local_store")
    RUNTIME_EVENTS_LOG_FILE = LOG_DIR / LOG_FILE_NAME
    return LOG_DIR


def runtime_log_path() -> str:
    return str(RUNTIME_EVENTS_LOG_FILE.resolve())


def _exception_fields(exc: BaseException) -> dict[str, str]:
    if exc.__traceback__ is not None:
        tb_text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    else:
        tb_text = traceback.format_exc()
    return {
        "exception_type": type(exc).__name__,
        "exception_message": str(exc),
        "traceback": tb_text,
    }


def event_record(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "timestamp_utc": _utc_now(),
        "level": str(level).upper(),
        "event": str(event),
        "message": str(message),
        "context": dict(context or {}),
    }
    if exc is not None:
        record.update(_exception_fields(exc))
    return record


def append_runtime_event(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> None:
    """Append one event line. Never raises: a broken log must not take the page down."""
    try:
        line = json.dumps(event_record(level, event, message, context, exc), default=_json_fallback, ensure_ascii=False)
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        with RUNTIME_EVENTS_LOG_FILE.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
    except Exception:
        pass


def emit_event(
    log_event: EventLogger | None,
    *,
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> None:
    if not callable(log_event):
        return
    try:
        log_event(level=level, event=event, message=message, context=context or {}, exc=exc)
    except Exception:
        return


def _parse_line(line: str) -> dict[str, Any]:
    try:
        return json.loads(line)
    except json.JSONDecodeError:
        return event_record("ERROR", "log_parse_error", "Malformed log line encountered.", {"line": line})


def read_runtime_events(limit: int = 200) -> list[dict[str, Any]]:
    """Last `limit` events, oldest first; unreadable lines come back as `log_parse_error`."""
    if limit <= 0 or not RUNTIME_EVENTS_LOG_FILE.exists():
        return []
    try:
        lines = RUNTIME_EVENTS_LOG_FILE.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    return [_parse_line(line) for line in lines[-int(limit):] if line.strip()]


def install_global_exception_logging() -> None:
    """Chain sys.excepthook so uncaught errors during a Streamlit run land in the log."""
    global _hook_installed
    if _hook_installed:
        return
    previous_hook = sys.excepthook

    def _log_uncaught(exc_type, exc, exc_tb):
        if get_script_run_ctx() is not None:
            append_runtime_event(
                level="ERROR",
                event="uncaught_exception",
                message=str(exc),
                context={"where": "script_run"},
                exc=exc,
            )
        previous_hook(exc_type, exc, exc_tb)

    sys.excepthook = _log_uncaught
    _hook_installed = True
