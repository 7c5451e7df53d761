"""Diagnostic logging for a monitor run.

Writes one JSONL file per run with a record for every decision the monitor
takes (parse failures, suppressed connects, video mismatches, evictions,
color assignments), plus a JSON dump of the session store after each commit.
"""

import json
import sys
import threading
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from . import __version__


class EventType(str, Enum):
    """Types of diagnostic events."""

    MONITOR_START = "monitor_start"
    MONITOR_STOP = "monitor_stop"
    LINE_RECEIVED = "line_received"
    PARSE_FAILED = "parse_failed"
    LINE_DISCARDED = "line_discarded"
    ADDRESS_IGNORED = "address_ignored"
    CONNECT_SUPPRESSED = "connect_suppressed"
    DURATION_ANOMALY = "duration_anomaly"
    LEDGER_UPDATED = "ledger_updated"
    VIDEO_CHECK = "video_check"
    KEY_INVALID = "key_invalid"
    EVENT_COMMITTED = "event_committed"
    SESSION_EVICTED = "session_evicted"
    COLOR_ASSIGNED = "color_assigned"
    COLOR_RELEASED = "color_released"


def _format_monitor_start_message(data: dict) -> str:
    lines = ["Monitor started"]
    lines.append(f"  Log file: {data.get('log_file', 'N/A')}")
    lines.append(f"  Refresh mode: {data.get('refresh_mode', 'N/A')}")
    return "\n".join(lines)


def _format_parse_failed_message(data: dict) -> str:
    return f"Unparseable line skipped: {data.get('line', '')}"


def _format_connect_suppressed_message(data: dict) -> str:
    return f"Duplicate connect ignored for {data.get('key')}: {data.get('reason', '')}"


def _format_duration_anomaly_message(data: dict) -> str:
    lines = [f"WARNING: {data.get('kind')} for {data.get('key')} defaulted"]
    for note in data.get("anomalies", []):
        lines.append(f"  {note}")
    return "\n".join(lines)


def _format_ledger_updated_message(data: dict) -> str:
    return (
        f"Ledger for {data.get('key')}: elapsed={data.get('elapsed')} "
        f"total={data.get('total')} at {data.get('last_disconnect')}"
    )


def _format_video_check_message(data: dict) -> str:
    result = data.get("result")
    if result == "mismatch":
        return (
            f"******** video mismatch for {data.get('key')} => "
            f"old='{data.get('stored')}', new='{data.get('video')}'"
        )
    return f"Video {result} for {data.get('key')} => '{data.get('video')}'"


def _format_key_invalid_message(data: dict) -> str:
    return f"Key {data.get('key')} not valid, removed"


def _format_event_committed_message(data: dict) -> str:
    return f"{data.get('key')} <= {data.get('kind')}:{data.get('value')}"


def _format_session_evicted_message(data: dict) -> str:
    idle = data.get("idle_seconds", 0)
    return f"Removing {data.get('key')} ({data.get('reason')}, {idle:.0f} seconds idle)"


def _format_color_message(data: dict) -> str:
    return f"Color {data.get('color', '')!r} for {data.get('address')}"


# Message formatters by event type
_MESSAGE_FORMATTERS = {
    "monitor_start": _format_monitor_start_message,
    "parse_failed": _format_parse_failed_message,
    "connect_suppressed": _format_connect_suppressed_message,
    "duration_anomaly": _format_duration_anomaly_message,
    "ledger_updated": _format_ledger_updated_message,
    "video_check": _format_video_check_message,
    "key_invalid": _format_key_invalid_message,
    "event_committed": _format_event_committed_message,
    "session_evicted": _format_session_evicted_message,
    "color_assigned": _format_color_message,
    "color_released": _format_color_message,
}


def _serialize_for_json(obj: Any) -> Any:
    """Convert objects to JSON-serializable format."""
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [_serialize_for_json(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): _serialize_for_json(v) for k, v in obj.items()}
    if hasattr(obj, "model_dump"):
        return _serialize_for_json(obj.model_dump())
    if hasattr(obj, "__dict__"):
        return {k: _serialize_for_json(v) for k, v in obj.__dict__.items()}
    return str(obj)


class SessionLogger:
    """Diagnostic logger for one monitor run.

    Thread-safe with immediate flush after each write, so the render thread
    and the line loop can both log in timer mode.
    """

    def __init__(self, logs_directory: str, log_file: str, store_dump_file: str, render_trace_file: str):
        self._lock = threading.Lock()
        self._file = None
        self._trace_file = None
        self._closed = False
        self._enabled = True

        logs_dir = Path(logs_directory)
        self._log_path = logs_dir / log_file
        self._store_dump_path = logs_dir / store_dump_file
        self._trace_path = logs_dir / render_trace_file

        self._init_log_files(logs_dir)

    def _init_log_files(self, logs_dir: Path):
        """Start fresh files for this run."""
        try:
            logs_dir.mkdir(parents=True, exist_ok=True)
            self._file = open(self._log_path, "w", encoding="utf-8")
            self._trace_file = open(self._trace_path, "w", encoding="utf-8")
            if self._store_dump_path.exists():
                self._store_dump_path.unlink()
        except OSError as e:
            print(f"WARNING: Failed to create diagnostic logs in {logs_dir}: {e}", file=sys.stderr)
            self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled and not self._closed

    def _current_timestamp(self) -> str:
        return datetime.now(UTC).isoformat(timespec="milliseconds")

    def log(self, event_type: EventType, **data):
        """Write one diagnostic record.

        Each record carries event_type, timestamp, version, a human-readable
        message and the event data.
        """
        if not self.enabled or self._file is None:
            return

        event_name = EventType(event_type).value
        formatter = _MESSAGE_FORMATTERS.get(event_name)
        message = formatter(data) if formatter else f"Event: {event_name}"
        record = {
            "event_type": event_name,
            "timestamp": self._current_timestamp(),
            "version": __version__,
            "message": message,
            "data": data,
        }

        with self._lock:
            try:
                json_line = json.dumps(
                    _serialize_for_json(record),
                    ensure_ascii=False,
                    default=str,
                    separators=(",", ":"),
                )
                self._file.write(json_line + "\n")
                self._file.flush()
            except (TypeError, ValueError) as e:
                print(f"WARNING: JSON encoding failed for {event_name} event: {e}", file=sys.stderr)
            except OSError as e:
                print(f"WARNING: Failed to write log event: {e}", file=sys.stderr)

    def dump_store(self, store: dict):
        """Overwrite the session store dump with the current contents."""
        if not self.enabled:
            return
        with self._lock:
            try:
                tmp_path = self._store_dump_path.with_suffix(".tmp")
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(_serialize_for_json(store), f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._store_dump_path)
            except OSError as e:
                print(f"WARNING: Failed to dump session store: {e}", file=sys.stderr)

    def trace_render(self, rows: list):
        """Append the keys and histories shown by one render pass."""
        if not self.enabled or self._trace_file is None:
            return
        with self._lock:
            try:
                self._trace_file.write(json.dumps({
                    "timestamp": self._current_timestamp(),
                    "rows": _serialize_for_json(rows),
                }, ensure_ascii=False, default=str, separators=(",", ":")) + "\n")
                self._trace_file.flush()
            except OSError as e:
                print(f"WARNING: Failed to write render trace: {e}", file=sys.stderr)

    def get_log_file_path(self) -> Optional[str]:
        if self._file is not None:
            return str(self._log_path.absolute())
        return None

    def close(self):
        if self._closed:
            return
        self.log(EventType.MONITOR_STOP)
        self._closed = True
        for handle in (self._file, self._trace_file):
            if handle is not None:
                try:
                    handle.close()
                except OSError:
                    pass


class NullSessionLogger(SessionLogger):
    """A no-op logger for when diagnostics are disabled."""

    def __init__(self):
        self._enabled = False
        self._closed = False
        self._file = None
        self._trace_file = None

    def log(self, event_type: EventType, **data):
        pass

    def dump_store(self, store: dict):
        pass

    def trace_render(self, rows: list):
        pass

    def get_log_file_path(self) -> Optional[str]:
        return None

    def close(self):
        pass


def create_session_logger(diagnostics) -> SessionLogger:
    """Factory: SessionLogger if diagnostics are enabled, NullSessionLogger otherwise.

    Args:
        diagnostics: DiagnosticsConfig section of the monitor configuration
    """
    if diagnostics.enabled:
        return SessionLogger(
            logs_directory=diagnostics.logs_directory,
            log_file=diagnostics.log_file,
            store_dump_file=diagnostics.store_dump_file,
            render_trace_file=diagnostics.render_trace_file,
        )
    return NullSessionLogger()
