"""
The monitor loop: parse, reconcile, commit, sweep, render.

Each access log line goes through process_line(); tick() then sweeps stale
sessions and refreshes the table. In the default "input" refresh mode tick()
runs and redraws once per line, so nothing is evicted or redrawn while the
log is quiet. The "timer" mode moves tick() onto a background thread running
every refresh.update_interval seconds instead; every state access then goes
through one lock and rendering works on a snapshot.
"""

import threading
import time
from typing import Callable, Iterable, List, Optional, TextIO

from .config import MonitorConfig
from .parser import EventKind, EventRecord, normalize_video_name, parse_line
from .reconciler import Commit, Suppress, reconcile
from .renderer import RowData, Screen, TableRenderer
from .session_logger import EventType, NullSessionLogger, SessionLogger
from .session_state import MonitorState, SessionKey
from .sweeper import sweep

# process_line() outcomes
COMMITTED = "committed"
SUPPRESSED = "suppressed"
DISCARDED = "discarded"
IGNORED = "ignored"
FAILED = "failed"
INVALID = "invalid"


class Monitor:
    """Drives the session engine for one access log.

    Args:
        config: Monitor configuration
        stream: Where the live table is written (usually sys.stdout)
        session_logger: Diagnostic logger (no-op by default)
        clock: Source of the current time in seconds
    """

    def __init__(
        self,
        config: MonitorConfig,
        stream: TextIO,
        session_logger: Optional[SessionLogger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.clock = clock
        self.logger = session_logger or NullSessionLogger()
        self.state = MonitorState(config.display.color_palette)
        self.renderer = TableRenderer(config.display)
        self.screen = Screen(stream, self.renderer)
        self._ignored = set(config.ignore_addresses)
        self._lock = threading.Lock()
        self._last_render: Optional[float] = None
        self._stop = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None

    @property
    def timer_mode(self) -> bool:
        return self.config.refresh.mode == "timer"

    # ------------------------------------------------------------------
    # Per-line processing
    # ------------------------------------------------------------------

    def process_line(self, line: str) -> str:
        """Apply one raw log line to the state. Returns the outcome."""
        self.logger.log(EventType.LINE_RECEIVED, line=line)

        record = parse_line(line, self.config.columns)
        if record is None:
            self.logger.log(EventType.PARSE_FAILED, line=line)
            return FAILED
        if record.is_comment:
            self.logger.log(EventType.LINE_DISCARDED, reason="comment")
            return DISCARDED
        if record.source_address in self._ignored:
            self.logger.log(EventType.ADDRESS_IGNORED, address=record.source_address)
            return IGNORED

        with self._lock:
            return self._apply(record, self.clock())

    def _apply(self, record: EventRecord, now: float) -> str:
        key = SessionKey(record.source_address, record.client_id)
        if not self.state.validate(key):
            self.logger.log(EventType.KEY_INVALID, key=str(key))
            return INVALID

        history = self.state.history(key)
        result = reconcile(record.kind, history, self.state.ledger.get(key), now, record.raw_duration)
        if isinstance(result, Suppress):
            self.logger.log(EventType.CONNECT_SUPPRESSED, key=str(key), reason=result.reason)
            return SUPPRESSED

        if result.anomalies:
            self.logger.log(EventType.DURATION_ANOMALY, key=str(key), kind=record.kind, anomalies=result.anomalies)

        video_name = normalize_video_name(
            record.asset_path,
            record.kind,
            self.config.display.video_root_prefix,
            self.config.display.connect_width,
        )
        if video_name:
            check = self.state.check_video_consistency(key, video_name)
            stored = history.first_video_name if history else None
            self.logger.log(EventType.VIDEO_CHECK, key=str(key), result=check.value, video=video_name, stored=stored)

        self._commit(key, record, result, video_name, now)
        return COMMITTED

    def _commit(self, key: SessionKey, record: EventRecord, result: Commit, video_name: Optional[str], now: float):
        if result.ledger is not None:
            self.state.record_ledger(key, result.ledger)
            self.logger.log(
                EventType.LEDGER_UPDATED,
                key=str(key),
                elapsed=result.elapsed,
                total=result.ledger.total,
                last_disconnect=result.ledger.last_disconnect,
            )
        self.state.put(key, record.kind, result.value, video_name, now)
        self.logger.log(EventType.EVENT_COMMITTED, key=str(key), kind=record.kind, value=result.value)
        self.logger.dump_store(self.state.to_dict())

    # ------------------------------------------------------------------
    # Sweep and render
    # ------------------------------------------------------------------

    def tick(self, force_render: bool = False):
        """Evict stale sessions, then redraw if due."""
        with self._lock:
            now = self.clock()
            for eviction in sweep(self.state, now, self.config.eviction):
                self.logger.log(
                    EventType.SESSION_EVICTED,
                    key=str(eviction.key),
                    reason=eviction.reason,
                    idle_seconds=eviction.idle_seconds,
                )
                if eviction.color_released:
                    self.logger.log(EventType.COLOR_RELEASED, address=eviction.key.address)

            full_redraw = self.state.needs_full_redraw
            due = (
                force_render
                or full_redraw
                or self._last_render is None
                or now - self._last_render >= self.config.refresh.update_interval
            )
            if not due:
                return
            rows = self._collect_rows()
            self.state.needs_full_redraw = False
            self._last_render = now

        # Rows are a snapshot; drawing happens outside the lock
        if full_redraw:
            self.screen.full_redraw()
        self.screen.draw_rows(rows)
        self.logger.trace_render([
            {"key": f"{row.address}-{row.client_id}", "video": row.video_name, "durations": row.durations}
            for row in rows
        ])

    def _collect_rows(self) -> List[RowData]:
        """Snapshot the store as row data, assigning colors to shared addresses."""
        keys = self.state.sorted_keys()
        counts: dict = {}
        for key in keys:
            counts[key.address] = counts.get(key.address, 0) + 1

        rows = []
        for key in keys:
            history = self.state.sessions[key]
            color, newly_assigned = self.state.colors.assign(key.address, counts[key.address])
            if newly_assigned:
                self.logger.log(EventType.COLOR_ASSIGNED, address=key.address, color=color)
            durations = {
                kind: value
                for kind, value in history.latest_values().items()
                if kind != EventKind.CONNECT
            }
            rows.append(RowData(
                address=key.address,
                client_id=key.client_id,
                video_name=history.first_video_name,
                durations=durations,
                color=color,
            ))
        return rows

    # ------------------------------------------------------------------
    # Driving loop
    # ------------------------------------------------------------------

    def _timer_loop(self):
        interval = max(self.config.refresh.update_interval, 0.05)
        while not self._stop.wait(interval):
            self.tick()

    def start(self):
        """Draw the empty table, and start the refresh thread in timer mode."""
        self.logger.log(
            EventType.MONITOR_START,
            log_file=self.config.log_file,
            refresh_mode=self.config.refresh.mode,
            config=self.config,
        )
        self.screen.full_redraw()
        if self.timer_mode and self._timer_thread is None:
            self._timer_thread = threading.Thread(target=self._timer_loop, name="monconn-refresh", daemon=True)
            self._timer_thread.start()

    def stop(self):
        self._stop.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout=5)
            self._timer_thread = None
        self.logger.close()

    def run(self, lines: Iterable[str]):
        """Consume lines until the source ends or the process is interrupted."""
        self.start()
        try:
            for line in lines:
                self.process_line(line)
                if not self.timer_mode:
                    self.tick(force_render=True)
        finally:
            self.stop()
