"""
End-to-end tests of the monitor loop: log lines in, session state and the
rendered table out, with time driven by a fake clock.
"""

import io

import pytest

from monconn import monitor as mon
from monconn.config import MonitorConfig, RefreshConfig
from monconn.renderer import CLEAR_SCREEN
from monconn.session_state import LedgerEntry, SessionKey

KEY = SessionKey("10.0.0.5", "55555")


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def monitor(config, out, recorder, clock):
    return mon.Monitor(config, out, session_logger=recorder, clock=clock)


def feed(monitor, clock, t, line):
    clock.set(t)
    return monitor.process_line(line)


class TestDurations:
    def test_connect_disconnect_cycles_accumulate(self, monitor, clock, log_line, recorder):
        assert feed(monitor, clock, 100, log_line("connect")) == mon.COMMITTED
        assert monitor.state.history(KEY).entries[0].value == 100

        feed(monitor, clock, 160, log_line("disconnect"))
        assert monitor.state.ledger[KEY] == LedgerEntry(60, 160)

        feed(monitor, clock, 300, log_line("connect"))
        feed(monitor, clock, 340, log_line("disconnect"))
        assert monitor.state.ledger[KEY].total == pytest.approx(100)
        assert monitor.state.history(KEY).latest_values()["disconnect"] == pytest.approx(100)

        ledger_events = recorder.of_type("ledger_updated")
        assert [e["elapsed"] for e in ledger_events] == [pytest.approx(60), pytest.approx(40)]

    def test_duplicate_connect_changes_nothing(self, monitor, clock, log_line, recorder):
        feed(monitor, clock, 100, log_line("connect"))
        before = [(e.kind, e.value) for e in monitor.state.history(KEY).entries]

        assert feed(monitor, clock, 150, log_line("connect")) == mon.SUPPRESSED
        assert [(e.kind, e.value) for e in monitor.state.history(KEY).entries] == before
        assert monitor.state.last_active[KEY] == 100
        assert recorder.of_type("connect_suppressed")

        feed(monitor, clock, 200, log_line("disconnect"))
        assert monitor.state.ledger[KEY].total == 100

    def test_non_numeric_duration_is_zero_with_anomaly(self, monitor, clock, log_line, recorder):
        feed(monitor, clock, 1, log_line("play", duration="-"))
        assert monitor.state.history(KEY).latest_values()["play"] == 0
        assert recorder.of_type("duration_anomaly")[0]["kind"] == "play"


class TestVideoNames:
    def test_first_video_wins_and_drift_is_logged(self, monitor, clock, log_line, recorder):
        feed(monitor, clock, 1, log_line("create", path="vod/showA/ep1.mp4", duration="1.0"))
        feed(monitor, clock, 2, log_line("seek", path="vod/showB/ep1.mp4", duration="2.0"))

        assert monitor.state.history(KEY).first_video_name == "showA/ep1"
        checks = recorder.of_type("video_check")
        assert [c["result"] for c in checks] == ["newly_assigned", "mismatch"]
        assert checks[1]["stored"] == "showA/ep1"
        assert checks[1]["video"] == "showB/ep1"

    def test_connect_path_is_not_a_video(self, monitor, clock, log_line, recorder):
        feed(monitor, clock, 1, log_line("connect", path="vod/showA/ep1.mp4"))
        assert monitor.state.history(KEY).first_video_name is None
        assert recorder.of_type("video_check") == []


class TestDiscardedLines:
    def test_comment_line_is_discarded_quietly(self, monitor, clock, log_line, recorder):
        assert feed(monitor, clock, 1, log_line("comment")) == mon.DISCARDED
        assert monitor.state.sessions == {}
        assert monitor.state.last_active == {}
        assert recorder.types() == ["line_received", "line_discarded"]

    def test_unparseable_line(self, monitor, clock, recorder):
        assert feed(monitor, clock, 1, "garbage") == mon.FAILED
        assert recorder.of_type("parse_failed") == [{"line": "garbage"}]
        assert monitor.state.sessions == {}

    def test_ignored_address(self, monitor, clock, log_line):
        assert feed(monitor, clock, 1, log_line("play", address="52.187.110.61")) == mon.IGNORED
        assert monitor.state.sessions == {}

    def test_invalid_key_is_never_rendered(self, monitor, clock, log_line, out, recorder):
        assert feed(monitor, clock, 1, log_line("play", address="edge.example")) == mon.INVALID
        assert monitor.state.sessions == {}
        assert recorder.of_type("key_invalid") == [{"key": "edge.example-55555"}]

        monitor.tick(force_render=True)
        assert "edge.example" not in out.getvalue()


class TestTick:
    def test_rows_rendered_in_key_order(self, monitor, clock, log_line, out):
        feed(monitor, clock, 1, log_line("play", address="10.0.0.9", duration="3"))
        feed(monitor, clock, 1, log_line("play", address="10.0.0.10", duration="4"))
        monitor.tick(force_render=True)

        text = out.getvalue()
        assert text.index("10.0.0.10") < text.index("10.0.0.9")

    def test_shared_address_rows_are_colored(self, monitor, clock, log_line, out, recorder):
        feed(monitor, clock, 1, log_line("play", client_id="11111"))
        feed(monitor, clock, 1, log_line("play", client_id="22222"))
        feed(monitor, clock, 1, log_line("play", address="10.0.0.6", client_id="33333"))
        monitor.tick(force_render=True)

        text = out.getvalue()
        assert text.count("\x1b[92m10.0.0.5") == 2
        assert "\x1b[92m10.0.0.6" not in text
        assert recorder.of_type("color_assigned") == [{"address": "10.0.0.5", "color": "\x1b[92m"}]

    def test_eviction_forces_full_redraw(self, monitor, clock, log_line, out, recorder):
        feed(monitor, clock, 0, log_line("connect"))
        feed(monitor, clock, 10, log_line("disconnect"))
        monitor.tick()
        assert CLEAR_SCREEN not in out.getvalue()

        clock.set(71)
        monitor.tick()
        assert monitor.state.sessions == {}
        assert CLEAR_SCREEN in out.getvalue()
        assert recorder.of_type("session_evicted")[0]["reason"] == "disconnected"

    def test_idle_eviction_and_color_release(self, monitor, clock, log_line, recorder):
        feed(monitor, clock, 0, log_line("play", client_id="11111"))
        feed(monitor, clock, 0, log_line("play", client_id="22222"))
        monitor.tick()
        assert monitor.state.colors.get("10.0.0.5") is not None

        clock.set(14401)
        monitor.tick()
        assert monitor.state.sessions == {}
        assert monitor.state.colors.get("10.0.0.5") is None
        assert recorder.of_type("color_released") == [{"address": "10.0.0.5"}]

    def test_render_waits_for_update_interval(self, config, out, recorder, clock, log_line):
        config.refresh = RefreshConfig(update_interval=5)
        monitor = mon.Monitor(config, out, session_logger=recorder, clock=clock)
        monitor.tick()
        drawn = out.getvalue()

        feed(monitor, clock, 2, log_line("play"))
        monitor.tick()
        assert out.getvalue() == drawn

        clock.set(5)
        monitor.tick()
        assert "10.0.0.5" in out.getvalue()


def test_run_redraws_after_every_line(monitor, clock, log_line, out, recorder):
    monitor.run([log_line("connect"), log_line("play", duration="2.5")])

    text = out.getvalue()
    assert text.startswith(CLEAR_SCREEN)
    assert text.count("\x1b[3;1H") == 2
    assert " 2.5" in text
    assert recorder.types()[0] == "monitor_start"


def test_timer_mode_thread_starts_and_stops(out, recorder, clock):
    config = MonitorConfig(refresh=RefreshConfig(mode="timer", update_interval=0.05))
    monitor = mon.Monitor(config, out, session_logger=recorder, clock=clock)
    monitor.start()
    assert monitor._timer_thread is not None
    assert monitor._timer_thread.is_alive()
    monitor.stop()
    assert monitor._timer_thread is None
