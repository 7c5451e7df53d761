import json

from monconn import __version__
from monconn.config import DiagnosticsConfig
from monconn.session_logger import (
    EventType,
    NullSessionLogger,
    SessionLogger,
    create_session_logger,
)


def make_logger(tmp_path):
    return create_session_logger(DiagnosticsConfig(enabled=True, logs_directory=str(tmp_path)))


def read_records(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_disabled_diagnostics_use_null_logger(tmp_path):
    logger = create_session_logger(DiagnosticsConfig(enabled=False, logs_directory=str(tmp_path)))
    assert isinstance(logger, NullSessionLogger)
    logger.log(EventType.PARSE_FAILED, line="x")
    logger.dump_store({})
    logger.close()
    assert list(tmp_path.iterdir()) == []


def test_records_are_tagged_jsonl(tmp_path):
    logger = make_logger(tmp_path)
    assert isinstance(logger, SessionLogger)
    logger.log(EventType.CONNECT_SUPPRESSED, key="10.0.0.5-55555", reason="unresolved connect")
    logger.log(
        EventType.VIDEO_CHECK,
        key="10.0.0.5-55555",
        result="mismatch",
        video="showB/ep1",
        stored="showA/ep1",
    )
    logger.close()

    records = read_records(tmp_path / "debug.jsonl")
    assert [r["event_type"] for r in records] == ["connect_suppressed", "video_check", "monitor_stop"]
    assert all(r["version"] == __version__ for r in records)
    assert all(r["timestamp"] for r in records)
    assert "Duplicate connect ignored for 10.0.0.5-55555" in records[0]["message"]
    assert "video mismatch" in records[1]["message"]
    assert records[1]["data"]["stored"] == "showA/ep1"


def test_store_dump_is_overwritten(tmp_path):
    logger = make_logger(tmp_path)
    logger.dump_store({"10.0.0.5-55555": {"entries": [["connect", 100]]}})
    logger.dump_store({"10.0.0.6-66666": {"entries": []}})
    logger.close()

    dump = json.loads((tmp_path / "session_store.json").read_text())
    assert list(dump) == ["10.0.0.6-66666"]


def test_render_trace_appends(tmp_path):
    logger = make_logger(tmp_path)
    logger.trace_render([{"key": "10.0.0.5-55555"}])
    logger.trace_render([])
    logger.close()

    traces = read_records(tmp_path / "render_trace.jsonl")
    assert [t["rows"] for t in traces] == [[{"key": "10.0.0.5-55555"}], []]


def test_new_run_starts_fresh_files(tmp_path):
    first = make_logger(tmp_path)
    first.log(EventType.PARSE_FAILED, line="old")
    first.dump_store({"old": {}})
    first.close()

    second = make_logger(tmp_path)
    assert (tmp_path / "debug.jsonl").read_text() == ""
    assert not (tmp_path / "session_store.json").exists()
    second.close()


def test_logging_after_close_is_ignored(tmp_path):
    logger = make_logger(tmp_path)
    logger.close()
    logger.log(EventType.PARSE_FAILED, line="late")
    assert [r["event_type"] for r in read_records(tmp_path / "debug.jsonl")] == ["monitor_stop"]
