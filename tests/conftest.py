import pytest

from monconn.config import MonitorConfig
from monconn.session_logger import NullSessionLogger


class FakeClock:
    """Manually advanced clock for driving session timing."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def set(self, now: float):
        self.now = now


class RecordingLogger(NullSessionLogger):
    """Keeps diagnostic events in memory instead of writing files."""

    def __init__(self):
        super().__init__()
        self.events = []
        self.dumps = []

    def log(self, event_type, **data):
        self.events.append((event_type.value, data))

    def dump_store(self, store: dict):
        self.dumps.append(store)

    def of_type(self, event_type: str):
        return [data for name, data in self.events if name == event_type]

    def types(self):
        return [name for name, _ in self.events]


def build_line(event, address="10.0.0.5", client_id="55555", path="-", duration="0.0"):
    """Access log line with the default column layout (22 columns)."""
    fields = ["2024-05-01", "12:00:00", "UTC", event, "stream", "INFO", "200", path]
    fields += ["-"] * 4 + [duration] + ["-"] * 3 + [address] + ["-"] * 4 + [client_id]
    return " ".join(fields)


@pytest.fixture
def log_line():
    return build_line


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return RecordingLogger()


@pytest.fixture
def config():
    return MonitorConfig()
