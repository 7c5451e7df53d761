"""Exceptions raised at the edges of the monitor (config, log source)."""


class MonitorError(Exception):
    """Base class for errors that stop the monitor at start-up."""


class ConfigError(MonitorError):
    """Invalid configuration file or command-line value."""


class LogSourceError(MonitorError):
    """The access log is missing or unreadable."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read log file {path}: {reason}")
