"""Follow a growing log file the way ``tail -F`` does.

The generator survives log rotation (the path now points at a new file) and
truncation (the file shrank below the read offset) by reopening the path and
reading it from the start.
"""

import os
import time
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional

from .errors import LogSourceError

TAIL_BLOCK_SIZE = 64 * 1024


def open_log_source(path) -> Path:
    """Check the log file exists and is readable before following it."""
    log_path = Path(path)
    if not log_path.exists():
        raise LogSourceError(log_path, "file does not exist")
    if not log_path.is_file():
        raise LogSourceError(log_path, "not a regular file")
    try:
        with open(log_path, "rb"):
            pass
    except OSError as e:
        raise LogSourceError(log_path, str(e)) from e
    return log_path


def _decode(raw: bytes) -> str:
    return raw.rstrip(b"\r").decode("utf-8", errors="replace")


class _Follower:
    """Byte-offset reader over one path, reopened on rotation or truncation."""

    def __init__(self, path: Path):
        self.path = path
        self._file: Optional[BinaryIO] = None
        self._inode: Optional[int] = None
        self._partial = b""

    def open(self, offset: int = 0) -> bool:
        self.close()
        try:
            self._file = open(self.path, "rb")
        except OSError:
            return False
        self._inode = os.fstat(self._file.fileno()).st_ino
        self._file.seek(offset)
        return True

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
        self._partial = b""

    def tail(self, count: int) -> List[str]:
        """Skip to the end of the file, returning its last ``count`` lines."""
        if self._file is None:
            return []
        return last_lines(self._file, count)

    def read_lines(self) -> List[str]:
        """Complete lines appended since the last call."""
        if self._file is None:
            return []
        chunk = self._file.read()
        if not chunk:
            return []
        parts = (self._partial + chunk).split(b"\n")
        self._partial = parts.pop()
        return [_decode(part) for part in parts]

    def replaced(self) -> bool:
        """True when the path was rotated, truncated or removed."""
        if self._file is None:
            return True
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return True
        if stat.st_ino != self._inode:
            return True
        return stat.st_size < self._file.tell()


def last_lines(handle: BinaryIO, count: int, block_size: int = TAIL_BLOCK_SIZE) -> List[str]:
    """Return the last ``count`` complete lines between the handle position and EOF.

    The file is read backwards in blocks until enough newlines are seen. The
    handle is left positioned right after the last complete line, so a
    trailing partial line is read again once it is finished.
    """
    start = handle.tell()
    position = handle.seek(0, os.SEEK_END)
    data = b""
    while position > start and data.count(b"\n") <= count:
        step = min(block_size, position - start)
        position -= step
        handle.seek(position)
        data = handle.read(step) + data

    cut = data.rfind(b"\n")
    if cut == -1:
        handle.seek(start)
        return []
    handle.seek(position + cut + 1)
    if count <= 0:
        return []

    lines = data[:cut].split(b"\n")
    if position > start:
        # The first piece may begin mid-line
        lines = lines[1:]
    return [_decode(line) for line in lines[-count:]]


def follow(path, poll_interval: float = 0.25, initial_lines: int = 10) -> Iterator[str]:
    """Yield the last ``initial_lines`` lines of ``path``, then every appended line forever."""
    follower = _Follower(Path(path))
    initial = follower.tail(initial_lines) if follower.open(0) else []

    try:
        yield from initial
        while True:
            lines = follower.read_lines()
            if lines:
                yield from lines
                continue
            if follower.replaced():
                # Drain what the old file still holds before switching over
                yield from follower.read_lines()
                if not follower.open(0):
                    follower.close()
            time.sleep(poll_interval)
    finally:
        follower.close()
