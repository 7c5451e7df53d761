"""Access log line parsing and video-name normalization."""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import List, Optional

from .config import LogColumns

CLIENT_ID_PATTERN = re.compile(r"^[0-9]{5,10}$")
IPV4_PATTERN = re.compile(r"^[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}$")
DATE_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
TIME_PATTERN = re.compile(r"^[0-9]{2}:[0-9]{2}:[0-9]{2}$")
DURATION_PATTERN = re.compile(r"^[0-9]+(\.[0-9]+)?$")

# Marker used by the access log for an empty column
MISSING = "-"


class EventKind(str, Enum):
    """Event kinds the monitor understands. Any other value is kept as a raw string."""

    CONNECT = "connect"
    CREATE = "create"
    PLAY = "play"
    SEEK = "seek"
    STOP = "stop"
    DESTROY = "destroy"
    DISCONNECT = "disconnect"
    COMMENT = "comment"


@dataclass(frozen=True)
class EventRecord:
    """One parsed log line.

    Attributes:
        kind: Event kind column (an EventKind value or an unrecognized string)
        source_address: Client address column
        client_id: 5-10 digit client identifier ("" for comment lines)
        asset_path: Stream/asset path column, None when the column is absent
        raw_duration: Duration column as written, None when absent
    """

    kind: str
    source_address: str
    client_id: str
    asset_path: Optional[str] = None
    raw_duration: Optional[str] = None

    @property
    def is_comment(self) -> bool:
        return self.kind == EventKind.COMMENT


def _column(fields: List[str], index: int) -> Optional[str]:
    if index < len(fields):
        return fields[index]
    return None


def find_client_id(fields: List[str], index: int) -> Optional[str]:
    """Resolve the client id from its column, or scan the line as a fallback.

    The fallback only applies to lines that start with a date and a time stamp,
    and takes the first 5-10 digit token after them.
    """
    candidate = _column(fields, index)
    if candidate is not None and CLIENT_ID_PATTERN.match(candidate):
        return candidate

    if len(fields) >= 2 and DATE_PATTERN.match(fields[0]) and TIME_PATTERN.match(fields[1]):
        for token in fields[2:]:
            if CLIENT_ID_PATTERN.match(token):
                return token
    return None


def parse_line(line: str, columns: LogColumns) -> Optional[EventRecord]:
    """Parse one raw access log line into an EventRecord.

    Returns None when the event kind, the source address or the client id
    cannot be resolved. Comment lines are returned without a client id so the
    caller can discard them explicitly.
    """
    fields = line.split()
    kind = _column(fields, columns.event_kind)
    if not kind or kind == MISSING:
        return None

    address = _column(fields, columns.source_address) or ""
    if kind == EventKind.COMMENT:
        return EventRecord(kind=kind, source_address=address, client_id="")

    if not address or address == MISSING:
        return None

    client_id = find_client_id(fields, columns.client_id)
    if client_id is None:
        return None

    return EventRecord(
        kind=kind,
        source_address=address,
        client_id=client_id,
        asset_path=_column(fields, columns.asset_path),
        raw_duration=_column(fields, columns.duration),
    )


def parse_duration(raw: Optional[str]) -> Optional[float]:
    """Non-negative integer or decimal duration, else None."""
    if raw is None or not DURATION_PATTERN.match(raw):
        return None
    return float(raw)


def normalize_video_name(asset_path: Optional[str], kind: str, root_prefix: str, width: int) -> Optional[str]:
    """Reduce an asset path to a short display identifier.

    Connect and disconnect events carry no asset, and only paths under the
    root prefix are videos. ``vod/showA/ep1.mp4`` becomes ``showA/ep1``,
    ``vod/ep1.mp4`` becomes ``ep1``. The result is cut to ``width`` characters.
    """
    if kind in (EventKind.CONNECT, EventKind.DISCONNECT):
        return None
    if not asset_path or not asset_path.startswith(root_prefix):
        return None

    segments = [s for s in asset_path[len(root_prefix):].split("/") if s]
    if not segments:
        return None

    if len(segments) >= 2:
        name = f"{segments[0]}/{PurePosixPath(segments[1]).stem}"
    else:
        name = PurePosixPath(segments[0]).stem

    return name[:width] or None
