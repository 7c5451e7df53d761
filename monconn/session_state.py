"""State container for tracked sessions.

Holds the session store, last-active times, the duration ledger and color
assignments in one object so every component works on explicit state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from .colors import ColorAllocator
from .parser import CLIENT_ID_PATTERN, IPV4_PATTERN, EventKind


class SessionKey(NamedTuple):
    """(source address, client id) pair identifying one viewer session."""

    address: str
    client_id: str

    def __str__(self) -> str:
        return f"{self.address}-{self.client_id}"

    def is_valid(self) -> bool:
        return bool(IPV4_PATTERN.match(self.address) and CLIENT_ID_PATTERN.match(self.client_id))


@dataclass
class HistoryEntry:
    kind: str
    value: float


@dataclass
class SessionHistory:
    """Ordered event history of one session plus the first video it played."""

    entries: List[HistoryEntry] = field(default_factory=list)
    first_video_name: Optional[str] = None

    def append(self, kind: str, value: float):
        self.entries.append(HistoryEntry(kind, value))

    def last_entry(self) -> Optional[HistoryEntry]:
        return self.entries[-1] if self.entries else None

    def last_of(self, kind: str) -> Optional[HistoryEntry]:
        for entry in reversed(self.entries):
            if entry.kind == kind:
                return entry
        return None

    def has_kind(self, kind: str) -> bool:
        return any(entry.kind == kind for entry in self.entries)

    def has_unresolved_connect(self) -> bool:
        """True when the latest connect has no disconnect recorded after it."""
        for entry in reversed(self.entries):
            if entry.kind == EventKind.DISCONNECT:
                return False
            if entry.kind == EventKind.CONNECT:
                return True
        return False

    def latest_values(self) -> Dict[str, float]:
        """Latest value per kind, in the order kinds were last seen."""
        values: Dict[str, float] = {}
        for entry in self.entries:
            values[entry.kind] = entry.value
        return values

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [[entry.kind, entry.value] for entry in self.entries],
            "video": self.first_video_name,
        }


@dataclass(frozen=True)
class LedgerEntry:
    """Accumulated connected time of a key and when it last disconnected."""

    total: float
    last_disconnect: float


class VideoCheck(str, Enum):
    NEWLY_ASSIGNED = "newly_assigned"
    MATCHES = "matches"
    MISMATCH = "mismatch"


class MonitorState:
    """All mutable monitor state.

    Attributes:
        sessions: Session history per key
        last_active: Time of the last accepted event per key
        ledger: Accumulated connect time per key across reconnects
        colors: Color allocator keyed by source address
        needs_full_redraw: Set when rows may have vanished from the table
    """

    def __init__(self, palette: List[str]):
        self.sessions: Dict[SessionKey, SessionHistory] = {}
        self.last_active: Dict[SessionKey, float] = {}
        self.ledger: Dict[SessionKey, LedgerEntry] = {}
        self.colors = ColorAllocator(palette)
        self.needs_full_redraw = False

    def history(self, key: SessionKey) -> Optional[SessionHistory]:
        return self.sessions.get(key)

    def put(self, key: SessionKey, kind: str, value: float, video_name: Optional[str], now: float):
        """Append ``kind:value`` to the key's history and mark it active.

        The first non-empty video name sticks; later names never replace it.
        """
        history = self.sessions.get(key)
        if history is None:
            history = SessionHistory()
            self.sessions[key] = history
        history.append(kind, value)
        if video_name and history.first_video_name is None:
            history.first_video_name = video_name
        self.last_active[key] = now

    def record_ledger(self, key: SessionKey, entry: LedgerEntry):
        self.ledger[key] = entry

    def check_video_consistency(self, key: SessionKey, video_name: str) -> VideoCheck:
        history = self.sessions.get(key)
        stored = history.first_video_name if history else None
        if stored is None:
            return VideoCheck.NEWLY_ASSIGNED
        if stored == video_name:
            return VideoCheck.MATCHES
        return VideoCheck.MISMATCH

    def session_count(self, address: str) -> int:
        return sum(1 for key in self.sessions if key.address == address)

    def remove(self, key: SessionKey) -> bool:
        """Drop every trace of a key. Returns True if its address lost its color.

        The address color is released only when no other session remains on
        that address. A full redraw is requested so the row disappears.
        """
        self.sessions.pop(key, None)
        self.last_active.pop(key, None)
        self.ledger.pop(key, None)
        self.needs_full_redraw = True
        if self.session_count(key.address) == 0:
            return self.colors.release(key.address)
        return False

    def validate(self, key: SessionKey) -> bool:
        """Purge the key if it does not look like ``IPv4-digits``.

        Returns:
            True if the key is valid and may be committed.
        """
        if key.is_valid():
            return True
        self.remove(key)
        return False

    def sorted_keys(self) -> List[SessionKey]:
        """Keys ordered by their ``address-client`` string, not numeric IP order."""
        return sorted(self.sessions, key=str)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly dump of the session store."""
        return {
            str(key): {
                **self.sessions[key].to_dict(),
                "last_active": self.last_active.get(key),
                "ledger": (
                    [self.ledger[key].total, self.ledger[key].last_disconnect]
                    if key in self.ledger else None
                ),
            }
            for key in self.sorted_keys()
        }
