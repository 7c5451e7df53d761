"""Duration reconciliation for incoming events.

Decides which value to record for an event: the connect moment for
``connect``, the accumulated connected time for ``disconnect`` and the raw
duration column for everything else. Pure functions over the existing
history and ledger; the caller applies the result to the state.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .parser import EventKind, parse_duration
from .session_state import LedgerEntry, SessionHistory


@dataclass(frozen=True)
class Commit:
    """Record ``value`` for the event.

    Attributes:
        value: Value to append to the session history
        elapsed: For disconnect, the connected time of this cycle alone
        ledger: For disconnect, the ledger entry replacing the key's previous one
        anomalies: Human-readable notes about defaulted or unadjusted values
    """

    value: float
    elapsed: Optional[float] = None
    ledger: Optional[LedgerEntry] = None
    anomalies: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Suppress:
    """Drop the event without touching any state."""

    reason: str


Reconciliation = Union[Commit, Suppress]


def _is_number(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value >= 0


def reconcile_connect(history: Optional[SessionHistory], now: float) -> Reconciliation:
    if history is not None and history.has_unresolved_connect():
        connect = history.last_of(EventKind.CONNECT)
        return Suppress(f"unresolved connect at {connect.value} already recorded")
    return Commit(value=now)


def reconcile_disconnect(
    history: Optional[SessionHistory],
    ledger: Optional[LedgerEntry],
    now: float,
) -> Commit:
    """Connected time since the latest connect, plus the ledger total.

    Without a connect in the history the value falls back to the latest
    disconnect, then to the latest entry of any kind, then to 0.
    """
    anomalies: List[str] = []
    connect = history.last_of(EventKind.CONNECT) if history else None
    if connect is not None:
        if _is_number(connect.value):
            elapsed = now - connect.value
        else:
            anomalies.append(f"connect moment not numeric: {connect.value!r}")
            elapsed = 0.0
    else:
        previous = None
        if history is not None:
            previous = history.last_of(EventKind.DISCONNECT) or history.last_entry()
        elapsed = previous.value if previous is not None else 0.0

    value = elapsed
    if ledger is not None:
        if _is_number(ledger.total) and _is_number(elapsed):
            value = elapsed + ledger.total
        else:
            anomalies.append(f"ledger not numeric: total={ledger.total!r}, elapsed={elapsed!r}")

    return Commit(
        value=value,
        elapsed=elapsed,
        ledger=LedgerEntry(total=value, last_disconnect=now),
        anomalies=anomalies,
    )


def reconcile_other(raw_duration: Optional[str]) -> Commit:
    duration = parse_duration(raw_duration)
    if duration is None:
        return Commit(value=0.0, anomalies=[f"duration column not numeric: {raw_duration!r}"])
    return Commit(value=duration)


def reconcile(
    kind: str,
    history: Optional[SessionHistory],
    ledger: Optional[LedgerEntry],
    now: float,
    raw_duration: Optional[str],
) -> Reconciliation:
    """Compute the value to commit for an event, or suppress it."""
    if kind == EventKind.CONNECT:
        return reconcile_connect(history, now)
    if kind == EventKind.DISCONNECT:
        return reconcile_disconnect(history, ledger, now)
    return reconcile_other(raw_duration)
