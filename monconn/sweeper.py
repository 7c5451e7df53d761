"""Eviction of idle and disconnected sessions."""

from dataclasses import dataclass
from typing import List

from .config import EvictionConfig
from .parser import EventKind
from .session_state import MonitorState, SessionKey

REASON_IDLE = "idle"
REASON_DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class Eviction:
    key: SessionKey
    reason: str
    idle_seconds: float
    color_released: bool


def sweep(state: MonitorState, now: float, thresholds: EvictionConfig) -> List[Eviction]:
    """Remove sessions idle past the idle threshold, or disconnected past the grace period.

    Returns the evictions performed, in key order.
    """
    evictions: List[Eviction] = []
    for key in state.sorted_keys():
        idle = now - state.last_active.get(key, now)
        if idle > thresholds.idle_threshold:
            reason = REASON_IDLE
        elif idle > thresholds.disconnect_grace and state.sessions[key].has_kind(EventKind.DISCONNECT):
            reason = REASON_DISCONNECTED
        else:
            continue
        released = state.remove(key)
        evictions.append(Eviction(key=key, reason=reason, idle_seconds=idle, color_released=released))
    return evictions
