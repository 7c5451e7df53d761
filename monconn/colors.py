"""Per-address color allocation for addresses hosting concurrent sessions."""

from typing import Dict, List, Optional

RESET = "\x1b[0m"


def sgr(code: str) -> str:
    """ANSI select-graphic-rendition escape for a palette code."""
    return f"\x1b[{code}m"


class ColorAllocator:
    """Assigns palette colors to source addresses.

    An address gets a color the first time a render pass sees it with two or
    more tracked sessions, and keeps it until it has no sessions left. The
    allocation index only moves forward and wraps around the palette, so
    colors repeat once the palette is exhausted.
    """

    def __init__(self, palette: List[str]):
        if not palette:
            raise ValueError("color palette must not be empty")
        self._palette = [sgr(code) for code in palette]
        self._next_index = 0
        self._assigned: Dict[str, str] = {}

    @property
    def next_index(self) -> int:
        return self._next_index

    def get(self, address: str) -> Optional[str]:
        return self._assigned.get(address)

    def assign(self, address: str, session_count: int) -> tuple[Optional[str], bool]:
        """Return the row color for an address with ``session_count`` sessions.

        Returns:
            (color, newly_assigned). color is None when the address has fewer
            than two sessions and the row stays uncolored.
        """
        if session_count < 2:
            return None, False
        color = self._assigned.get(address)
        if color is not None:
            return color, False
        color = self._palette[self._next_index % len(self._palette)]
        self._assigned[address] = color
        self._next_index += 1
        return color, True

    def release(self, address: str) -> bool:
        """Forget the address's color. Returns True if one was assigned."""
        return self._assigned.pop(address, None) is not None

    def assignments(self) -> Dict[str, str]:
        return dict(self._assigned)
