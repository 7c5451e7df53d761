"""Live table rendering.

TableRenderer decides what the table looks like; Screen owns the terminal
escape sequences for clearing and repositioning.
"""

import math
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO

from .colors import RESET
from .config import DURATION_KINDS, DisplayConfig

HEADER_LABELS = ("IP", "connect", "creat", "play", "seek", "stop", "destry", "discnt")
PLACEHOLDER = "?"
FIRST_ROW = 3

CLEAR_SCREEN = "\x1b[2J"
CURSOR_HOME = "\x1b[H"
_WIDTH_SPEC = re.compile(r"%-?([0-9]+)s")


@dataclass(frozen=True)
class RowData:
    """Everything needed to draw one session row."""

    address: str
    client_id: str
    video_name: Optional[str]
    durations: Dict[str, float]
    color: Optional[str] = None


def separator_line(format_string: str) -> str:
    """Dashes under every column, ``+`` where the columns meet."""
    out = []
    rest = format_string
    while rest:
        match = _WIDTH_SPEC.match(rest)
        if match:
            out.append("-" * int(match.group(1)))
            rest = rest[match.end():]
            continue
        char = rest[0]
        out.append({" ": "-", "|": "+"}.get(char, char))
        rest = rest[1:]
    return "".join(out)


class TableRenderer:
    def __init__(self, display: DisplayConfig):
        self.display = display
        self.widths = [display.address_width, display.connect_width] + display.duration_widths
        self.format_string = " | ".join(f"%-{width}s" for width in self.widths)

    def format_row(self, cells) -> str:
        return self.format_string % tuple(cells)

    def header_lines(self) -> List[str]:
        return [self.format_row(HEADER_LABELS), separator_line(self.format_string)]

    def format_duration(self, value: Optional[float], width: int) -> str:
        """Align a duration on its decimal point inside ``width`` columns."""
        if value is None:
            return " " * width
        if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
            return PLACEHOLDER.rjust(width)
        places = self.display.decimal_places
        int_width = max(width - places - 1, 1)
        integer_part, fractional_part = f"{value:.{places}f}".split(".")
        return f"{integer_part.rjust(int_width)}.{fractional_part}"

    def display_field(self, row: RowData) -> str:
        if self.display.target_mode and row.video_name:
            text = row.video_name
        else:
            text = row.client_id
        return text[:self.display.connect_width]

    def render_row(self, row: RowData) -> str:
        cells = [row.address, self.display_field(row)]
        for kind, width in zip(DURATION_KINDS, self.display.duration_widths):
            cells.append(self.format_duration(row.durations.get(kind), width))
        line = self.format_row(cells)
        if row.color:
            return f"{row.color}{line}{RESET}"
        return line

    def render_rows(self, rows: List[RowData]) -> List[str]:
        return [self.render_row(row) for row in rows]


class Screen:
    """Terminal output: full redraws and in-place row refreshes."""

    def __init__(self, stream: TextIO, renderer: TableRenderer):
        self.stream = stream
        self.renderer = renderer

    def full_redraw(self):
        self.stream.write(CLEAR_SCREEN + CURSOR_HOME)
        for line in self.renderer.header_lines():
            self.stream.write(line + "\n")
        self.stream.flush()

    def draw_rows(self, rows: List[RowData]):
        self.stream.write(f"\x1b[{FIRST_ROW};1H")
        for line in self.renderer.render_rows(rows):
            self.stream.write(line + "\n")
        self.stream.flush()
