"""Curses frontend for consoles without a display server."""

from __future__ import annotations

import curses

from hwqual.domain.events import Event, Resize, SubmitText
from hwqual.domain.models import Phase
from hwqual.domain.settings import APP_NAME, DisplayPattern
from hwqual.ui.keymap import KEY_BACKSPACE, KEY_ENTER, KEY_ESCAPE, KEY_OTHER, intent_for_key
from hwqual.ui.view import SessionView, body_lines

TRACE_ROWS = 4
COLOR_PAIRS = {"red": 1, "green": 2, "blue": 3}
TITLE_PAIR = 4
CALIBRATION_BARS = (
    curses.COLOR_WHITE,
    curses.COLOR_YELLOW,
    curses.COLOR_CYAN,
    curses.COLOR_GREEN,
    curses.COLOR_MAGENTA,
    curses.COLOR_RED,
    curses.COLOR_BLUE,
    curses.COLOR_BLACK,
)
GRID_CELL_COLS = 8
GRID_CELL_ROWS = 4
CALIBRATION_PAIR_BASE = 10


def key_name(key: int) -> str | None:
    if key in (curses.KEY_ENTER, 10, 13):
        return KEY_ENTER
    if key == 27:
        return KEY_ESCAPE
    if key in (curses.KEY_BACKSPACE, 8, 127):
        return KEY_BACKSPACE
    if 32 <= key < 127:
        return chr(key)
    if key < 0:
        return None
    return KEY_OTHER


class TerminalFrontend:
    def __init__(self, stdscr: "curses.window") -> None:
        self.stdscr = stdscr
        self._view: SessionView | None = None
        self._buffer = ""
        self._colors = False
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        stdscr.keypad(True)
        if curses.has_colors():
            curses.start_color()
            curses.init_pair(COLOR_PAIRS["red"], curses.COLOR_WHITE, curses.COLOR_RED)
            curses.init_pair(COLOR_PAIRS["green"], curses.COLOR_BLACK, curses.COLOR_GREEN)
            curses.init_pair(COLOR_PAIRS["blue"], curses.COLOR_WHITE, curses.COLOR_BLUE)
            curses.init_pair(TITLE_PAIR, curses.COLOR_CYAN, curses.COLOR_BLACK)
            for offset, color in enumerate(CALIBRATION_BARS):
                curses.init_pair(CALIBRATION_PAIR_BASE + offset, curses.COLOR_BLACK, color)
            self._colors = True

    def render(self, view: SessionView) -> None:
        self._view = view
        if view.phase is not Phase.ENTER_SERIAL:
            self._buffer = ""
        self.stdscr.erase()
        height, width = self.stdscr.getmaxyx()
        if view.phase is Phase.DISPLAY_TEST and view.pattern is not None:
            self._draw_pattern(view.pattern, height, width)
            self._put(height - 1, 0, view.pattern.label, width)
        else:
            self._draw_page(view, height, width)
        self.stdscr.refresh()

    def poll_input(self, timeout_sec: float) -> Event | None:
        self.stdscr.timeout(max(0, int(timeout_sec * 1000)))
        key = self.stdscr.getch()
        if key == -1:
            return None
        if key == curses.KEY_RESIZE:
            height, width = self.stdscr.getmaxyx()
            return Resize(width=width, height=height)
        name = key_name(key)
        if name is None or self._view is None:
            return None
        if self._view.phase is Phase.ENTER_SERIAL:
            if name == KEY_ENTER:
                return SubmitText(self._buffer)
            if name == KEY_BACKSPACE:
                self._buffer = self._buffer[:-1]
                return None
            if len(name) == 1:
                self._buffer += name
                return None
        return intent_for_key(self._view.phase, name)

    def close(self) -> None:
        try:
            curses.curs_set(1)
        except curses.error:
            pass

    def _put(self, row: int, col: int, text: str, width: int, attr: int = curses.A_NORMAL) -> None:
        if row < 0 or col >= width:
            return
        try:
            self.stdscr.addnstr(row, col, text, max(0, width - col - 1), attr)
        except curses.error:
            pass

    def _draw_page(self, view: SessionView, height: int, width: int) -> None:
        title_attr = curses.color_pair(TITLE_PAIR) | curses.A_BOLD if self._colors else curses.A_BOLD
        self._put(0, 0, APP_NAME, width, curses.A_DIM)
        self._put(1, 0, view.title, width, title_attr)
        body = body_lines(view)
        if view.phase is Phase.ENTER_SERIAL:
            body = body + [f"> {self._buffer}_"]
        trace_top = max(3, height - TRACE_ROWS - 1)
        for offset, line in enumerate(body):
            row = 3 + offset
            if row >= trace_top:
                break
            self._put(row, 0, line, width)
        self._put(trace_top, 0, "-" * (width - 1), width, curses.A_DIM)
        for offset, line in enumerate(view.trace[-TRACE_ROWS:]):
            self._put(trace_top + 1 + offset, 0, line, width, curses.A_DIM)

    def _draw_pattern(self, pattern: DisplayPattern, height: int, width: int) -> None:
        if pattern.rgb is not None:
            attr = curses.color_pair(COLOR_PAIRS.get(pattern.key, 0)) if self._colors else curses.A_REVERSE
            for row in range(height - 1):
                self._put(row, 0, " " * width, width + 1, attr)
            return
        # Colour bars on top, a character grid below for geometry checks.
        bar_rows = max(1, (height - 1) // 2)
        bar_width = max(1, width // len(CALIBRATION_BARS))
        for row in range(bar_rows):
            for index in range(len(CALIBRATION_BARS)):
                attr = curses.color_pair(CALIBRATION_PAIR_BASE + index) if self._colors else curses.A_REVERSE
                self._put(row, index * bar_width, " " * bar_width, width + 1, attr)
        ruled = "".join("+" if col % GRID_CELL_COLS == 0 else "-" for col in range(width))
        open_row = "".join("|" if col % GRID_CELL_COLS == 0 else " " for col in range(width))
        for row in range(bar_rows, height - 1):
            self._put(row, 0, ruled if (row - bar_rows) % GRID_CELL_ROWS == 0 else open_row, width + 1)
