#!/usr/bin/env python3
"""HW Qualification Wizard

Operator-facing hardware qualification for freshly built units.
- Collects a hardware inventory and shows it for review.
- Runs a colour / calibration display test.
- Verifies the serial number typed by the operator and writes an audit log.
"""

from __future__ import annotations

import argparse
import sys
from collections import deque
from pathlib import Path

from PyQt5 import QtCore, QtGui, QtWidgets

from hwqual.domain.events import Event, Quit, Resize, SubmitText
from hwqual.domain.models import Phase
from hwqual.domain.settings import APP_NAME, FRONTENDS, LOG_FORMATS, DisplayPattern, WizardConfig
from hwqual.services.config_store import apply_overrides, load_config
from hwqual.services.privileges import is_admin
from hwqual.services.wizard_runner import WizardRunner
from hwqual.ui.keymap import KEY_BACKSPACE, KEY_ENTER, KEY_ESCAPE, KEY_OTHER, intent_for_key
from hwqual.ui.view import SessionView, body_lines

GREY_RAMP_STEPS = 16
GRID_SPACING_PX = 64
CALIBRATION_BLOCKS = (
    (255, 255, 255),
    (255, 255, 0),
    (0, 255, 255),
    (0, 255, 0),
    (255, 0, 255),
    (255, 0, 0),
    (0, 0, 255),
    (0, 0, 0),
)
HUE_STOPS = (
    (0.0, QtCore.Qt.red),
    (1 / 6, QtCore.Qt.yellow),
    (2 / 6, QtCore.Qt.green),
    (3 / 6, QtCore.Qt.cyan),
    (4 / 6, QtCore.Qt.blue),
    (5 / 6, QtCore.Qt.magenta),
    (1.0, QtCore.Qt.red),
)
MODIFIER_KEYS = (QtCore.Qt.Key_Shift, QtCore.Qt.Key_Control, QtCore.Qt.Key_Alt, QtCore.Qt.Key_Meta)


def qt_key_name(event: QtGui.QKeyEvent) -> str | None:
    key = event.key()
    if key in (QtCore.Qt.Key_Return, QtCore.Qt.Key_Enter):
        return KEY_ENTER
    if key == QtCore.Qt.Key_Escape:
        return KEY_ESCAPE
    if key == QtCore.Qt.Key_Backspace:
        return KEY_BACKSPACE
    if key in MODIFIER_KEYS:
        return None
    text = event.text()
    if len(text) == 1 and text.isprintable():
        return text
    return KEY_OTHER


class PatternWidget(QtWidgets.QWidget):
    def __init__(self, parent: QtWidgets.QWidget | None = None) -> None:
        super().__init__(parent)
        self._pattern: DisplayPattern | None = None
        self._caption = ""

    def set_pattern(self, pattern: DisplayPattern | None, caption: str) -> None:
        if pattern == self._pattern and caption == self._caption:
            return
        self._pattern = pattern
        self._caption = caption
        self.update()

    def paintEvent(self, _event: QtGui.QPaintEvent) -> None:
        painter = QtGui.QPainter(self)
        rect = self.rect()
        if self._pattern is None:
            painter.fillRect(rect, QtCore.Qt.black)
        elif self._pattern.rgb is not None:
            painter.fillRect(rect, QtGui.QColor(*self._pattern.rgb))
        else:
            self._paint_calibration(painter, rect)
        if self._caption:
            painter.setPen(QtCore.Qt.white)
            caption_rect = QtCore.QRect(0, rect.height() - 40, rect.width(), 40)
            painter.fillRect(caption_rect, QtGui.QColor(0, 0, 0, 160))
            painter.drawText(caption_rect, QtCore.Qt.AlignCenter, self._caption)
        painter.end()

    def _paint_calibration(self, painter: QtGui.QPainter, rect: QtCore.QRect) -> None:
        width = rect.width()
        height = rect.height()
        band = height // 4

        gradient = QtGui.QLinearGradient(0, 0, width, 0)
        for stop, color in HUE_STOPS:
            gradient.setColorAt(stop, QtGui.QColor(color))
        painter.fillRect(0, 0, width, band, QtGui.QBrush(gradient))

        step_width = width / GREY_RAMP_STEPS
        for index in range(GREY_RAMP_STEPS):
            level = round(index * 255 / (GREY_RAMP_STEPS - 1))
            painter.fillRect(QtCore.QRectF(index * step_width, band, step_width + 1, band), QtGui.QColor(level, level, level))

        block_width = width / len(CALIBRATION_BLOCKS)
        for index, rgb in enumerate(CALIBRATION_BLOCKS):
            painter.fillRect(QtCore.QRectF(index * block_width, 2 * band, block_width + 1, band), QtGui.QColor(*rgb))

        grid_top = 3 * band
        painter.fillRect(0, grid_top, width, height - grid_top, QtCore.Qt.black)
        painter.setPen(QtGui.QPen(QtCore.Qt.white, 1))
        for x in range(0, width, GRID_SPACING_PX):
            painter.drawLine(x, grid_top, x, height)
        for y in range(grid_top, height, GRID_SPACING_PX):
            painter.drawLine(0, y, width, y)
        radius = max(1, min(width, height - grid_top) // 2 - 8)
        painter.drawEllipse(QtCore.QPoint(width // 2, grid_top + (height - grid_top) // 2), radius, radius)


class MainWindow(QtWidgets.QWidget):
    """Qt frontend: renders session views and queues operator intents for the runner."""

    def __init__(self, config: WizardConfig) -> None:
        super().__init__()
        self.setWindowTitle(APP_NAME)
        self.resize(920, 700)
        self.setFocusPolicy(QtCore.Qt.StrongFocus)

        self._intents: deque[Event] = deque()
        self._last_phase: Phase | None = None
        self._trace: tuple[str, ...] = ()

        self.title_label = QtWidgets.QLabel()
        title_font = self.title_label.font()
        title_font.setBold(True)
        title_font.setPointSize(title_font.pointSize() + 4)
        self.title_label.setFont(title_font)

        self.body_label = QtWidgets.QLabel()
        self.body_label.setFont(QtGui.QFontDatabase.systemFont(QtGui.QFontDatabase.FixedFont))
        self.body_label.setAlignment(QtCore.Qt.AlignTop | QtCore.Qt.AlignLeft)
        self.body_label.setTextInteractionFlags(QtCore.Qt.NoTextInteraction)

        self.serial_input = QtWidgets.QLineEdit()
        self.serial_input.setPlaceholderText("Serial number printed on the unit")
        self.serial_input.returnPressed.connect(self._submit_serial)
        self.serial_input.hide()

        self.output = QtWidgets.QPlainTextEdit()
        self.output.setReadOnly(True)
        self.output.setFocusPolicy(QtCore.Qt.NoFocus)
        self.output.setMaximumBlockCount(500)

        page = QtWidgets.QWidget()
        page_layout = QtWidgets.QVBoxLayout(page)
        page_layout.addWidget(self.title_label)
        page_layout.addWidget(self.body_label, 1)
        page_layout.addWidget(self.serial_input)
        page_layout.addWidget(self.output)

        self.pattern_widget = PatternWidget()
        self.stack = QtWidgets.QStackedWidget()
        self.stack.addWidget(page)
        self.stack.addWidget(self.pattern_widget)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.stack)

        self.runner = WizardRunner(config, self)
        self.timer = QtCore.QTimer(self)
        self.timer.setInterval(config.tick_interval_ms)
        self.timer.timeout.connect(self._on_timer)

    @property
    def exit_code(self) -> int:
        return self.runner.exit_code if self.runner.exit_code is not None else 0

    def start(self) -> None:
        self.runner.start()
        self.timer.start()

    def render(self, view: SessionView) -> None:
        entering = view.phase is not self._last_phase
        self._last_phase = view.phase
        self.title_label.setText(view.title)
        self._sync_trace(view.trace)

        if view.phase is Phase.DISPLAY_TEST:
            caption = view.pattern.label if view.pattern else ""
            if view.seconds_until_hold > 0:
                caption = f"{caption}    (calibration in {view.seconds_until_hold:.0f} s)"
            self.pattern_widget.set_pattern(view.pattern, caption)
            self.stack.setCurrentWidget(self.pattern_widget)
            if entering:
                self.showFullScreen()
                self.setFocus()
            return

        if entering and self.isFullScreen():
            self.showNormal()
        self.stack.setCurrentIndex(0)
        self.body_label.setText("\n".join(body_lines(view)))
        if view.phase is Phase.ENTER_SERIAL:
            if entering:
                self.serial_input.clear()
                self.serial_input.show()
                self.serial_input.setFocus()
        elif entering:
            self.serial_input.hide()
            self.setFocus()

    def poll_input(self, timeout_sec: float) -> Event | None:
        # Qt delivers input through the event loop; nothing to wait for here.
        return self._intents.popleft() if self._intents else None

    def _sync_trace(self, trace: tuple[str, ...]) -> None:
        if trace == self._trace:
            return
        self._trace = trace
        self.output.setPlainText("\n".join(trace))
        self.output.verticalScrollBar().setValue(self.output.verticalScrollBar().maximum())

    def _submit_serial(self) -> None:
        if self._last_phase is Phase.ENTER_SERIAL:
            self._intents.append(SubmitText(self.serial_input.text()))

    def _on_timer(self) -> None:
        running = self.runner.step(0)
        while running and self._intents:
            running = self.runner.step(0)
        if not running:
            self.timer.stop()
            self.close()

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:
        name = qt_key_name(event)
        if name is None or self._last_phase is None:
            super().keyPressEvent(event)
            return
        intent = intent_for_key(self._last_phase, name)
        if intent is None:
            super().keyPressEvent(event)
            return
        self._intents.append(intent)
        event.accept()

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:
        super().resizeEvent(event)
        self._intents.append(Resize(width=event.size().width(), height=event.size().height()))

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:
        if not self.runner.finished:
            self.runner.dispatch(Quit())
        self.timer.stop()
        event.accept()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=APP_NAME)
    parser.add_argument("--frontend", choices=FRONTENDS, help="Operator interface (default: gui)")
    parser.add_argument("--config", type=Path, help="Optional JSON settings file")
    parser.add_argument("--log-dir", help="Directory receiving qualification logs")
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Log file format")
    parser.add_argument("--interval", type=float, help="Seconds each timed display pattern is shown")
    return parser


def resolve_config(args: argparse.Namespace) -> WizardConfig:
    config = load_config(args.config)
    return apply_overrides(
        config,
        {
            "frontend": args.frontend,
            "log_dir": args.log_dir,
            "log_format": args.log_format,
            "display_interval_sec": args.interval,
        },
    )


def run_terminal(config: WizardConfig) -> tuple[int, tuple[str, ...]]:
    import curses

    from hwqual.ui.terminal import TerminalFrontend

    def _inner(stdscr: "curses.window") -> tuple[int, tuple[str, ...]]:
        runner = WizardRunner(config, TerminalFrontend(stdscr))
        exit_code = runner.run()
        return exit_code, runner.trace

    return curses.wrapper(_inner)


def run_gui(config: WizardConfig) -> tuple[int, tuple[str, ...]]:
    app = QtWidgets.QApplication(sys.argv)
    window = MainWindow(config)
    window.show()
    window.start()
    app.exec_()
    return window.exit_code, window.runner.trace


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = resolve_config(args)
    except (OSError, ValueError) as exc:
        print(f"[ERROR] Invalid configuration: {exc}")
        return 1

    if not is_admin():
        print("[ERROR] Administrator/root privileges are required to start this app.")
        return 1

    if config.frontend == "tui":
        exit_code, trace = run_terminal(config)
    else:
        exit_code, trace = run_gui(config)
    for line in trace:
        print(line)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
