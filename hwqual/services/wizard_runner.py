from __future__ import annotations

import threading
import time
from collections import deque
from pathlib import Path
from queue import Empty, Queue
from typing import Callable

from hwqual.domain.events import (
    CollectInventory,
    Effect,
    Event,
    Exit,
    InventoryCollected,
    InventoryFailed,
    IssuePowerCommand,
    LogFailed,
    LogWritten,
    Quit,
    RunVerification,
    Start,
    Tick,
    Verify,
    WriteLog,
)
from hwqual.domain.models import InventoryResult, Phase, WizardSession
from hwqual.domain.sequencer import DisplaySequencer
from hwqual.domain.settings import APP_NAME, TRACE_MAX_LINES, WizardConfig
from hwqual.domain.state_machine import Transition, transition
from hwqual.services.hardware_probe import collect_inventory
from hwqual.services.log_emitter import write_log
from hwqual.services.power import issue_power_command
from hwqual.ui.view import Frontend, SessionView

InventoryProbe = Callable[..., tuple[InventoryResult | None, str]]
LogWriter = Callable[[WizardSession, WizardConfig], Path]
PowerCommand = Callable[[str], tuple[int, str]]


def run_detached(target: Callable[[], None]) -> None:
    threading.Thread(target=target, daemon=True).start()


class WizardRunner:
    """Drive one wizard session between a frontend and the transition table.

    Slow effects (hardware inventory, log writing) run off the input loop and
    report back through a completion queue. The loop keeps polling input and
    emitting ``Tick`` events meanwhile, so the display sequence advances and
    ``Quit`` stays responsive while a probe is still running.
    """

    def __init__(
        self,
        config: WizardConfig,
        frontend: Frontend,
        *,
        probe: InventoryProbe = collect_inventory,
        log_writer: LogWriter = write_log,
        power: PowerCommand = issue_power_command,
        clock: Callable[[], float] = time.monotonic,
        run_in_background: Callable[[Callable[[], None]], None] = run_detached,
    ) -> None:
        self.config = config
        self.frontend = frontend
        self.sequencer = DisplaySequencer(config.display_interval_sec)
        self.session = WizardSession()
        self.exit_code: int | None = None
        self._probe = probe
        self._log_writer = log_writer
        self._power = power
        self._clock = clock
        self._run_in_background = run_in_background
        self._completions: Queue[Event] = Queue()
        self._pending: deque[Event] = deque()
        self._trace: list[str] = []
        self._cancel_requested = threading.Event()

    @property
    def finished(self) -> bool:
        return self.exit_code is not None

    @property
    def trace(self) -> tuple[str, ...]:
        return tuple(self._trace)

    def log(self, text: str) -> None:
        self._trace.append(text)
        if len(self._trace) > TRACE_MAX_LINES:
            del self._trace[: len(self._trace) - TRACE_MAX_LINES]

    def view(self) -> SessionView:
        session = self.session
        if session.phase is not Phase.DISPLAY_TEST or session.sequence_started_at is None:
            return SessionView(session=session, trace=self.trace)
        now = self._clock()
        return SessionView(
            session=session,
            pattern=self.sequencer.pattern_at(session.sequence_started_at, now),
            seconds_until_hold=self.sequencer.seconds_until_hold(session.sequence_started_at, now),
            trace=self.trace,
        )

    def start(self) -> None:
        self.log(f"[INFO] {APP_NAME} started")
        self.dispatch(Start())
        self.frontend.render(self.view())

    def step(self, timeout_sec: float = 0.0) -> bool:
        """Process exactly one event and redraw. Returns False once finished."""
        if self.finished:
            return False
        self.dispatch(self._next_event(timeout_sec))
        self.frontend.render(self.view())
        return not self.finished

    def run(self) -> int:
        poll_timeout = self.config.tick_interval_ms / 1000
        self.start()
        try:
            while self.step(poll_timeout):
                pass
        finally:
            self.frontend.close()
        return self.exit_code if self.exit_code is not None else 0

    def dispatch(self, event: Event) -> Transition:
        if isinstance(event, Quit):
            self._cancel_requested.set()
        previous = self.session.phase
        result = transition(self.session, event, self._clock(), self.sequencer)
        self.session = result.session
        if result.phase is not previous:
            self._log_phase_change(result.session)
        for effect in result.effects:
            self._execute(effect)
        return result

    def _next_event(self, timeout_sec: float) -> Event:
        if self._pending:
            return self._pending.popleft()
        try:
            return self._completions.get_nowait()
        except Empty:
            pass
        event = self.frontend.poll_input(timeout_sec)
        if event is not None:
            return event
        try:
            return self._completions.get_nowait()
        except Empty:
            return Tick()

    def _log_phase_change(self, session: WizardSession) -> None:
        phase = session.phase
        if phase is Phase.REVIEW_INVENTORY and session.snapshot is not None:
            self.log(f"[INFO] Inventory collected. System serial: {session.snapshot.serial_number}")
        elif phase is Phase.DISPLAY_TEST:
            self.log("[INFO] Display test started")
        elif phase is Phase.SERIAL_CONFIRMED:
            self.log("[INFO] Serial number confirmed")
        elif phase is Phase.SERIAL_MISMATCH:
            self.log(f"[WARN] Serial number mismatch: entered {session.entered_serial!r}")
        elif phase is Phase.DONE:
            self.log(f"[INFO] Log written: {session.log_path}")
        elif phase is Phase.FATAL_ERROR:
            self.log(f"[ERROR] {session.error_message}")
        elif phase is Phase.CANCELLED:
            self.log("[INFO] Operation cancelled.")

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, CollectInventory):
            self.log("[INFO] Collecting hardware information...")
            self._run_in_background(self._collect_inventory)
        elif isinstance(effect, RunVerification):
            self._pending.append(Verify())
        elif isinstance(effect, WriteLog):
            session = self.session
            self._run_in_background(lambda: self._write_log(session))
        elif isinstance(effect, IssuePowerCommand):
            code, detail = self._power(effect.action)
            self.log(f"[INFO] {detail}" if code == 0 else f"[ERROR] {detail}")
            self.exit_code = code
        elif isinstance(effect, Exit):
            self.exit_code = effect.code

    def _collect_inventory(self) -> None:
        try:
            result, detail = self._probe(
                cancel_requested=self._cancel_requested.is_set,
                timeout_sec=self.config.probe_timeout_sec,
            )
        except Exception as exc:  # safeguard background thread
            self._completions.put(InventoryFailed(f"Unexpected failure: {exc}"))
            return
        if result is None:
            self._completions.put(InventoryFailed(detail))
        else:
            self._completions.put(InventoryCollected(result))

    def _write_log(self, session: WizardSession) -> None:
        try:
            path = self._log_writer(session, self.config)
        except OSError as exc:
            self._completions.put(LogFailed(f"Unable to write log: {exc}"))
        except Exception as exc:  # safeguard background thread
            self._completions.put(LogFailed(f"Unexpected failure: {exc}"))
        else:
            self._completions.put(LogWritten(str(path)))
