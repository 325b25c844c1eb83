"""Phase transitions for a wizard session.

Every transition is a pure function of ``(session, event, now)`` returning the
next session value and the effects the runner must execute. Inputs a phase does
not list leave the session untouched and request nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from .escalation import REBOOT_ACTION, SHUTDOWN_ACTION
from .events import (
    Acknowledge,
    CollectInventory,
    Confirm,
    Effect,
    Event,
    Exit,
    InventoryCollected,
    InventoryFailed,
    IssuePowerCommand,
    LogFailed,
    LogWritten,
    Quit,
    Reboot,
    Reject,
    Retry,
    RunVerification,
    Shutdown,
    Start,
    SubmitText,
    Tick,
    Verify,
    WriteLog,
)
from .models import Phase, WizardSession
from .sequencer import DisplaySequencer
from .verifier import VerifyOutcome, verify

EXIT_OK = 0
EXIT_FAILURE = 1


@dataclass(frozen=True)
class Transition:
    session: WizardSession
    effects: tuple[Effect, ...] = ()

    @property
    def phase(self) -> Phase:
        return self.session.phase


Handler = Callable[[WizardSession, Event, float, DisplaySequencer], Transition]


def _unchanged(session: WizardSession) -> Transition:
    return Transition(session)


def _on_init(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, Start):
        return Transition(replace(session, phase=Phase.COLLECTING_INVENTORY), (CollectInventory(),))
    return _on_collecting(session, event, now, sequencer)


def _on_collecting(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, InventoryCollected) and session.snapshot is None:
        return Transition(
            replace(
                session,
                phase=Phase.REVIEW_INVENTORY,
                snapshot=event.result.snapshot,
                serial_tool_output=event.result.serial_tool_output,
            )
        )
    if isinstance(event, InventoryFailed):
        return Transition(replace(session, phase=Phase.FATAL_ERROR, error_message=event.message))
    return _unchanged(session)


def _start_sequence(session: WizardSession, now: float, **changes: object) -> WizardSession:
    return replace(session, phase=Phase.DISPLAY_TEST, sequence_started_at=now, display_index=0, **changes)


def _on_review(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, Confirm):
        return Transition(_start_sequence(session, now))
    return _unchanged(session)


def _on_display_test(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    started_at = session.sequence_started_at if session.sequence_started_at is not None else now
    index = sequencer.index_at(started_at, now)
    if isinstance(event, Tick):
        if index == session.display_index:
            return _unchanged(session)
        return Transition(replace(session, display_index=index))
    if isinstance(event, (Acknowledge, Confirm)):
        # Only the held calibration pattern takes an acknowledgment.
        if index != sequencer.held_index:
            return _unchanged(session)
        return Transition(replace(session, phase=Phase.CONFIRM_DISPLAY, display_index=index))
    return _unchanged(session)


def _on_confirm_display(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, Confirm):
        return Transition(replace(session, phase=Phase.ENTER_SERIAL, display_test_outcome=True, entered_serial=""))
    if isinstance(event, Reject):
        return Transition(_start_sequence(session, now, display_test_outcome=False))
    return _unchanged(session)


def _on_enter_serial(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, SubmitText):
        return Transition(replace(session, phase=Phase.VERIFYING_SERIAL, entered_serial=event.text), (RunVerification(),))
    return _unchanged(session)


def _on_verifying(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if not isinstance(event, Verify) or session.snapshot is None:
        return _unchanged(session)
    if verify(session.entered_serial, session.snapshot.serial_number) is VerifyOutcome.MATCH:
        return Transition(replace(session, phase=Phase.SERIAL_CONFIRMED, serial_verified=True))
    return Transition(replace(session, phase=Phase.SERIAL_MISMATCH, serial_verified=False))


def _on_serial_confirmed(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, Confirm):
        return Transition(replace(session, phase=Phase.WRITING_LOG), (WriteLog(),))
    return _unchanged(session)


def _on_serial_mismatch(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, Retry):
        return Transition(replace(session, phase=Phase.ENTER_SERIAL, entered_serial=""))
    if isinstance(event, Reboot):
        return Transition(replace(session, phase=Phase.ESCALATED), (IssuePowerCommand(REBOOT_ACTION),))
    if isinstance(event, Shutdown):
        return Transition(replace(session, phase=Phase.ESCALATED), (IssuePowerCommand(SHUTDOWN_ACTION),))
    return _unchanged(session)


def _on_writing_log(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, LogWritten):
        if session.log_path:
            return _unchanged(session)
        if not event.path:
            return Transition(replace(session, phase=Phase.FATAL_ERROR, error_message="Log writer returned no path"))
        return Transition(replace(session, phase=Phase.DONE, log_path=event.path))
    if isinstance(event, LogFailed):
        return Transition(replace(session, phase=Phase.FATAL_ERROR, error_message=event.message))
    return _unchanged(session)


def _on_done(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, (Confirm, Acknowledge)):
        return Transition(session, (Exit(EXIT_OK),))
    return _unchanged(session)


def _on_fatal_error(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    if isinstance(event, (Confirm, Acknowledge)):
        return Transition(session, (Exit(EXIT_FAILURE),))
    return _unchanged(session)


def _on_finished(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    return _unchanged(session)


_HANDLERS: dict[Phase, Handler] = {
    Phase.INIT: _on_init,
    Phase.COLLECTING_INVENTORY: _on_collecting,
    Phase.REVIEW_INVENTORY: _on_review,
    Phase.DISPLAY_TEST: _on_display_test,
    Phase.CONFIRM_DISPLAY: _on_confirm_display,
    Phase.ENTER_SERIAL: _on_enter_serial,
    Phase.VERIFYING_SERIAL: _on_verifying,
    Phase.SERIAL_CONFIRMED: _on_serial_confirmed,
    Phase.SERIAL_MISMATCH: _on_serial_mismatch,
    Phase.WRITING_LOG: _on_writing_log,
    Phase.DONE: _on_done,
    Phase.FATAL_ERROR: _on_fatal_error,
    Phase.ESCALATED: _on_finished,
    Phase.CANCELLED: _on_finished,
}


def _on_quit(session: WizardSession) -> Transition:
    if session.phase is Phase.FATAL_ERROR:
        return Transition(session, (Exit(EXIT_FAILURE),))
    if session.phase is Phase.DONE:
        return Transition(session, (Exit(EXIT_OK),))
    if session.phase in (Phase.ESCALATED, Phase.CANCELLED):
        return _unchanged(session)
    return Transition(replace(session, phase=Phase.CANCELLED), (Exit(EXIT_OK),))


def transition(session: WizardSession, event: Event, now: float, sequencer: DisplaySequencer) -> Transition:
    """Apply one event to ``session`` at monotonic time ``now``."""
    if isinstance(event, Quit):
        return _on_quit(session)
    return _HANDLERS[session.phase](session, event, now, sequencer)
