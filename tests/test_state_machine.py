import unittest
from dataclasses import replace

from hwqual.domain.escalation import REBOOT_ACTION, SHUTDOWN_ACTION
from hwqual.domain.events import (
    Acknowledge,
    CollectInventory,
    Confirm,
    Exit,
    InventoryCollected,
    InventoryFailed,
    IssuePowerCommand,
    LogFailed,
    LogWritten,
    Quit,
    Reboot,
    Reject,
    Resize,
    Retry,
    RunVerification,
    Shutdown,
    Start,
    SubmitText,
    Tick,
    Verify,
    WriteLog,
)
from hwqual.domain.models import InventoryResult, InventorySnapshot, Phase, WizardSession
from hwqual.domain.sequencer import DisplaySequencer
from hwqual.domain.state_machine import EXIT_FAILURE, EXIT_OK, transition

SEQUENCER = DisplaySequencer(2.0)
SNAPSHOT = InventorySnapshot(serial_number="SN-42")
RESULT = InventoryResult(snapshot=SNAPSHOT, serial_tool_output="$ dmidecode -s system-serial-number\nSN-42")

ALL_EVENTS = (
    Confirm(),
    Reject(),
    Acknowledge(),
    SubmitText("SN-42"),
    Retry(),
    Reboot(),
    Shutdown(),
    Resize(80, 24),
    Tick(),
    Start(),
    InventoryCollected(RESULT),
    InventoryFailed("boom"),
    Verify(),
    LogWritten("/tmp/log.json"),
    LogFailed("disk full"),
)


def session_in(phase: Phase, **changes: object) -> WizardSession:
    return replace(WizardSession(snapshot=SNAPSHOT, serial_tool_output=RESULT.serial_tool_output), phase=phase, **changes)


def step(session: WizardSession, event: object, now: float = 0.0):
    return transition(session, event, now, SEQUENCER)


class HappyPathTests(unittest.TestCase):
    def test_start_requests_inventory(self) -> None:
        result = step(WizardSession(), Start())
        self.assertEqual(result.phase, Phase.COLLECTING_INVENTORY)
        self.assertEqual(result.effects, (CollectInventory(),))

    def test_inventory_collected_stores_snapshot(self) -> None:
        result = step(WizardSession(phase=Phase.COLLECTING_INVENTORY), InventoryCollected(RESULT))
        self.assertEqual(result.phase, Phase.REVIEW_INVENTORY)
        self.assertEqual(result.session.snapshot, SNAPSHOT)
        self.assertEqual(result.session.serial_tool_output, RESULT.serial_tool_output)

    def test_inventory_failure_is_fatal(self) -> None:
        result = step(WizardSession(phase=Phase.COLLECTING_INVENTORY), InventoryFailed("Unable to query hardware"))
        self.assertEqual(result.phase, Phase.FATAL_ERROR)
        self.assertEqual(result.session.error_message, "Unable to query hardware")
        self.assertEqual(result.effects, ())

    def test_confirm_inventory_starts_display_sequence(self) -> None:
        result = step(session_in(Phase.REVIEW_INVENTORY), Confirm(), now=50.0)
        self.assertEqual(result.phase, Phase.DISPLAY_TEST)
        self.assertEqual(result.session.sequence_started_at, 50.0)
        self.assertEqual(result.session.display_index, 0)

    def test_tick_advances_display_index(self) -> None:
        session = session_in(Phase.DISPLAY_TEST, sequence_started_at=0.0)
        self.assertEqual(step(session, Tick(), now=2.5).session.display_index, 1)
        self.assertEqual(step(session, Tick(), now=7.0).session.display_index, 3)
        self.assertEqual(step(session, Tick(), now=7.0).phase, Phase.DISPLAY_TEST)

    def test_acknowledge_held_pattern(self) -> None:
        session = session_in(Phase.DISPLAY_TEST, sequence_started_at=0.0, display_index=3)
        result = step(session, Acknowledge(), now=7.0)
        self.assertEqual(result.phase, Phase.CONFIRM_DISPLAY)

    def test_acknowledge_ignored_before_hold(self) -> None:
        session = session_in(Phase.DISPLAY_TEST, sequence_started_at=0.0)
        result = step(session, Acknowledge(), now=3.0)
        self.assertEqual(result.session, session)

    def test_confirm_display_enters_serial(self) -> None:
        result = step(session_in(Phase.CONFIRM_DISPLAY), Confirm())
        self.assertEqual(result.phase, Phase.ENTER_SERIAL)
        self.assertTrue(result.session.display_test_outcome)
        self.assertEqual(result.session.entered_serial, "")

    def test_reject_display_restarts_sequence(self) -> None:
        session = session_in(Phase.CONFIRM_DISPLAY, sequence_started_at=0.0, display_index=3)
        result = step(session, Reject(), now=30.0)
        self.assertEqual(result.phase, Phase.DISPLAY_TEST)
        self.assertEqual(result.session.sequence_started_at, 30.0)
        self.assertEqual(result.session.display_index, 0)
        self.assertFalse(result.session.display_test_outcome)

    def test_submit_text_requests_verification(self) -> None:
        result = step(session_in(Phase.ENTER_SERIAL), SubmitText("SN-42"))
        self.assertEqual(result.phase, Phase.VERIFYING_SERIAL)
        self.assertEqual(result.session.entered_serial, "SN-42")
        self.assertEqual(result.effects, (RunVerification(),))

    def test_verify_match(self) -> None:
        result = step(session_in(Phase.VERIFYING_SERIAL, entered_serial="SN-42"), Verify())
        self.assertEqual(result.phase, Phase.SERIAL_CONFIRMED)
        self.assertTrue(result.session.serial_verified)

    def test_verify_mismatch(self) -> None:
        result = step(session_in(Phase.VERIFYING_SERIAL, entered_serial="sn-42"), Verify())
        self.assertEqual(result.phase, Phase.SERIAL_MISMATCH)
        self.assertFalse(result.session.serial_verified)

    def test_confirm_serial_requests_log(self) -> None:
        result = step(session_in(Phase.SERIAL_CONFIRMED, serial_verified=True), Confirm())
        self.assertEqual(result.phase, Phase.WRITING_LOG)
        self.assertEqual(result.effects, (WriteLog(),))

    def test_log_written_finishes(self) -> None:
        result = step(session_in(Phase.WRITING_LOG), LogWritten("/logs/a.json"))
        self.assertEqual(result.phase, Phase.DONE)
        self.assertEqual(result.session.log_path, "/logs/a.json")

    def test_log_failure_is_fatal(self) -> None:
        result = step(session_in(Phase.WRITING_LOG), LogFailed("Permission denied"))
        self.assertEqual(result.phase, Phase.FATAL_ERROR)
        self.assertEqual(result.session.log_path, "")

    def test_done_exits_cleanly(self) -> None:
        session = session_in(Phase.DONE, log_path="/logs/a.json")
        self.assertEqual(step(session, Confirm()).effects, (Exit(EXIT_OK),))
        self.assertEqual(step(session, Acknowledge()).effects, (Exit(EXIT_OK),))

    def test_fatal_error_exits_non_zero(self) -> None:
        session = session_in(Phase.FATAL_ERROR, error_message="boom")
        self.assertEqual(step(session, Acknowledge()).effects, (Exit(EXIT_FAILURE),))


class MismatchTests(unittest.TestCase):
    def test_retry_clears_entered_serial(self) -> None:
        result = step(session_in(Phase.SERIAL_MISMATCH, entered_serial="WRONG"), Retry())
        self.assertEqual(result.phase, Phase.ENTER_SERIAL)
        self.assertEqual(result.session.entered_serial, "")
        self.assertEqual(result.effects, ())

    def test_reboot_and_shutdown_escalate(self) -> None:
        session = session_in(Phase.SERIAL_MISMATCH, entered_serial="WRONG")
        reboot = step(session, Reboot())
        shutdown = step(session, Shutdown())
        self.assertEqual(reboot.phase, Phase.ESCALATED)
        self.assertEqual(reboot.effects, (IssuePowerCommand(REBOOT_ACTION),))
        self.assertEqual(shutdown.phase, Phase.ESCALATED)
        self.assertEqual(shutdown.effects, (IssuePowerCommand(SHUTDOWN_ACTION),))

    def test_mismatch_never_writes_log(self) -> None:
        session = session_in(Phase.SERIAL_MISMATCH, entered_serial="WRONG")
        for event in ALL_EVENTS:
            self.assertNotIn(WriteLog(), step(session, event).effects)


class InvariantTests(unittest.TestCase):
    def test_unlisted_inputs_leave_session_unchanged(self) -> None:
        listed = {
            Phase.INIT: (Start, InventoryCollected, InventoryFailed),
            Phase.COLLECTING_INVENTORY: (InventoryCollected, InventoryFailed),
            Phase.REVIEW_INVENTORY: (Confirm,),
            Phase.DISPLAY_TEST: (Tick, Acknowledge, Confirm),
            Phase.CONFIRM_DISPLAY: (Confirm, Reject),
            Phase.ENTER_SERIAL: (SubmitText,),
            Phase.VERIFYING_SERIAL: (Verify,),
            Phase.SERIAL_CONFIRMED: (Confirm,),
            Phase.SERIAL_MISMATCH: (Retry, Reboot, Shutdown),
            Phase.WRITING_LOG: (LogWritten, LogFailed),
            Phase.DONE: (Confirm, Acknowledge),
            Phase.FATAL_ERROR: (Confirm, Acknowledge),
            Phase.ESCALATED: (),
            Phase.CANCELLED: (),
        }
        for phase, accepted in listed.items():
            base = session_in(phase) if phase not in (Phase.INIT, Phase.COLLECTING_INVENTORY) else WizardSession(phase=phase)
            for event in ALL_EVENTS:
                if isinstance(event, accepted):
                    continue
                with self.subTest(phase=phase, event=event):
                    result = step(base, event)
                    self.assertEqual(result.session, base)
                    self.assertEqual(result.effects, ())

    def test_resize_never_changes_phase(self) -> None:
        for phase in Phase:
            session = session_in(phase)
            self.assertEqual(step(session, Resize(120, 40)).session, session)

    def test_log_path_is_never_set_twice(self) -> None:
        done = step(session_in(Phase.WRITING_LOG), LogWritten("/logs/first.json")).session
        again = step(replace(done, phase=Phase.WRITING_LOG), LogWritten("/logs/second.json"))
        self.assertEqual(again.session.log_path, "/logs/first.json")

    def test_empty_log_path_is_fatal(self) -> None:
        result = step(session_in(Phase.WRITING_LOG), LogWritten(""))
        self.assertEqual(result.phase, Phase.FATAL_ERROR)

    def test_log_path_only_set_when_done(self) -> None:
        for phase in Phase:
            if phase is Phase.WRITING_LOG:
                continue
            result = step(session_in(phase), LogWritten("/logs/a.json"))
            self.assertEqual(result.session.log_path, "")

    def test_inventory_is_captured_once(self) -> None:
        other = InventoryResult(InventorySnapshot(serial_number="OTHER"), "")
        session = session_in(Phase.COLLECTING_INVENTORY)
        self.assertEqual(step(session, InventoryCollected(other)).session, session)


class QuitTests(unittest.TestCase):
    def test_quit_cancels_active_phases(self) -> None:
        for phase in (
            Phase.INIT,
            Phase.COLLECTING_INVENTORY,
            Phase.REVIEW_INVENTORY,
            Phase.DISPLAY_TEST,
            Phase.CONFIRM_DISPLAY,
            Phase.ENTER_SERIAL,
            Phase.SERIAL_MISMATCH,
            Phase.WRITING_LOG,
        ):
            with self.subTest(phase=phase):
                result = step(session_in(phase), Quit())
                self.assertEqual(result.phase, Phase.CANCELLED)
                self.assertEqual(result.effects, (Exit(EXIT_OK),))

    def test_quit_from_fatal_error_keeps_failure_code(self) -> None:
        result = step(session_in(Phase.FATAL_ERROR), Quit())
        self.assertEqual(result.phase, Phase.FATAL_ERROR)
        self.assertEqual(result.effects, (Exit(EXIT_FAILURE),))

    def test_quit_from_done_keeps_log_path(self) -> None:
        session = session_in(Phase.DONE, log_path="/logs/a.json")
        result = step(session, Quit())
        self.assertEqual(result.session, session)
        self.assertEqual(result.effects, (Exit(EXIT_OK),))

    def test_quit_after_escalation_is_ignored(self) -> None:
        session = session_in(Phase.ESCALATED)
        self.assertEqual(step(session, Quit()).effects, ())


if __name__ == "__main__":
    unittest.main()
