from __future__ import annotations

from hwqual.domain.events import Acknowledge, Confirm, Event, Quit, Reboot, Reject, Retry, Shutdown
from hwqual.domain.models import Phase

KEY_ENTER = "enter"
KEY_ESCAPE = "escape"
KEY_BACKSPACE = "backspace"
KEY_OTHER = "other"

# Phases where any key other than Q/Esc counts as an acknowledgment.
ACKNOWLEDGE_PHASES = (Phase.DISPLAY_TEST, Phase.DONE, Phase.FATAL_ERROR)

HOTKEYS: dict[str, type] = {
    KEY_ENTER: Confirm,
    "y": Confirm,
    "n": Reject,
    "r": Retry,
    "b": Reboot,
    "s": Shutdown,
}


def intent_for_key(phase: Phase, key: str) -> Event | None:
    """Translate a normalized key name into an operator intent.

    ``key`` is either one of the ``KEY_*`` names or a single printable
    character; function and cursor keys all arrive as ``KEY_OTHER``. Serial
    entry is handled by the frontend's line editor, so only Esc
    produces an intent while ``phase`` is ENTER_SERIAL.
    """
    if phase is Phase.ENTER_SERIAL:
        return Quit() if key == KEY_ESCAPE else None
    if key == KEY_ESCAPE or key.lower() == "q":
        return Quit()
    if phase in ACKNOWLEDGE_PHASES:
        return Acknowledge()
    intent = HOTKEYS.get(key.lower())
    return intent() if intent is not None else None
