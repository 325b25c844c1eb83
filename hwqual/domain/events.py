from __future__ import annotations

from dataclasses import dataclass

from .models import InventoryResult

# Operator intents


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class Reject:
    pass


@dataclass(frozen=True)
class Acknowledge:
    pass


@dataclass(frozen=True)
class SubmitText:
    text: str


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class Reboot:
    pass


@dataclass(frozen=True)
class Shutdown:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class Resize:
    width: int = 0
    height: int = 0


# Clock and system events


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class InventoryCollected:
    result: InventoryResult


@dataclass(frozen=True)
class InventoryFailed:
    message: str


@dataclass(frozen=True)
class Verify:
    pass


@dataclass(frozen=True)
class LogWritten:
    path: str


@dataclass(frozen=True)
class LogFailed:
    message: str


Event = (
    Confirm
    | Reject
    | Acknowledge
    | SubmitText
    | Retry
    | Reboot
    | Shutdown
    | Quit
    | Resize
    | Tick
    | Start
    | InventoryCollected
    | InventoryFailed
    | Verify
    | LogWritten
    | LogFailed
)


# Effects requested by a transition and executed by the runner


@dataclass(frozen=True)
class CollectInventory:
    pass


@dataclass(frozen=True)
class RunVerification:
    pass


@dataclass(frozen=True)
class WriteLog:
    pass


@dataclass(frozen=True)
class IssuePowerCommand:
    action: str


@dataclass(frozen=True)
class Exit:
    code: int


Effect = CollectInventory | RunVerification | WriteLog | IssuePowerCommand | Exit
