from __future__ import annotations

from dataclasses import dataclass

REBOOT_ACTION = "reboot"
SHUTDOWN_ACTION = "shutdown"
RETRY_ACTION = "retry"


@dataclass(frozen=True)
class EscalationOption:
    key: str
    label: str
    hotkey: str


ESCALATION_OPTIONS: tuple[EscalationOption, ...] = (
    EscalationOption(RETRY_ACTION, "Enter the serial number again", "R"),
    EscalationOption(REBOOT_ACTION, "Reboot this machine", "B"),
    EscalationOption(SHUTDOWN_ACTION, "Power off this machine", "S"),
)

POWER_COMMANDS: dict[str, dict[str, tuple[str, ...]]] = {
    "linux": {
        REBOOT_ACTION: ("systemctl", "reboot"),
        SHUTDOWN_ACTION: ("systemctl", "poweroff"),
    },
    "windows": {
        REBOOT_ACTION: ("shutdown", "/r", "/t", "0"),
        SHUTDOWN_ACTION: ("shutdown", "/s", "/t", "0"),
    },
}


def build_power_command(action: str, system_name: str) -> list[str]:
    """Return the platform command for a reboot/shutdown escalation."""
    commands = POWER_COMMANDS.get(system_name.lower())
    if commands is None:
        raise ValueError(f"Power commands are not supported on {system_name}")
    if action not in commands:
        raise ValueError(f"Unknown power action: {action}")
    return list(commands[action])
