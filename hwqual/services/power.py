from __future__ import annotations

import platform
import subprocess

from hwqual.domain.escalation import build_power_command
from hwqual.services.command_runner import format_command


def issue_power_command(action: str, system_name: str | None = None) -> tuple[int, str]:
    """Launch the reboot/power-off command without waiting for it.

    Returns (exit_code_for_process, detail). Only the launch itself can fail
    here; the command's own exit status is never observed.
    """
    try:
        args = build_power_command(action, system_name or platform.system())
    except ValueError as exc:
        return 1, str(exc)

    try:
        subprocess.Popen(
            args,
            shell=False,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        return 1, f"Failed to launch {format_command(args)}: {exc}"
    return 0, f"Launched {format_command(args)}"
