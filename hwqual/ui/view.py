from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from hwqual.domain.escalation import ESCALATION_OPTIONS
from hwqual.domain.events import Event
from hwqual.domain.formatting import format_gib, format_kv_line
from hwqual.domain.models import PHASE_TITLES, InventorySnapshot, Phase, WizardSession
from hwqual.domain.settings import DisplayPattern


@dataclass(frozen=True)
class SessionView:
    """Read-only state handed to a frontend after every event."""

    session: WizardSession
    pattern: DisplayPattern | None = None
    seconds_until_hold: float = 0.0
    trace: tuple[str, ...] = ()

    @property
    def phase(self) -> Phase:
        return self.session.phase

    @property
    def title(self) -> str:
        return PHASE_TITLES[self.session.phase]


class Frontend(Protocol):
    def render(self, view: SessionView) -> None: ...

    def poll_input(self, timeout_sec: float) -> Event | None: ...

    def close(self) -> None: ...


def inventory_lines(snapshot: InventorySnapshot) -> list[str]:
    processor = snapshot.processor
    memory = snapshot.memory
    gpu = snapshot.gpu
    lines = [
        "Processor",
        format_kv_line("  Model", processor.model or "Unknown"),
        format_kv_line("  Cores/Threads", f"{processor.cores}/{processor.threads}"),
        format_kv_line("  Frequency", f"{processor.frequency_mhz:.2f} MHz"),
        format_kv_line("  Cache", processor.cache or "Unknown"),
        format_kv_line("  Architecture", processor.architecture or "Unknown"),
        "Memory",
        format_kv_line("  Total", format_gib(memory.total_bytes)),
        format_kv_line("  Frequency", memory.frequency or "Unknown"),
    ]
    for slot in memory.slots:
        lines.append(
            format_kv_line(
                f"  Slot {slot.slot_number}",
                f"{format_gib(slot.size_bytes)}, {slot.manufacturer or 'Unknown'}, {slot.frequency or 'Unknown'}",
            )
        )
    lines.extend(
        [
            "GPU",
            format_kv_line("  Model", gpu.model or "Unknown"),
            format_kv_line("  Memory", gpu.memory or "Unknown"),
            format_kv_line("  Resolution", gpu.resolution or "Unknown"),
            format_kv_line("  Driver", gpu.driver or "Unknown"),
            "Network cards",
        ]
    )
    if snapshot.network_cards:
        for card in snapshot.network_cards:
            lines.append(format_kv_line(f"  {card.name}", f"{card.model or 'Unknown model'} [{card.mac_address}]"))
    else:
        lines.append("  No network cards detected")
    lines.append("Storage")
    if snapshot.storage_devices:
        for device in snapshot.storage_devices:
            label = f" ({device.label})" if device.label else ""
            mount = f" on {device.mount_point}" if device.mount_point else ""
            lines.append(
                format_kv_line(f"  {device.device_type}", f"{device.model or device.name}: {format_gib(device.size_bytes)}{label}{mount}")
            )
    else:
        lines.append("  No storage devices detected")
    lines.append(format_kv_line("Serial number", snapshot.serial_number))
    return lines


def summary_lines(session: WizardSession) -> list[str]:
    return [
        format_kv_line("Log file", session.log_path or "-"),
        format_kv_line("Display test", "Passed" if session.display_test_outcome else "Not passed"),
        format_kv_line("Serial number", "Confirmed" if session.serial_verified else "Not confirmed"),
        format_kv_line("Entered serial", session.entered_serial or "-"),
    ]


def body_lines(view: SessionView) -> list[str]:
    """Phase body shared by every frontend, excluding the display pattern itself."""
    session = view.session
    phase = view.phase
    if phase in (Phase.INIT, Phase.COLLECTING_INVENTORY):
        return ["Collecting hardware information, please wait..."]
    if phase is Phase.REVIEW_INVENTORY:
        lines = inventory_lines(session.snapshot) if session.snapshot else ["No inventory available."]
        return lines + ["", "Enter/Y - start the display test    Q/Esc - quit"]
    if phase is Phase.DISPLAY_TEST:
        label = view.pattern.label if view.pattern else ""
        if view.seconds_until_hold > 0:
            return [label, f"Calibration pattern in {view.seconds_until_hold:.0f} s"]
        return [label]
    if phase is Phase.CONFIRM_DISPLAY:
        return ["Did every pattern display correctly?", "", "Enter/Y - yes    N - no, repeat the test"]
    if phase is Phase.ENTER_SERIAL:
        system_serial = session.snapshot.serial_number if session.snapshot else "UNKNOWN"
        return [
            format_kv_line("System serial", system_serial),
            "",
            "Type the serial number printed on the unit and press Enter.",
        ]
    if phase is Phase.VERIFYING_SERIAL:
        return ["Verifying serial number..."]
    if phase is Phase.SERIAL_CONFIRMED:
        return ["Serial number confirmed.", "", "Enter/Y - write the diagnostic log"]
    if phase is Phase.SERIAL_MISMATCH:
        lines = [
            "WARNING: the entered serial number does not match this system.",
            format_kv_line("Entered", session.entered_serial),
            "",
        ]
        lines.extend(f"{option.hotkey} - {option.label}" for option in ESCALATION_OPTIONS)
        return lines
    if phase is Phase.WRITING_LOG:
        return ["Writing diagnostic log..."]
    if phase is Phase.DONE:
        return ["All stages completed.", ""] + summary_lines(session) + ["", "Enter/Q - exit"]
    if phase is Phase.FATAL_ERROR:
        return [f"[ERROR] {session.error_message}", "", "Press any key to exit."]
    if phase is Phase.ESCALATED:
        return ["Power command issued. Exiting."]
    return ["Cancelled."]
