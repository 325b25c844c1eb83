from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

from .settings import UNKNOWN_SERIAL


@dataclass(frozen=True)
class ProcessorInfo:
    model: str = ""
    cores: int = 0
    threads: int = 0
    frequency_mhz: float = 0.0
    cache: str = ""
    architecture: str = ""


@dataclass(frozen=True)
class MemorySlot:
    slot_number: int
    size_bytes: int
    manufacturer: str = ""
    frequency: str = ""


@dataclass(frozen=True)
class MemoryInfo:
    total_bytes: int = 0
    slots: tuple[MemorySlot, ...] = ()
    frequency: str = ""
    manufacturer: str = ""


@dataclass(frozen=True)
class NetworkCardInfo:
    name: str
    mac_address: str
    model: str = ""


@dataclass(frozen=True)
class GPUInfo:
    model: str = ""
    memory: str = ""
    resolution: str = ""
    driver: str = ""


@dataclass(frozen=True)
class StorageDeviceInfo:
    device_type: str
    model: str
    size_bytes: int
    name: str = ""
    label: str = ""
    mount_point: str = ""


@dataclass(frozen=True)
class InventorySnapshot:
    processor: ProcessorInfo = field(default_factory=ProcessorInfo)
    memory: MemoryInfo = field(default_factory=MemoryInfo)
    network_cards: tuple[NetworkCardInfo, ...] = ()
    gpu: GPUInfo = field(default_factory=GPUInfo)
    storage_devices: tuple[StorageDeviceInfo, ...] = ()
    serial_number: str = UNKNOWN_SERIAL
    firmware_tables: tuple[tuple[str, tuple[str, ...]], ...] = ()

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["firmware_tables"] = {header: list(lines) for header, lines in self.firmware_tables}
        return payload


@dataclass(frozen=True)
class InventoryResult:
    """Probe output: the snapshot plus the verbatim serial tool output kept for audit."""

    snapshot: InventorySnapshot
    serial_tool_output: str


class Phase(str, Enum):
    INIT = "init"
    COLLECTING_INVENTORY = "collecting_inventory"
    REVIEW_INVENTORY = "review_inventory"
    DISPLAY_TEST = "display_test"
    CONFIRM_DISPLAY = "confirm_display"
    ENTER_SERIAL = "enter_serial"
    VERIFYING_SERIAL = "verifying_serial"
    SERIAL_CONFIRMED = "serial_confirmed"
    SERIAL_MISMATCH = "serial_mismatch"
    WRITING_LOG = "writing_log"
    DONE = "done"
    FATAL_ERROR = "fatal_error"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"


PHASE_TITLES = {
    Phase.INIT: "Starting",
    Phase.COLLECTING_INVENTORY: "Step 1/4: Collecting hardware inventory",
    Phase.REVIEW_INVENTORY: "Step 1/4: Review hardware inventory",
    Phase.DISPLAY_TEST: "Step 2/4: Display test",
    Phase.CONFIRM_DISPLAY: "Step 2/4: Confirm display test",
    Phase.ENTER_SERIAL: "Step 3/4: Serial number check",
    Phase.VERIFYING_SERIAL: "Step 3/4: Verifying serial number",
    Phase.SERIAL_CONFIRMED: "Step 3/4: Serial number confirmed",
    Phase.SERIAL_MISMATCH: "Step 3/4: Serial number mismatch",
    Phase.WRITING_LOG: "Step 4/4: Writing diagnostic log",
    Phase.DONE: "Qualification complete",
    Phase.FATAL_ERROR: "Qualification failed",
    Phase.ESCALATED: "Power command issued",
    Phase.CANCELLED: "Cancelled",
}


@dataclass(frozen=True)
class WizardSession:
    """One pass through the wizard. Replaced, never mutated, on every transition."""

    phase: Phase = Phase.INIT
    snapshot: InventorySnapshot | None = None
    serial_tool_output: str = ""
    entered_serial: str = ""
    display_test_outcome: bool = False
    serial_verified: bool = False
    log_path: str = ""
    sequence_started_at: float | None = None
    display_index: int = 0
    error_message: str = ""
