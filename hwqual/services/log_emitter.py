from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from hwqual.domain.formatting import format_gib, format_kv_line, yes_no
from hwqual.domain.models import InventorySnapshot, WizardSession
from hwqual.domain.settings import LOG_TIMESTAMP_FORMAT, WizardConfig

KV_WIDTH = 22


@dataclass(frozen=True)
class LogRecord:
    snapshot: InventorySnapshot
    display_test_passed: bool
    serial_number_verified: bool
    user_entered_sn: str
    serial_tool_output: str
    captured_at: datetime

    @property
    def timestamp(self) -> str:
        return self.captured_at.strftime(LOG_TIMESTAMP_FORMAT)

    def to_dict(self) -> dict[str, object]:
        return {
            "system_info": self.snapshot.to_dict(),
            "test_results": {
                "display_test_passed": self.display_test_passed,
                "serial_number_verified": self.serial_number_verified,
                "user_entered_sn": self.user_entered_sn,
            },
            "serial_tool_output": self.serial_tool_output,
            "timestamp": self.timestamp,
        }


def build_log_record(session: WizardSession, captured_at: datetime) -> LogRecord:
    if session.snapshot is None:
        raise ValueError("Cannot build a log record before the inventory snapshot exists")
    return LogRecord(
        snapshot=session.snapshot,
        display_test_passed=session.display_test_outcome,
        serial_number_verified=session.serial_verified,
        user_entered_sn=session.entered_serial,
        serial_tool_output=session.serial_tool_output,
        captured_at=captured_at,
    )


def safe_file_token(value: str) -> str:
    """Keep serial numbers usable as a file name component."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", value.strip()).strip("._")
    return token or "UNKNOWN"


def build_log_path(config: WizardConfig, serial_number: str, captured_at: datetime) -> Path:
    file_name = (
        f"{config.log_prefix}_{safe_file_token(serial_number)}_"
        f"{captured_at.strftime(LOG_TIMESTAMP_FORMAT)}.{config.log_extension}"
    )
    return Path(config.log_dir) / file_name


def render_text_record(record: LogRecord) -> str:
    snapshot = record.snapshot
    processor = snapshot.processor
    memory = snapshot.memory
    gpu = snapshot.gpu
    lines: list[str] = [
        "=" * 60,
        "HARDWARE QUALIFICATION LOG",
        "=" * 60,
        format_kv_line("Timestamp", record.timestamp, KV_WIDTH),
        format_kv_line("System serial", snapshot.serial_number, KV_WIDTH),
        format_kv_line("Entered serial", record.user_entered_sn, KV_WIDTH),
        format_kv_line("Serial verified", yes_no(record.serial_number_verified), KV_WIDTH),
        format_kv_line("Display test passed", yes_no(record.display_test_passed), KV_WIDTH),
        "",
        "Processor",
        "-" * 60,
        format_kv_line("Model", processor.model, KV_WIDTH),
        format_kv_line("Cores/Threads", f"{processor.cores}/{processor.threads}", KV_WIDTH),
        format_kv_line("Frequency", f"{processor.frequency_mhz:.2f} MHz", KV_WIDTH),
        format_kv_line("Cache", processor.cache, KV_WIDTH),
        format_kv_line("Architecture", processor.architecture, KV_WIDTH),
        "",
        "Memory",
        "-" * 60,
        format_kv_line("Total", format_gib(memory.total_bytes), KV_WIDTH),
        format_kv_line("Frequency", memory.frequency, KV_WIDTH),
        format_kv_line("Manufacturer", memory.manufacturer, KV_WIDTH),
    ]
    for slot in memory.slots:
        lines.append(format_kv_line(f"Slot {slot.slot_number}", f"{format_gib(slot.size_bytes)}, {slot.manufacturer}, {slot.frequency}", KV_WIDTH))

    lines.extend(["", "GPU", "-" * 60])
    lines.append(format_kv_line("Model", gpu.model, KV_WIDTH))
    lines.append(format_kv_line("Memory", gpu.memory, KV_WIDTH))
    lines.append(format_kv_line("Resolution", gpu.resolution, KV_WIDTH))
    lines.append(format_kv_line("Driver", gpu.driver, KV_WIDTH))

    lines.extend(["", "Network cards", "-" * 60])
    for card in snapshot.network_cards:
        lines.append(format_kv_line(card.name, f"{card.model or 'Unknown model'} ({card.mac_address})", KV_WIDTH))
    if not snapshot.network_cards:
        lines.append("No network cards detected")

    lines.extend(["", "Storage devices", "-" * 60])
    for device in snapshot.storage_devices:
        label = f" ({device.label})" if device.label else ""
        mount = f" on {device.mount_point}" if device.mount_point else ""
        lines.append(format_kv_line(device.device_type, f"{device.model or device.name}: {format_gib(device.size_bytes)}{label}{mount}", KV_WIDTH))
    if not snapshot.storage_devices:
        lines.append("No storage devices detected")

    lines.extend(["", "Serial tool output", "-" * 60, record.serial_tool_output, ""])
    lines.extend(["Firmware tables", "-" * 60])
    for header, content in snapshot.firmware_tables:
        lines.append(header)
        lines.extend(f"  {line}" for line in content)
    return "\n".join(lines).rstrip() + "\n"


def serialize_record(record: LogRecord, log_format: str) -> str:
    if log_format == "text":
        return render_text_record(record)
    return json.dumps(record.to_dict(), indent=2, ensure_ascii=False) + "\n"


def write_log(session: WizardSession, config: WizardConfig, captured_at: datetime | None = None) -> Path:
    """Write the session record to a new file and return its path.

    Raises ``OSError`` when the directory cannot be created or the file
    already exists or cannot be written; callers treat that as fatal.
    """
    record = build_log_record(session, captured_at or datetime.now())
    path = build_log_path(config, record.snapshot.serial_number, record.captured_at)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("x", encoding="utf-8") as handle:
        handle.write(serialize_record(record, config.log_format))
        handle.flush()
    return path
