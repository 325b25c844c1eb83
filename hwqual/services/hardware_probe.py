from __future__ import annotations

import json
import platform
import re
from pathlib import Path
from typing import Callable

from hwqual.domain.models import (
    GPUInfo,
    InventoryResult,
    InventorySnapshot,
    MemoryInfo,
    MemorySlot,
    NetworkCardInfo,
    ProcessorInfo,
    StorageDeviceInfo,
)
from hwqual.domain.settings import UNKNOWN_SERIAL
from hwqual.services.command_runner import DEFAULT_PROBE_TIMEOUT_SEC, format_command, run_command_with_options

SYS_NET_ROOT = Path("/sys/class/net")
PROC_MEMINFO = Path("/proc/meminfo")
IFF_UP = 0x1
IFF_LOOPBACK = 0x8

SERIAL_SOURCES: tuple[str, ...] = (
    "system-serial-number",
    "baseboard-serial-number",
    "chassis-serial-number",
)
SERIAL_PLACEHOLDERS = frozenset(
    {
        "",
        "not specified",
        "system serial number",
        "to be filled by o.e.m.",
        "default string",
        "none",
        "not applicable",
    }
)
FIRMWARE_SECTIONS: tuple[str, ...] = (
    "bios",
    "system",
    "baseboard",
    "chassis",
    "processor",
    "memory",
    "cache",
    "connector",
    "slot",
)
# Partitions are listed too so the label and mount point of a disk can be read.
LSBLK_COMMAND = ["lsblk", "-J", "-b", "-o", "NAME,SIZE,MODEL,ROTA,TYPE,TRAN,LABEL,MOUNTPOINT"]
DMIDECODE_DIAGNOSTIC_RE = re.compile(r"^(#|/dev/|/sys/)|permission denied|no smbios|can't read", re.IGNORECASE)
SIZE_UNITS = {
    "KB": 1024,
    "KIB": 1024,
    "MB": 1024**2,
    "MIB": 1024**2,
    "GB": 1024**3,
    "GIB": 1024**3,
    "TB": 1024**4,
    "TIB": 1024**4,
}

CancelRequested = Callable[[], bool] | None


def parse_key_value_lines(output: str) -> dict[str, str]:
    """Parse ``Key: value`` lines; the first occurrence of a key wins."""
    values: dict[str, str] = {}
    for raw_line in output.splitlines():
        key, sep, value = raw_line.strip().partition(":")
        if not sep:
            continue
        values.setdefault(key.strip(), value.strip())
    return values


def _parse_int(raw: str | None) -> int:
    match = re.search(r"\d+", raw or "")
    return int(match.group(0)) if match else 0


def _parse_float(raw: str | None) -> float:
    match = re.search(r"\d+(?:\.\d+)?", raw or "")
    return float(match.group(0)) if match else 0.0


def parse_size_to_bytes(raw: str) -> int:
    """Convert dmidecode sizes such as ``8192 MB`` or ``16 GB`` to bytes."""
    match = re.match(r"\s*(\d+)\s*([KMGT]i?B)\b", raw, flags=re.IGNORECASE)
    if not match:
        return 0
    return int(match.group(1)) * SIZE_UNITS[match.group(2).upper()]


def parse_lscpu(output: str) -> ProcessorInfo:
    values = parse_key_value_lines(output)
    sockets = _parse_int(values.get("Socket(s)")) or 1
    cores_per_socket = _parse_int(values.get("Core(s) per socket"))
    frequency = _parse_float(values.get("CPU MHz")) or _parse_float(values.get("CPU max MHz"))
    return ProcessorInfo(
        model=values.get("Model name", ""),
        cores=cores_per_socket * sockets,
        threads=_parse_int(values.get("CPU(s)")),
        frequency_mhz=frequency,
        cache=values.get("L2 cache", ""),
        architecture=values.get("Architecture", ""),
    )


def merge_dmidecode_processor(output: str, base: ProcessorInfo) -> ProcessorInfo:
    """Fill fields lscpu left empty from ``dmidecode -t processor``."""
    values = parse_key_value_lines(output)
    return ProcessorInfo(
        model=base.model or values.get("Version", ""),
        cores=base.cores or _parse_int(values.get("Core Count")),
        threads=base.threads or _parse_int(values.get("Thread Count")),
        frequency_mhz=base.frequency_mhz or _parse_float(values.get("Max Speed")),
        cache=base.cache,
        architecture=base.architecture or values.get("Family", ""),
    )


def parse_meminfo_total(text: str) -> int:
    match = re.search(r"^MemTotal:\s*(\d+)\s*kB", text, flags=re.MULTILINE)
    return int(match.group(1)) * 1024 if match else 0


def parse_dmidecode_memory(output: str, total_bytes: int = 0) -> MemoryInfo:
    slots: list[MemorySlot] = []
    slot_number = 0
    current: dict[str, str] | None = None

    def flush() -> None:
        if current is None:
            return
        size = parse_size_to_bytes(current.get("Size", ""))
        if size > 0:
            slots.append(
                MemorySlot(
                    slot_number=slot_number,
                    size_bytes=size,
                    manufacturer=current.get("Manufacturer", ""),
                    frequency=current.get("Speed", ""),
                )
            )

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line == "Memory Device":
            flush()
            slot_number += 1
            current = {}
            continue
        if line.startswith("Handle "):
            flush()
            current = None
            continue
        if current is None:
            continue
        key, sep, value = line.partition(":")
        value = value.strip()
        if sep and key in ("Size", "Manufacturer", "Speed") and value.lower() not in ("unknown", "not specified"):
            current.setdefault(key, value)
    flush()

    manufacturer = next((slot.manufacturer for slot in slots if slot.manufacturer), "")
    frequency = next((slot.frequency for slot in slots if slot.frequency), "")
    if not total_bytes:
        total_bytes = sum(slot.size_bytes for slot in slots)
    return MemoryInfo(total_bytes=total_bytes, slots=tuple(slots), frequency=frequency, manufacturer=manufacturer)


def parse_lshw_network_model(output: str, interface: str) -> str:
    for raw_line in output.splitlines():
        columns = re.split(r"\s{2,}", raw_line.strip())
        if len(columns) >= 4 and columns[1] == interface:
            return columns[3]
    return ""


def parse_lspci_gpu(output: str) -> GPUInfo:
    model = memory = driver = ""
    in_block = False
    for raw_line in output.splitlines():
        if not raw_line.strip():
            if in_block:
                break
            continue
        header = re.search(r"(?:VGA compatible controller|3D controller|Display controller):\s*(.+)$", raw_line)
        if header and not in_block:
            model = header.group(1).strip()
            in_block = True
            continue
        if not in_block:
            continue
        line = raw_line.strip()
        if line.startswith("Memory at") and not memory:
            memory = line
        elif line.startswith("Kernel driver in use:"):
            driver = line.split(":", 1)[1].strip()
    return GPUInfo(model=model, memory=memory, driver=driver)


def parse_xrandr_resolution(output: str) -> str:
    match = re.search(r"\bconnected\b(?:\s+primary)?\s+(\d+x\d+)\+\d+\+\d+", output)
    return match.group(1) if match else ""


def merge_glxinfo(output: str, base: GPUInfo) -> GPUInfo:
    values = parse_key_value_lines(output)
    return GPUInfo(
        model=base.model or values.get("OpenGL renderer string", ""),
        memory=base.memory or values.get("Video memory", ""),
        resolution=base.resolution,
        driver=base.driver or values.get("OpenGL version string", ""),
    )


def classify_storage(name: str, rotational: bool) -> str:
    if name.startswith("nvme"):
        return "NVME"
    if name.startswith("mmcblk"):
        return "Flash"
    if re.match(r"(sd|vd|hd|xvd)[a-z]+$", name):
        return "HDD" if rotational else "SSD"
    return "Other"


def _as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true")
    return bool(value)


def _first_child_value(row: dict, key: str) -> str:
    """Return the first non-empty ``key`` found on the disk or its partitions."""
    value = str(row.get(key) or "").strip()
    if value:
        return value
    for child in row.get("children") or ():
        if isinstance(child, dict):
            value = _first_child_value(child, key)
            if value:
                return value
    return ""


def parse_lsblk_devices(output: str) -> tuple[StorageDeviceInfo, ...]:
    try:
        payload = json.loads(output.strip() or "{}")
    except json.JSONDecodeError:
        return ()
    rows = payload.get("blockdevices", []) if isinstance(payload, dict) else []

    devices: list[StorageDeviceInfo] = []
    for row in rows:
        if not isinstance(row, dict) or str(row.get("type") or "disk") != "disk":
            continue
        name = str(row.get("name") or "").strip()
        try:
            size = int(str(row.get("size") or "0").strip() or "0")
        except ValueError:
            size = 0
        if not name or size <= 0:
            continue
        devices.append(
            StorageDeviceInfo(
                device_type=classify_storage(name, _as_bool(row.get("rota"))),
                model=str(row.get("model") or "").strip(),
                size_bytes=size,
                name=name,
                label=_first_child_value(row, "label"),
                mount_point=_first_child_value(row, "mountpoint"),
            )
        )
    return tuple(devices)


def is_placeholder_serial(value: str) -> bool:
    return value.strip().lower() in SERIAL_PLACEHOLDERS


def is_dmidecode_diagnostic(line: str) -> bool:
    """True for comment and error lines dmidecode writes around the value."""
    return DMIDECODE_DIAGNOSTIC_RE.search(line.strip()) is not None


def parse_dmidecode_tables(output: str) -> list[tuple[str, tuple[str, ...]]]:
    """Group ``dmidecode -t`` output by ``Handle`` header."""
    tables: list[tuple[str, tuple[str, ...]]] = []
    header = ""
    content: list[str] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line.startswith("Handle "):
            if header:
                tables.append((header, tuple(content)))
            header = line
            content = []
        elif line and header:
            content.append(line)
    if header:
        tables.append((header, tuple(content)))
    return tables


def _run(
    args: list[str],
    timeout_sec: float,
    cancel_requested: CancelRequested,
    merge_stderr: bool = False,
) -> tuple[int, str]:
    return run_command_with_options(
        args,
        timeout_sec=timeout_sec,
        cancel_requested=cancel_requested,
        merge_stderr=merge_stderr,
    )


def collect_processor(timeout_sec: float, cancel_requested: CancelRequested = None) -> tuple[ProcessorInfo, bool]:
    rc, output = _run(["lscpu"], timeout_sec, cancel_requested)
    processor = parse_lscpu(output) if rc == 0 else ProcessorInfo()
    if not processor.model or not processor.cores or not processor.frequency_mhz:
        dmi_rc, dmi_out = _run(["dmidecode", "-t", "processor"], timeout_sec, cancel_requested)
        if dmi_rc == 0:
            processor = merge_dmidecode_processor(dmi_out, processor)
    return processor, bool(processor.model)


def collect_memory(
    timeout_sec: float,
    cancel_requested: CancelRequested = None,
    meminfo_path: Path | None = None,
) -> tuple[MemoryInfo, bool]:
    try:
        total = parse_meminfo_total((meminfo_path or PROC_MEMINFO).read_text(encoding="utf-8"))
    except OSError:
        total = 0
    rc, output = _run(["dmidecode", "-t", "memory"], timeout_sec, cancel_requested)
    memory = parse_dmidecode_memory(output if rc == 0 else "", total)
    return memory, memory.total_bytes > 0


def collect_network_cards(
    timeout_sec: float,
    cancel_requested: CancelRequested = None,
    sys_net_root: Path | None = None,
) -> tuple[tuple[NetworkCardInfo, ...], bool]:
    try:
        interfaces = sorted(path for path in (sys_net_root or SYS_NET_ROOT).iterdir() if path.is_dir())
    except OSError:
        return (), False

    lshw_output: str | None = None
    cards: list[NetworkCardInfo] = []
    for iface in interfaces:
        try:
            flags = int((iface / "flags").read_text(encoding="utf-8").strip(), 16)
            mac = (iface / "address").read_text(encoding="utf-8").strip()
        except (OSError, ValueError):
            continue
        if not flags & IFF_UP or flags & IFF_LOOPBACK:
            continue
        if not mac or mac == "00:00:00:00:00:00":
            continue
        if lshw_output is None:
            rc, output = _run(["lshw", "-class", "network", "-short"], timeout_sec, cancel_requested)
            lshw_output = output if rc == 0 else ""
        cards.append(
            NetworkCardInfo(name=iface.name, mac_address=mac, model=parse_lshw_network_model(lshw_output, iface.name))
        )
    return tuple(cards), bool(cards)


def collect_gpu(timeout_sec: float, cancel_requested: CancelRequested = None) -> tuple[GPUInfo, bool]:
    rc, output = _run(["lspci", "-v"], timeout_sec, cancel_requested)
    gpu = parse_lspci_gpu(output) if rc == 0 else GPUInfo()

    xrandr_rc, xrandr_out = _run(["xrandr"], timeout_sec, cancel_requested)
    if xrandr_rc == 0:
        gpu = GPUInfo(model=gpu.model, memory=gpu.memory, resolution=parse_xrandr_resolution(xrandr_out), driver=gpu.driver)

    if not gpu.model:
        glx_rc, glx_out = _run(["glxinfo"], timeout_sec, cancel_requested)
        if glx_rc == 0:
            gpu = merge_glxinfo(glx_out, gpu)
    return gpu, bool(gpu.model)


def collect_storage(timeout_sec: float, cancel_requested: CancelRequested = None) -> tuple[tuple[StorageDeviceInfo, ...], bool]:
    rc, output = _run(
        LSBLK_COMMAND,
        timeout_sec,
        cancel_requested,
    )
    if rc != 0:
        return (), False
    devices = parse_lsblk_devices(output)
    return devices, bool(devices)


def collect_serial_number(timeout_sec: float, cancel_requested: CancelRequested = None) -> tuple[str, str, bool]:
    """Return (serial, verbatim tool output, ok).

    Sources are tried in order; the audit output keeps every query made.
    """
    transcript: list[str] = []
    for source in SERIAL_SOURCES:
        args = ["dmidecode", "-s", source]
        rc, output = _run(args, timeout_sec, cancel_requested, merge_stderr=True)
        transcript.append(f"$ {format_command(args)}\n{output}")
        if rc != 0:
            continue
        lines = [line.strip() for line in output.splitlines() if line.strip() and not is_dmidecode_diagnostic(line)]
        serial = lines[0] if lines else ""
        if not is_placeholder_serial(serial):
            return serial, "\n".join(transcript), True
    return UNKNOWN_SERIAL, "\n".join(transcript), False


def collect_firmware_tables(
    timeout_sec: float,
    cancel_requested: CancelRequested = None,
) -> tuple[tuple[str, tuple[str, ...]], ...]:
    tables: list[tuple[str, tuple[str, ...]]] = []
    for section in FIRMWARE_SECTIONS:
        rc, output = _run(["dmidecode", "-t", section], timeout_sec, cancel_requested)
        if rc == 0:
            tables.extend(parse_dmidecode_tables(output))
    return tuple(tables)


def collect_inventory(
    cancel_requested: CancelRequested = None,
    timeout_sec: float = DEFAULT_PROBE_TIMEOUT_SEC,
) -> tuple[InventoryResult | None, str]:
    """Probe the host and build one immutable inventory snapshot."""
    system_name = platform.system()
    if system_name.lower() != "linux":
        return None, f"Unsupported platform: {system_name or 'unknown'}"

    processor, processor_ok = collect_processor(timeout_sec, cancel_requested)
    memory, memory_ok = collect_memory(timeout_sec, cancel_requested)
    network_cards, network_ok = collect_network_cards(timeout_sec, cancel_requested)
    gpu, gpu_ok = collect_gpu(timeout_sec, cancel_requested)
    storage_devices, storage_ok = collect_storage(timeout_sec, cancel_requested)
    serial, serial_output, serial_ok = collect_serial_number(timeout_sec, cancel_requested)
    firmware_tables = collect_firmware_tables(timeout_sec, cancel_requested)

    if cancel_requested and cancel_requested():
        return None, "Cancelled"
    if not any((processor_ok, memory_ok, network_ok, gpu_ok, storage_ok, serial_ok)):
        return None, "Unable to query hardware"

    snapshot = InventorySnapshot(
        processor=processor,
        memory=memory,
        network_cards=network_cards,
        gpu=gpu,
        storage_devices=storage_devices,
        serial_number=serial,
        firmware_tables=firmware_tables,
    )
    return InventoryResult(snapshot=snapshot, serial_tool_output=serial_output), "OK"
