from __future__ import annotations


def format_kv_line(label: str, value: object, width: int = 16) -> str:
    """Format label/value output with aligned colons for readability."""
    return f"{label:<{width}}: {value}"


def format_gib(size_bytes: int) -> str:
    return f"{size_bytes / (1024 ** 3):.2f} GiB"


def yes_no(value: bool) -> str:
    return "YES" if value else "NO"
