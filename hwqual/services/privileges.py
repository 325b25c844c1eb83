from __future__ import annotations

import ctypes
import os
import platform


def is_windows() -> bool:
    return platform.system().lower() == "windows"


def is_admin() -> bool:
    """Return True when running as root (POSIX) or elevated (Windows)."""
    if is_windows():
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except Exception:
            return False
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0
