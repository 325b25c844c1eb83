from __future__ import annotations

from dataclasses import dataclass

APP_VERSION = "1.0.0"
APP_NAME = f"HW Qualification Wizard v{APP_VERSION}"

DEFAULT_LOG_DIR = "qualification_logs"
DEFAULT_LOG_PREFIX = "qualification"
DEFAULT_LOG_FORMAT = "json"
LOG_FORMATS: tuple[str, ...] = ("json", "text")
LOG_EXTENSIONS = {"json": "json", "text": "log"}
LOG_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

DEFAULT_DISPLAY_INTERVAL_SEC = 2.0
DEFAULT_TICK_INTERVAL_MS = 100
DEFAULT_PROBE_TIMEOUT_SEC = 30
DEFAULT_FRONTEND = "gui"
FRONTENDS: tuple[str, ...] = ("gui", "tui")

TRACE_MAX_LINES = 200
UNKNOWN_SERIAL = "UNKNOWN"


@dataclass(frozen=True)
class DisplayPattern:
    key: str
    label: str
    rgb: tuple[int, int, int] | None


# Three primary fields, then the calibration pattern which is held until acknowledged.
DISPLAY_PATTERNS: tuple[DisplayPattern, ...] = (
    DisplayPattern("red", "Red field - look for dead or stuck pixels", (255, 0, 0)),
    DisplayPattern("green", "Green field - look for dead or stuck pixels", (0, 255, 0)),
    DisplayPattern("blue", "Blue field - look for dead or stuck pixels", (0, 0, 255)),
    DisplayPattern("calibration", "Calibration - check gradients, grey ramp and grid geometry (any key to continue)", None),
)


@dataclass(frozen=True)
class WizardConfig:
    log_dir: str = DEFAULT_LOG_DIR
    log_prefix: str = DEFAULT_LOG_PREFIX
    log_format: str = DEFAULT_LOG_FORMAT
    display_interval_sec: float = DEFAULT_DISPLAY_INTERVAL_SEC
    tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS
    probe_timeout_sec: int = DEFAULT_PROBE_TIMEOUT_SEC
    frontend: str = DEFAULT_FRONTEND

    def __post_init__(self) -> None:
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Unsupported log format: {self.log_format}")
        if self.frontend not in FRONTENDS:
            raise ValueError(f"Unsupported frontend: {self.frontend}")
        if self.display_interval_sec <= 0:
            raise ValueError("Display interval must be positive")
        if self.tick_interval_ms <= 0:
            raise ValueError("Tick interval must be positive")
        if not self.log_prefix.strip():
            raise ValueError("Log prefix must not be empty")

    @property
    def log_extension(self) -> str:
        return LOG_EXTENSIONS[self.log_format]
