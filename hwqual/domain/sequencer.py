from __future__ import annotations

import math
from dataclasses import dataclass

from .settings import DISPLAY_PATTERNS, DisplayPattern


@dataclass(frozen=True)
class DisplaySequencer:
    """Maps elapsed time since the sequence start to the active pattern index.

    The first ``N - 1`` patterns rotate every ``interval_sec``; once
    ``(N - 1) * interval_sec`` has elapsed the final pattern is held until the
    operator acknowledges it. There is no auto-advance past the held pattern.
    """

    interval_sec: float
    patterns: tuple[DisplayPattern, ...] = DISPLAY_PATTERNS

    def __post_init__(self) -> None:
        if self.interval_sec <= 0:
            raise ValueError("interval_sec must be positive")
        if len(self.patterns) < 2:
            raise ValueError("at least one timed pattern and one held pattern are required")

    @property
    def held_index(self) -> int:
        return len(self.patterns) - 1

    @property
    def timed_duration_sec(self) -> float:
        return self.held_index * self.interval_sec

    def index_at(self, started_at: float, now: float) -> int:
        elapsed = max(0.0, now - started_at)
        if elapsed >= self.timed_duration_sec:
            return self.held_index
        return math.floor(elapsed / self.interval_sec) % self.held_index

    def is_held(self, started_at: float, now: float) -> bool:
        return self.index_at(started_at, now) == self.held_index

    def pattern_at(self, started_at: float, now: float) -> DisplayPattern:
        return self.patterns[self.index_at(started_at, now)]

    def seconds_until_hold(self, started_at: float, now: float) -> float:
        return max(0.0, self.timed_duration_sec - max(0.0, now - started_at))
