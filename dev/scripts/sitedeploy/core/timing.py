"""Wall-clock timing of deployment phases."""

from __future__ import annotations

import time
from typing import Optional


class TimingContext:
    """Records the wall-clock duration of a block into ``timings[key]``.

    The duration is recorded even when the block raises.
    """

    def __init__(self, timings: dict[str, float], key: str) -> None:
        self.timings = timings
        self.key = key
        self._start: Optional[float] = None

    def __enter__(self) -> "TimingContext":
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._start is not None:
            self.timings[self.key] = round(time.monotonic() - self._start, 3)
        return None


class PhaseTimings:
    """Ordered phase name -> seconds, filled in by ``measure`` blocks."""

    def __init__(self) -> None:
        self.durations: dict[str, float] = {}

    def measure(self, phase: str) -> TimingContext:
        return TimingContext(self.durations, phase)

    @property
    def total(self) -> float:
        return sum(self.durations.values())

    def summary(self) -> str:
        """One line summary, e.g. ``fetch: 2.1s | build: 1m 4.0s | total: 1m 6.1s``."""
        if not self.durations:
            return "(no timing data)"
        parts = [f"{name}: {format_duration(secs)}" for name, secs in self.durations.items()]
        parts.append(f"total: {format_duration(self.total)}")
        return " | ".join(parts)


def format_duration(seconds: float) -> str:
    """Render seconds as ``0.5s``, ``1m 5.3s`` or ``1h 1m 1.0s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{int(hours)}h {int(minutes)}m {secs:.1f}s"
    return f"{int(minutes)}m {secs:.1f}s"
