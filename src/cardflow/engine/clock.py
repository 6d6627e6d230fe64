# src/cardflow/engine/clock.py
"""Time source for cycle timers.

Phase durations are measured against an injectable clock so tests can
assert exact timings without sleeping.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Anything with a monotonic ``monotonic()`` reading in seconds."""

    def monotonic(self) -> float: ...


class SystemClock:
    """Wall clock backed by ``time.monotonic``."""

    def monotonic(self) -> float:
        return time.monotonic()


class MockClock:
    """Manually driven clock.

    Usage:
        clock = MockClock()
        cycle = WorkerCycle("recalc", phases, clock=clock)

    A phase under test calls ``clock.advance(1.5)`` and the cycle reports
    ``timings == {"transform": 1.5}``.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def monotonic(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move time forward.

        Raises:
            ValueError: If seconds is negative (time never runs backwards)
        """
        if seconds < 0:
            raise ValueError(f"MockClock cannot move backwards (got {seconds} seconds, negative)")
        self._now += seconds


DEFAULT_CLOCK: Clock = SystemClock()
