# src/cardflow/engine/timers.py
"""Named start/end timers for one worker cycle.

Timers are cycle-scoped and only touched at phase boundaries, never from
inside per-card tasks, so they need no locking.
"""

from __future__ import annotations

from cardflow.engine.clock import DEFAULT_CLOCK, Clock


class CycleTimers:
    """Named wall-clock markers.

    ``end()`` without a name closes the most recently started timer that is
    still open, so the common pattern needs no bookkeeping:

        timers.start("extract")
        ...
        timers.end()
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or DEFAULT_CLOCK
        self._open: dict[str, float] = {}
        self._elapsed: dict[str, float] = {}

    def start(self, name: str) -> None:
        """Start (or restart) the timer called ``name``."""
        self._open.pop(name, None)
        self._open[name] = self._clock.monotonic()

    def end(self, name: str | None = None) -> float:
        """Stop a timer and return its elapsed seconds.

        Raises:
            KeyError: If the timer isn't running (or none is, when name is None)
        """
        if name is None:
            if not self._open:
                raise KeyError("no timer is running")
            name = next(reversed(self._open))
        started = self._open.pop(name)
        elapsed = self._clock.monotonic() - started
        self._elapsed[name] = elapsed
        return elapsed

    def elapsed(self, name: str) -> float:
        return self._elapsed[name]

    @property
    def running(self) -> tuple[str, ...]:
        return tuple(self._open)

    def as_dict(self) -> dict[str, float]:
        """Elapsed seconds of every finished timer, in completion order."""
        return dict(self._elapsed)
