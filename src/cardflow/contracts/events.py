# src/cardflow/contracts/events.py
"""Observability events for worker cycles.

Events are emitted by WorkerCycle at phase boundaries and consumed by
whatever subscribes to the event bus (CLI output, metrics, tests).
"""

from dataclasses import dataclass, field

from cardflow.contracts.enums import CycleStatus


@dataclass(frozen=True, slots=True)
class PhaseStarted:
    """Emitted when a phase begins.

    Attributes:
        cycle_id: Cycle the phase belongs to
        phase: Phase name
        card_count: Cards entering the phase
    """

    cycle_id: str
    phase: str
    card_count: int


@dataclass(frozen=True, slots=True)
class PhaseCompleted:
    """Emitted when a phase resolves every card.

    Attributes:
        status_counts: Number of cards per status after the phase
        duration_seconds: Wall time of the phase
    """

    cycle_id: str
    phase: str
    status_counts: dict[str, int]
    duration_seconds: float


@dataclass(frozen=True, slots=True)
class PhaseFailed:
    """Emitted when a phase fails.

    best_effort failures are logged and the cycle continues; any other
    failure aborts the cycle.
    """

    cycle_id: str
    phase: str
    error: str
    error_type: str
    best_effort: bool = False


@dataclass(frozen=True, slots=True)
class CycleCompleted:
    """Emitted once per cycle, success or failure."""

    cycle_id: str
    worker_type: str
    status: CycleStatus
    card_count: int
    status_counts: dict[str, int] = field(default_factory=dict)
    timings: dict[str, float] = field(default_factory=dict)
