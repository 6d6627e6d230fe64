# src/cardflow/contracts/enums.py
"""Status codes and kinds used across subsystem boundaries."""

from enum import StrEnum


class CardStatus(StrEnum):
    """Lifecycle status of a job card.

    Values:
        PENDING: Initial state, before any phase has touched the card
        PROCESSING: Transient, only observable while a task body runs
        PROCESSED: Terminal success for a phase
        ERROR: Terminal failure, sticky across all later phases
        SKIPPED: Excluded by a pre-filter; passed through like ERROR
    """

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"
    SKIPPED = "skipped"


# Statuses the batch processor never hands to a task
PASSTHROUGH_STATUSES: frozenset[CardStatus] = frozenset({CardStatus.ERROR, CardStatus.SKIPPED})


class CycleStatus(StrEnum):
    """Final status of a worker cycle."""

    EMPTY = "empty"
    COMPLETED = "completed"
    FAILED = "failed"


class PhaseKind(StrEnum):
    """Conventional phase names of an ETL worker cycle."""

    EXTRACT = "extract"
    TRANSFORM = "transform"
    LOAD = "load"
    NOTIFY = "notify"
    FILTER = "filter"
