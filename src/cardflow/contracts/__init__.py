# src/cardflow/contracts/__init__.py
"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes (RetrySettings, CardflowSettings) are NOT re-exported here -
import them from cardflow.core.config.

Import patterns:
    from cardflow.contracts import JobCard, CardStatus, TaskResult
    from cardflow.core.config import RetrySettings, CardflowSettings
"""

from cardflow.contracts.bridge import Bridge, LookupKey, canonical_id
from cardflow.contracts.card import CardValue, JobCard
from cardflow.contracts.engine import RetryPolicy
from cardflow.contracts.enums import PASSTHROUGH_STATUSES, CardStatus, CycleStatus, PhaseKind
from cardflow.contracts.errors import (
    CardError,
    CardflowError,
    CardInvariantError,
    CycleFatalError,
    CycleInvariantError,
    InputValidationError,
    MaxRetriesExceeded,
    RetryableTaskError,
    TaskTimeoutError,
    TranslationFailedError,
    TranslatorError,
    TranslatorNotFoundError,
)
from cardflow.contracts.events import CycleCompleted, PhaseCompleted, PhaseFailed, PhaseStarted
from cardflow.contracts.results import TaskResult

__all__ = [
    "PASSTHROUGH_STATUSES",
    "Bridge",
    "CardError",
    "CardInvariantError",
    "CardStatus",
    "CardValue",
    "CardflowError",
    "CycleCompleted",
    "CycleFatalError",
    "CycleInvariantError",
    "CycleStatus",
    "InputValidationError",
    "JobCard",
    "LookupKey",
    "MaxRetriesExceeded",
    "PhaseCompleted",
    "PhaseFailed",
    "PhaseKind",
    "PhaseStarted",
    "RetryPolicy",
    "RetryableTaskError",
    "TaskResult",
    "TaskTimeoutError",
    "TranslationFailedError",
    "TranslatorError",
    "TranslatorNotFoundError",
    "canonical_id",
]
