# src/cardflow/contracts/results.py
"""Task outcomes.

These types answer: "What did a per-card task produce?"

A task hands back either a bare ``JobCard`` (treated as success) or a
``TaskResult``. Business failures are returned, never raised:

    return TaskResult.error(card, CardError("Translator not found: edi"))

Use the factory methods to create instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from cardflow.contracts.card import JobCard
from cardflow.contracts.errors import CardError


@dataclass(frozen=True, slots=True)
class TaskResult:
    """Result of one task attempt on one card.

    Invariant: status="error" implies error is not None.
    """

    status: Literal["success", "error"]
    card: JobCard
    error: CardError | None = None
    retryable: bool = False

    def __post_init__(self) -> None:
        if self.status == "error" and self.error is None:
            raise ValueError("TaskResult with status='error' MUST provide a CardError")
        if self.status == "success" and self.error is not None:
            raise ValueError("TaskResult with status='success' cannot carry a CardError")

    @classmethod
    def success(cls, card: JobCard) -> TaskResult:
        return cls(status="success", card=card)

    @classmethod
    def error(cls, card: JobCard, error: CardError | str, *, retryable: bool = False) -> TaskResult:
        """Create an error result.

        Args:
            card: The card the error belongs to
            error: Structured error, or a plain message
            retryable: If True, the processor retries like a raised failure
        """
        if isinstance(error, str):
            error = CardError(message=error)
        return cls(status="error", card=card, error=error, retryable=retryable)

    @property
    def is_success(self) -> bool:
        return self.status == "success"
