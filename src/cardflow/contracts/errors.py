# src/cardflow/contracts/errors.py
"""Error contracts and exception hierarchy.

Two failure channels exist and must not be mixed:

- Card-local failures travel as data. A task returns ``TaskResult.error(CardError(...))``
  and the card ends up with ``status == ERROR``. Raised exceptions inside a task
  are task faults; the batch processor retries them and converts exhaustion into
  a card error. Nothing card-local ever escapes a phase.
- Phase-level faults (the batched extract call rejecting, a phase function
  raising outside any card) escape as ``CycleFatalError``.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class CardError:
    """Structured business error attached to a single job card.

    Attributes:
        message: Human-readable message stored on ``JobCard.error``
        reason: Short machine-readable category (e.g. "lookup_miss")
        details: Optional extra context for logs
    """

    message: str
    reason: str = "task_error"
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.message:
            raise ValueError("CardError.message must be non-empty")

    @classmethod
    def lookup_miss(cls, entity: str, key: object) -> "CardError":
        """Error for a card whose reference key resolved to nothing."""
        return cls(message=f"{entity} not found: {key}", reason="lookup_miss", details={"key": str(key)})

    @classmethod
    def from_exception(cls, exc: BaseException, *, reason: str = "task_error") -> "CardError":
        """Build an error from an exception, falling back to its type name."""
        return cls(message=str(exc) or type(exc).__name__, reason=reason, details={"error_type": type(exc).__name__})


class CardflowError(Exception):
    """Base class for all cardflow exceptions."""


class CardInvariantError(CardflowError):
    """Raised when a job card's status/error invariants are violated."""


class InputValidationError(CardflowError):
    """Raised when a card's inputs fail validation at phase entry."""

    def __init__(self, card_id: str, message: str) -> None:
        self.card_id = card_id
        super().__init__(f"invalid inputs for card {card_id}: {message}")


class TaskTimeoutError(CardflowError):
    """A single task attempt exceeded the policy timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"timed out after {timeout:g}s")


class RetryableTaskError(CardflowError):
    """Raised internally for ``TaskResult.error(..., retryable=True)``.

    Lets a business error returned as data take the retry path.
    """

    def __init__(self, error: CardError) -> None:
        self.error = error
        super().__init__(error.message)


class MaxRetriesExceeded(CardflowError):
    """Raised when max retry attempts are exceeded."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries ({attempts}) exceeded: {last_error}")


class TranslatorError(CardflowError):
    """Base class for translator registry failures."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(message)


class TranslatorNotFoundError(TranslatorError):
    """Requested translator key is not registered."""

    def __init__(self, key: str) -> None:
        super().__init__(key, f"Translator not found: {key}")


class TranslationFailedError(TranslatorError):
    """A registered translator raised while transforming its input."""

    def __init__(self, key: str, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(key, f"Translator '{key}' failed: {cause or type(cause).__name__}")


class CycleFatalError(CardflowError):
    """A fault outside any single card's processing aborted the cycle.

    The original fault is available as ``__cause__``.
    """

    def __init__(self, phase: str, cause: BaseException) -> None:
        self.phase = phase
        super().__init__(f"Phase '{phase}' failed: {type(cause).__name__}: {cause}")


class CycleInvariantError(CardflowError):
    """Framework bug: a phase broke batch cardinality or ordering."""
