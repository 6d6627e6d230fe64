# src/cardflow/contracts/engine.py
"""Engine-related type contracts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cardflow.core.config import RetrySettings


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retries, inter-attempt delay and per-attempt timeout.

    max_retries is the number of ADDITIONAL attempts, not the total.
    So max_retries=0 means exactly one attempt and max_retries=3 means
    up to four.

    Attributes:
        max_retries: Additional attempts after the first (>= 0)
        retry_delay: Seconds to wait between attempts (>= 0)
        timeout: Seconds allowed per attempt, or None for no bound
    """

    max_retries: int = 0
    retry_delay: float = 0.0
    timeout: float | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

    @property
    def max_attempts(self) -> int:
        """Total attempts allowed."""
        return self.max_retries + 1

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """Factory for a single attempt with no timeout."""
        return cls()

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        """Factory from RetrySettings config model.

        Args:
            settings: Validated Pydantic settings model

        Returns:
            RetryPolicy with mapped values
        """
        return cls(
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay_seconds,
            timeout=settings.timeout_seconds,
        )
