# src/cardflow/engine/retry.py
"""RetryManager: async retry logic with tenacity integration.

Provides bounded retry behavior for per-card task execution:
- Fixed delay between attempts (RetryPolicy.retry_delay)
- At most RetryPolicy.max_retries + 1 attempts
- Per-attempt timeout; an expired attempt counts as a failed attempt
- Retryable error filtering

One manager may be shared by every card in a batch: it holds no per-call
state, attempt numbers are reported through callbacks.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from cardflow.contracts.engine import RetryPolicy
from cardflow.contracts.errors import MaxRetriesExceeded, TaskTimeoutError

T = TypeVar("T")


def retry_any_exception(error: BaseException) -> bool:
    """Default predicate: every Exception is retryable, cancellation is not."""
    return isinstance(error, Exception)


class RetryManager:
    """Runs an async operation under a RetryPolicy.

    Example:
        manager = RetryManager(RetryPolicy(max_retries=3, retry_delay=1.0, timeout=5.0))

        card = await manager.execute_with_retry(
            lambda: task(card.fork()),
            on_retry=lambda attempt, error: log.warning("retrying", attempt=attempt),
        )
    """

    def __init__(self, policy: RetryPolicy) -> None:
        self._policy = policy

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def _run_attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run one attempt, bounded by the policy timeout."""
        timeout = self._policy.timeout
        if timeout is None:
            return await operation()

        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                return await operation()
        except TimeoutError as e:
            # A TimeoutError raised by the operation itself is a plain failure
            if deadline.expired():
                raise TaskTimeoutError(timeout) from e
            raise

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        is_retryable: Callable[[BaseException], bool] = retry_any_exception,
        on_attempt: Callable[[int], None] | None = None,
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> T:
        """Execute operation with retry logic.

        Args:
            operation: Zero-argument factory returning a fresh awaitable per attempt
            is_retryable: Function to check if error is retryable
            on_attempt: Optional callback when an attempt starts (1-based number)
            on_retry: Optional callback when a failed attempt will be retried
                (1-based number of the failed attempt, error)

        Returns:
            Result of the first successful attempt

        Raises:
            MaxRetriesExceeded: If every allowed attempt failed
            Exception: If a non-retryable error occurs
        """
        attempt = 0
        last_error: BaseException | None = None

        try:
            async for attempt_state in AsyncRetrying(
                stop=stop_after_attempt(self._policy.max_attempts),
                wait=wait_fixed(self._policy.retry_delay),
                retry=retry_if_exception(is_retryable),
                reraise=False,  # We catch RetryError and convert to MaxRetriesExceeded
            ):
                with attempt_state:
                    attempt = attempt_state.retry_state.attempt_number
                    if on_attempt is not None:
                        on_attempt(attempt)
                    try:
                        return await self._run_attempt(operation)
                    except Exception as e:
                        last_error = e
                        # Only report retries that will actually happen
                        if on_retry is not None and attempt < self._policy.max_attempts and is_retryable(e):
                            on_retry(attempt, e)
                        raise

        except RetryError as e:
            final_error = last_error or e.last_attempt.exception()
            assert final_error is not None, "RetryError without exception is impossible"
            raise MaxRetriesExceeded(attempt, final_error) from e

        # Should not reach here - AsyncRetrying always returns or raises
        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover
