# tests/unit/engine/test_retry.py
"""Tests for RetryManager."""

import asyncio

import pytest

from cardflow.contracts import MaxRetriesExceeded, RetryPolicy, TaskTimeoutError
from cardflow.engine.retry import RetryManager


class TestRetryManager:
    """Retry logic with tenacity."""

    def test_retry_on_retryable_error(self) -> None:
        manager = RetryManager(RetryPolicy(max_retries=2, retry_delay=0.01))

        call_count = 0

        async def flaky_operation() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("Transient error")
            return "success"

        result = asyncio.run(manager.execute_with_retry(flaky_operation))

        assert result == "success"
        assert call_count == 3

    def test_no_retry_on_non_retryable(self) -> None:
        manager = RetryManager(RetryPolicy(max_retries=3, retry_delay=0.01))

        call_count = 0

        async def failing_operation() -> None:
            nonlocal call_count
            call_count += 1
            raise TypeError("Not retryable")

        with pytest.raises(TypeError):
            asyncio.run(
                manager.execute_with_retry(
                    failing_operation,
                    is_retryable=lambda e: isinstance(e, ValueError),
                )
            )

        # Non-retryable error does NOT trigger retries - exactly 1 call
        assert call_count == 1

    def test_attempts_bounded_by_max_retries(self) -> None:
        """max_retries=3 means exactly four attempts."""
        manager = RetryManager(RetryPolicy(max_retries=3, retry_delay=0.0))

        call_count = 0

        async def always_fails() -> None:
            nonlocal call_count
            call_count += 1
            raise ValueError(f"failure {call_count}")

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            asyncio.run(manager.execute_with_retry(always_fails))

        assert call_count == 4
        assert exc_info.value.attempts == 4
        assert str(exc_info.value.last_error) == "failure 4"

    def test_no_retry_policy_is_single_attempt(self) -> None:
        manager = RetryManager(RetryPolicy.no_retry())

        call_count = 0

        async def always_fails() -> None:
            nonlocal call_count
            call_count += 1
            raise ValueError("nope")

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            asyncio.run(manager.execute_with_retry(always_fails))

        assert call_count == 1
        assert exc_info.value.attempts == 1

    def test_on_retry_uses_one_based_attempts(self) -> None:
        """on_retry fires once per failed attempt that will be retried."""
        manager = RetryManager(RetryPolicy(max_retries=2, retry_delay=0.0))
        retries: list[tuple[int, str]] = []

        async def always_fails() -> None:
            raise ValueError("boom")

        with pytest.raises(MaxRetriesExceeded):
            asyncio.run(
                manager.execute_with_retry(
                    always_fails,
                    on_retry=lambda attempt, error: retries.append((attempt, str(error))),
                )
            )

        # Third attempt is the last one, so no retry is reported for it
        assert retries == [(1, "boom"), (2, "boom")]

    def test_on_attempt_sees_every_attempt(self) -> None:
        manager = RetryManager(RetryPolicy(max_retries=2, retry_delay=0.0))
        started: list[int] = []
        call_count = 0

        async def succeeds_second_time() -> str:
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise ValueError("first")
            return "ok"

        asyncio.run(manager.execute_with_retry(succeeds_second_time, on_attempt=started.append))

        assert started == [1, 2]

    def test_delay_between_attempts(self) -> None:
        manager = RetryManager(RetryPolicy(max_retries=2, retry_delay=0.05))
        call_count = 0

        async def succeeds_third_time() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("transient")
            return "ok"

        async def timed() -> float:
            loop = asyncio.get_running_loop()
            started = loop.time()
            await manager.execute_with_retry(succeeds_third_time)
            return loop.time() - started

        elapsed = asyncio.run(timed())

        assert elapsed >= 0.1 * 0.95


class TestRetryManagerTimeout:
    """Per-attempt timeout."""

    def test_slow_attempt_times_out(self) -> None:
        manager = RetryManager(RetryPolicy(timeout=0.05))

        async def slow() -> None:
            await asyncio.sleep(5)

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            asyncio.run(manager.execute_with_retry(slow))

        assert isinstance(exc_info.value.last_error, TaskTimeoutError)
        assert str(exc_info.value.last_error) == "timed out after 0.05s"

    def test_timeout_is_per_attempt(self) -> None:
        manager = RetryManager(RetryPolicy(max_retries=1, timeout=0.05))
        call_count = 0

        async def slow_then_fast() -> str:
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                await asyncio.sleep(5)
            return "fast"

        assert asyncio.run(manager.execute_with_retry(slow_then_fast)) == "fast"
        assert call_count == 2

    def test_operation_raising_timeout_error_is_plain_failure(self) -> None:
        manager = RetryManager(RetryPolicy(timeout=5.0))

        async def raises_timeout() -> None:
            raise TimeoutError("upstream timed out")

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            asyncio.run(manager.execute_with_retry(raises_timeout))

        assert type(exc_info.value.last_error) is TimeoutError
