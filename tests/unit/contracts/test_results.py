"""Tests for TaskResult, CardError and RetryPolicy contracts."""

import pytest

from cardflow.contracts import CardError, JobCard, RetryPolicy, TaskResult
from cardflow.core.config import RetrySettings


class TestTaskResult:
    def test_success(self) -> None:
        card = JobCard.create({})
        result = TaskResult.success(card)

        assert result.is_success
        assert result.card is card
        assert result.error is None

    def test_error_from_message(self) -> None:
        result = TaskResult.error(JobCard.create({}), "Translator not found: edi")

        assert not result.is_success
        assert result.error == CardError(message="Translator not found: edi")
        assert result.retryable is False

    def test_retryable_error(self) -> None:
        result = TaskResult.error(JobCard.create({}), CardError("busy", reason="rate_limited"), retryable=True)

        assert result.retryable
        assert result.error is not None
        assert result.error.reason == "rate_limited"

    def test_error_status_requires_error(self) -> None:
        with pytest.raises(ValueError, match="MUST provide"):
            TaskResult(status="error", card=JobCard.create({}))

    def test_success_status_rejects_error(self) -> None:
        with pytest.raises(ValueError, match="cannot carry"):
            TaskResult(status="success", card=JobCard.create({}), error=CardError("boom"))


class TestCardError:
    def test_empty_message_rejected(self) -> None:
        with pytest.raises(ValueError):
            CardError(message="")

    def test_lookup_miss(self) -> None:
        error = CardError.lookup_miss("engagement", 99)

        assert error.message == "engagement not found: 99"
        assert error.reason == "lookup_miss"

    def test_from_exception_falls_back_to_type_name(self) -> None:
        assert CardError.from_exception(ValueError()).message == "ValueError"
        assert CardError.from_exception(ValueError("bad")).message == "bad"


class TestRetryPolicy:
    def test_defaults_are_single_attempt(self) -> None:
        policy = RetryPolicy.no_retry()

        assert policy.max_attempts == 1
        assert policy.timeout is None

    def test_max_attempts_counts_first_attempt(self) -> None:
        assert RetryPolicy(max_retries=3).max_attempts == 4

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"max_retries": -1}, "max_retries"),
            ({"retry_delay": -0.1}, "retry_delay"),
            ({"timeout": 0}, "timeout"),
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict[str, float], match: str) -> None:
        with pytest.raises(ValueError, match=match):
            RetryPolicy(**kwargs)  # type: ignore[arg-type]

    def test_from_settings(self) -> None:
        policy = RetryPolicy.from_settings(RetrySettings(max_retries=2, retry_delay_seconds=0.5, timeout_seconds=10))

        assert policy == RetryPolicy(max_retries=2, retry_delay=0.5, timeout=10.0)
