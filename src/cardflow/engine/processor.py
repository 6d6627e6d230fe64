# src/cardflow/engine/processor.py
"""BatchProcessor: runs a per-card task over a batch with failure isolation.

Every non-failed card gets its own asyncio task. Results come back in
submission order regardless of completion order, and the batch always
completes: card-local failures end as ``status == ERROR`` on that card,
never as a raised exception.

Per card:
- ERROR/SKIPPED cards are passed through as the identical object
- each attempt works on ``card.fork()`` with status PROCESSING
- sync tasks run in a worker thread, so the attempt timeout still applies
- attempts are bounded by the RetryPolicy (timeout, delay, max_retries)
- exhaustion sets the error to the last failure's message
- input cards are never mutated
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Awaitable, Callable, Sequence

import structlog

from cardflow.contracts.card import JobCard
from cardflow.contracts.engine import RetryPolicy
from cardflow.contracts.enums import CardStatus
from cardflow.contracts.errors import (
    CardInvariantError,
    CycleInvariantError,
    MaxRetriesExceeded,
    RetryableTaskError,
    TaskTimeoutError,
)
from cardflow.contracts.results import TaskResult
from cardflow.engine.retry import RetryManager
from cardflow.engine.spans import SpanFactory

slog = structlog.get_logger(__name__)

type CardTask = Callable[[JobCard], Awaitable[JobCard | TaskResult] | JobCard | TaskResult]

_UNFINISHED = frozenset({CardStatus.PENDING, CardStatus.PROCESSING})


def failure_message(error: BaseException) -> str:
    """Message recorded on a card whose attempts are exhausted."""
    if isinstance(error, RetryableTaskError):
        return error.error.message
    if isinstance(error, TaskTimeoutError):
        return str(error)
    return str(error) or type(error).__name__


def is_async_callable(fn: object) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None))


async def call_task(task: CardTask, card: JobCard) -> JobCard | TaskResult:
    """Invoke ``task`` on ``card`` and await its outcome.

    Sync tasks run in a worker thread so the attempt deadline can fire and
    sibling cards keep running. A thread that overruns its deadline is
    abandoned, not interrupted; it only ever sees its own forked card.
    """
    if is_async_callable(task):
        outcome = task(card)
    else:
        outcome = await asyncio.to_thread(task, card)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


class BatchProcessor:
    """Applies a task to every non-failed card in a batch.

    Usage:
        processor = BatchProcessor(phase="transform")

        async def price(card: JobCard) -> TaskResult:
            card.data["total"] = await bridge.calculate(card.data["source"])
            return TaskResult.success(card.mark_processed())

        cards = await processor.process(cards, price, RetryPolicy(max_retries=3, retry_delay=1.0, timeout=5.0))
        assert len(cards) == len(original)
    """

    def __init__(
        self,
        *,
        phase: str = "batch",
        max_concurrency: int | None = None,
        span_factory: SpanFactory | None = None,
    ) -> None:
        """Initialize processor.

        Args:
            phase: Phase name used in logs, spans and default error messages
            max_concurrency: Maximum cards in flight, None for the whole batch.
                A card's timeout window starts once it holds a slot.
            span_factory: Optional span factory for per-card spans
        """
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._phase = phase
        self._max_concurrency = max_concurrency
        self._spans = span_factory or SpanFactory()

    @property
    def phase(self) -> str:
        return self._phase

    async def process(
        self,
        cards: Sequence[JobCard],
        task: CardTask,
        policy: RetryPolicy | None = None,
    ) -> list[JobCard]:
        """Run ``task`` over ``cards`` and return the resulting cards in input order.

        Args:
            cards: The batch
            task: Per-card task returning a JobCard or TaskResult
            policy: Retry/timeout policy; None means one unbounded attempt

        Returns:
            Exactly len(cards) cards, position-for-position

        Raises:
            CycleInvariantError: If cardinality is broken (framework bug)
        """
        if not cards:
            return []

        manager = RetryManager(policy or RetryPolicy.no_retry())
        slots = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None

        # gather preserves submission order whatever the completion order
        results = await asyncio.gather(*(self._process_card(card, task, manager, slots) for card in cards))

        if len(results) != len(cards):
            raise CycleInvariantError(f"Phase '{self._phase}' returned {len(results)} cards for {len(cards)} inputs")
        return list(results)

    async def _process_card(
        self,
        card: JobCard,
        task: CardTask,
        manager: RetryManager,
        slots: asyncio.Semaphore | None,
    ) -> JobCard:
        if card.is_terminal_failure:
            slog.debug("Passing failed card through", phase=self._phase, card_id=card.id, status=card.status.value)
            return card

        attempts = 0

        def on_attempt(number: int) -> None:
            nonlocal attempts
            attempts = number

        def on_retry(number: int, error: BaseException) -> None:
            slog.warning(
                "Card attempt failed, retrying",
                phase=self._phase,
                card_id=card.id,
                attempt=number,
                error=failure_message(error),
                error_type=type(error).__name__,
            )

        async def attempt() -> JobCard:
            working = card.fork()
            working.status = CardStatus.PROCESSING
            return self._settle(card, await call_task(task, working))

        async with slots if slots is not None else contextlib.nullcontext():
            with self._spans.card_span(card.id, phase=self._phase) as span:
                try:
                    result = await manager.execute_with_retry(attempt, on_attempt=on_attempt, on_retry=on_retry)
                except MaxRetriesExceeded as e:
                    span.record_exception(e.last_error)
                    return self._failed(card, e.last_error, e.attempts)
                except Exception as e:
                    # Only reachable with a custom is_retryable; still card-local
                    span.record_exception(e)
                    return self._failed(card, e, attempts)

        result.attempts = attempts
        return result

    def _settle(self, original: JobCard, outcome: object) -> JobCard:
        """Turn a task outcome into the card's new value.

        Raises:
            RetryableTaskError: For TaskResult.error(..., retryable=True)
            CardInvariantError: If the task broke card identity or invariants
            TypeError: If the task returned something else entirely
        """
        if isinstance(outcome, JobCard):
            outcome = TaskResult.success(outcome)
        if not isinstance(outcome, TaskResult):
            raise TypeError(f"task returned {type(outcome).__name__}, expected JobCard or TaskResult")

        card = outcome.card
        if card.id != original.id:
            raise CardInvariantError(f"task for card {original.id} returned card {card.id}")

        if outcome.error is not None:
            if outcome.retryable:
                raise RetryableTaskError(outcome.error)
            slog.info(
                "Card failed",
                phase=self._phase,
                card_id=card.id,
                reason=outcome.error.reason,
                error=outcome.error.message,
            )
            return card.mark_error(outcome.error.message)

        if card.status in _UNFINISHED:
            slog.warning("Task left card unfinished", phase=self._phase, card_id=card.id)
            return card.mark_error(f"{self._phase} did not mark card as processed")
        if card.status == CardStatus.ERROR and not card.error:
            card.error = f"{self._phase} failed"
        card.validate()
        return card

    def _failed(self, card: JobCard, error: BaseException, attempts: int) -> JobCard:
        failed = card.fork()
        failed.attempts = attempts
        failed.mark_error(failure_message(error))
        slog.warning(
            "Card failed after retries",
            phase=self._phase,
            card_id=card.id,
            attempts=attempts,
            error=failed.error,
            error_type=type(error).__name__,
        )
        return failed
