# src/cardflow/engine/cycle.py
"""WorkerCycle: runs an ordered list of phases over one batch of job cards.

A worker is configuration, not a subclass:

    cycle = WorkerCycle(
        "engagement-recalculator",
        phases=[
            extract_phase(bridge.fetch_entities, key_for_card=input_key("engagement_id")),
            card_phase("transform", recalculate, policy=policy),
            card_phase("load", persist),
            notify_phase(announce),
        ],
    )
    result = await cycle.run(cards)

Phases run strictly one after another; each must resolve every card before
the next starts. A phase that raises aborts the cycle with CycleFatalError,
unless it is best-effort, in which case the failure is logged and the batch
continues unchanged.

After every phase the cycle checks that cardinality, order and identity are
intact and that failed cards came back as the identical object.
"""

from __future__ import annotations

import uuid
from collections import Counter
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from cardflow.contracts.card import JobCard
from cardflow.contracts.enums import CardStatus, CycleStatus
from cardflow.contracts.errors import CycleFatalError, CycleInvariantError
from cardflow.contracts.events import CycleCompleted, PhaseCompleted, PhaseFailed, PhaseStarted
from cardflow.core.events import EventBusProtocol, NullEventBus
from cardflow.core.logging import cycle_log_context
from cardflow.engine.clock import Clock
from cardflow.engine.processor import BatchProcessor
from cardflow.engine.spans import SpanFactory
from cardflow.engine.timers import CycleTimers

if TYPE_CHECKING:
    from cardflow.core.config import CardflowSettings

slog = structlog.get_logger(__name__)


def status_counts(cards: Sequence[JobCard]) -> dict[str, int]:
    return dict(Counter(card.status.value for card in cards))


@dataclass
class CycleContext:
    """Everything a phase may use besides the batch itself.

    Lives for exactly one WorkerCycle.run() call.
    """

    cycle_id: str
    worker_type: str
    timers: CycleTimers
    log: Any
    span_factory: SpanFactory = field(default_factory=SpanFactory)
    max_concurrency: int | None = None

    def processor(self, phase: str) -> BatchProcessor:
        """Batch processor configured for this cycle."""
        return BatchProcessor(phase=phase, max_concurrency=self.max_concurrency, span_factory=self.span_factory)


type PhaseFn = Callable[[list[JobCard], CycleContext], Awaitable[Sequence[JobCard]]]


@dataclass(frozen=True)
class Phase:
    """A named async transformation over the whole batch.

    Attributes:
        name: Phase name used in logs, events and timers
        run: Async function (cards, ctx) -> cards
        best_effort: If True, a raised failure is logged and the batch
            passes through unchanged instead of aborting the cycle
    """

    name: str
    run: PhaseFn
    best_effort: bool = False


@dataclass
class CycleResult:
    """Outcome of one cycle."""

    cycle_id: str
    status: CycleStatus
    cards: list[JobCard]
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def processed(self) -> list[JobCard]:
        return [card for card in self.cards if card.status == CardStatus.PROCESSED]

    @property
    def failed(self) -> list[JobCard]:
        return [card for card in self.cards if card.status == CardStatus.ERROR]

    @property
    def status_counts(self) -> dict[str, int]:
        return status_counts(self.cards)


class WorkerCycle:
    """Orchestrates phases over one batch per run() call."""

    def __init__(
        self,
        worker_type: str,
        phases: Sequence[Phase],
        *,
        event_bus: EventBusProtocol | None = None,
        clock: Clock | None = None,
        span_factory: SpanFactory | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        names = [phase.name for phase in phases]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate phase names: {duplicates}")

        self._worker_type = worker_type
        self._phases = tuple(phases)
        self._events = event_bus or NullEventBus()
        self._clock = clock
        self._spans = span_factory or SpanFactory()
        self._max_concurrency = max_concurrency

    @classmethod
    def from_settings(
        cls,
        settings: CardflowSettings,
        phases: Sequence[Phase],
        **kwargs: Any,
    ) -> WorkerCycle:
        return cls(
            settings.worker_type,
            phases,
            max_concurrency=settings.concurrency.max_concurrency,
            **kwargs,
        )

    @property
    def worker_type(self) -> str:
        return self._worker_type

    @property
    def phases(self) -> tuple[Phase, ...]:
        return self._phases

    async def run(self, cards: Sequence[JobCard]) -> CycleResult:
        """Run every phase over ``cards``.

        Returns:
            CycleResult holding one card per input card, in input order

        Raises:
            CycleFatalError: A non-best-effort phase raised; later phases did not run
            CycleInvariantError: A phase broke cardinality, order or error stickiness
        """
        cycle_id = uuid.uuid4().hex
        with cycle_log_context(cycle_id, self._worker_type):
            return await self._run_cycle(cycle_id, cards)

    async def _run_cycle(self, cycle_id: str, cards: Sequence[JobCard]) -> CycleResult:
        if not cards:
            slog.info("No job cards to process")
            self._events.emit(CycleCompleted(cycle_id, self._worker_type, CycleStatus.EMPTY, 0))
            return CycleResult(cycle_id=cycle_id, status=CycleStatus.EMPTY, cards=[])

        ctx = CycleContext(
            cycle_id=cycle_id,
            worker_type=self._worker_type,
            timers=CycleTimers(self._clock),
            log=slog,
            span_factory=self._spans,
            max_concurrency=self._max_concurrency,
        )
        batch = list(cards)

        with self._spans.cycle_span(cycle_id, self._worker_type):
            for phase in self._phases:
                batch = await self._run_phase(phase, batch, ctx)

        counts = status_counts(batch)
        slog.info("Worker cycle completed", card_count=len(batch), status_counts=counts)
        self._events.emit(
            CycleCompleted(
                cycle_id,
                self._worker_type,
                CycleStatus.COMPLETED,
                len(batch),
                status_counts=counts,
                timings=ctx.timers.as_dict(),
            )
        )
        return CycleResult(cycle_id=cycle_id, status=CycleStatus.COMPLETED, cards=batch, timings=ctx.timers.as_dict())

    async def _run_phase(self, phase: Phase, batch: list[JobCard], ctx: CycleContext) -> list[JobCard]:
        ctx.log.info("Starting phase", phase=phase.name, card_count=len(batch))
        self._events.emit(PhaseStarted(ctx.cycle_id, phase.name, len(batch)))
        ctx.timers.start(phase.name)

        try:
            with self._spans.phase_span(phase.name, card_count=len(batch)):
                output = list(await phase.run(list(batch), ctx))
        except Exception as exc:
            ctx.timers.end(phase.name)
            failed = PhaseFailed(ctx.cycle_id, phase.name, str(exc), type(exc).__name__, phase.best_effort)
            if phase.best_effort:
                ctx.log.warning("Best-effort phase failed", phase=phase.name, error=str(exc), error_type=type(exc).__name__)
                self._events.emit(failed)
                return batch
            ctx.log.error("Worker cycle failed", phase=phase.name, error=str(exc), error_type=type(exc).__name__)
            self._emit_while_failing(
                ctx,
                failed,
                CycleCompleted(
                    ctx.cycle_id,
                    self._worker_type,
                    CycleStatus.FAILED,
                    len(batch),
                    status_counts=status_counts(batch),
                    timings=ctx.timers.as_dict(),
                ),
            )
            raise CycleFatalError(phase.name, exc) from exc

        elapsed = ctx.timers.end(phase.name)
        self._check_phase_output(phase.name, batch, output)

        counts = status_counts(output)
        ctx.log.info("Phase completed", phase=phase.name, duration_seconds=round(elapsed, 6), status_counts=counts)
        self._events.emit(PhaseCompleted(ctx.cycle_id, phase.name, counts, elapsed))
        return output

    def _emit_while_failing(self, ctx: CycleContext, *events: object) -> None:
        """Publish failure events; a broken handler is logged and never masks the phase fault."""
        for event in events:
            try:
                self._events.emit(event)
            except Exception as handler_exc:
                ctx.log.error(
                    "Event handler failed while cycle was failing",
                    event=type(event).__name__,
                    error=str(handler_exc),
                    error_type=type(handler_exc).__name__,
                )

    @staticmethod
    def _check_phase_output(phase: str, before: list[JobCard], after: list[JobCard]) -> None:
        if len(after) != len(before):
            raise CycleInvariantError(f"Phase '{phase}' returned {len(after)} cards for {len(before)} inputs")
        for position, (old, new) in enumerate(zip(before, after, strict=True)):
            if new.id != old.id:
                raise CycleInvariantError(f"Phase '{phase}' reordered cards: position {position} held {old.id}, now {new.id}")
            if old.is_terminal_failure and new is not old:
                raise CycleInvariantError(f"Phase '{phase}' modified failed card {old.id}")
