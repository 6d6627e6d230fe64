# tests/unit/engine/test_spans.py
"""Tests for SpanFactory with and without a tracer."""

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from cardflow.contracts import JobCard
from cardflow.engine.cycle import WorkerCycle
from cardflow.engine.phases import card_phase
from cardflow.engine.spans import NoOpSpan, SpanFactory
from tests.conftest import make_cards


class _RecordingSpan:
    def __init__(self, name: str, attributes: dict[str, Any]) -> None:
        self.name = name
        self.attributes = dict(attributes)
        self.exceptions: list[BaseException] = []

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def record_exception(self, exception: BaseException) -> None:
        self.exceptions.append(exception)


class _RecordingTracer:
    """Duck-typed stand-in for opentelemetry.trace.Tracer."""

    def __init__(self) -> None:
        self.spans: list[_RecordingSpan] = []

    @contextmanager
    def start_as_current_span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[_RecordingSpan]:
        span = _RecordingSpan(name, attributes or {})
        self.spans.append(span)
        yield span


class TestSpanFactory:
    def test_disabled_yields_noop(self) -> None:
        factory = SpanFactory()

        with factory.cycle_span("c1", "w") as span:
            assert isinstance(span, NoOpSpan)
            assert not span.is_recording()
        assert not factory.enabled

    def test_span_names_and_attributes(self) -> None:
        tracer = _RecordingTracer()
        factory = SpanFactory(tracer)  # type: ignore[arg-type]

        with factory.cycle_span("c1", "recalc"), factory.phase_span("transform", card_count=2):
            with factory.card_span("A", phase="transform"):
                pass

        assert factory.enabled
        assert [s.name for s in tracer.spans] == ["cycle:recalc", "phase:transform", "card:A"]
        assert tracer.spans[0].attributes == {"cycle.id": "c1", "worker.type": "recalc"}
        assert tracer.spans[1].attributes == {"phase.name": "transform", "phase.card_count": 2}
        assert tracer.spans[2].attributes == {"card.id": "A", "phase.name": "transform"}

    def test_worker_cycle_records_card_failures(self) -> None:
        tracer = _RecordingTracer()

        async def fail(card: JobCard) -> JobCard:
            raise ValueError("nope")

        cycle = WorkerCycle("w", [card_phase("transform", fail)], span_factory=SpanFactory(tracer))  # type: ignore[arg-type]
        asyncio.run(cycle.run(make_cards(1)))

        card_spans = [s for s in tracer.spans if s.name.startswith("card:")]
        assert len(card_spans) == 1
        assert [str(e) for e in card_spans[0].exceptions] == ["nope"]
