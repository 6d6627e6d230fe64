# src/cardflow/engine/spans.py
"""Optional OpenTelemetry tracing for worker cycles.

opentelemetry-api is an optional extra (``cardflow[tracing]``). Without a
tracer every span is the shared NoOpSpan and nothing is imported.

Span tree per cycle:
    cycle:{worker_type}
    └── phase:{phase_name}
        └── card:{card_id}   (all attempts of one card in one phase)
"""

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer


class NoOpSpan:
    """Stands in for an OpenTelemetry span when tracing is off."""

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_status(self, status: Any) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass

    def is_recording(self) -> bool:
        return False


class SpanFactory:
    """Opens cycle, phase and card spans on an optional tracer.

    Example:
        from opentelemetry import trace

        cycle = WorkerCycle("recalc", phases, span_factory=SpanFactory(trace.get_tracer("cardflow")))
    """

    _NOOP = NoOpSpan()

    def __init__(self, tracer: "Tracer | None" = None) -> None:
        self._tracer = tracer

    @property
    def enabled(self) -> bool:
        return self._tracer is not None

    @contextmanager
    def _span(self, name: str, attributes: dict[str, Any]) -> Iterator["Span | NoOpSpan"]:
        if self._tracer is None:
            yield self._NOOP
            return
        with self._tracer.start_as_current_span(name, attributes=attributes) as span:
            yield span

    def cycle_span(self, cycle_id: str, worker_type: str) -> "AbstractContextManager[Span | NoOpSpan]":
        return self._span(f"cycle:{worker_type}", {"cycle.id": cycle_id, "worker.type": worker_type})

    def phase_span(self, phase: str, *, card_count: int) -> "AbstractContextManager[Span | NoOpSpan]":
        return self._span(f"phase:{phase}", {"phase.name": phase, "phase.card_count": card_count})

    def card_span(self, card_id: str, *, phase: str) -> "AbstractContextManager[Span | NoOpSpan]":
        return self._span(f"card:{card_id}", {"card.id": card_id, "phase.name": phase})
