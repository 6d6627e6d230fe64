# src/cardflow/core/events.py
"""Synchronous event bus for cycle and phase events.

WorkerCycle publishes PhaseStarted, PhaseCompleted, PhaseFailed and
CycleCompleted here. Publishing happens at phase boundaries only, never
from inside per-card tasks, so handlers run on the cycle's own task and
need no locking.
"""

from collections import defaultdict
from collections.abc import Callable
from typing import Any, Protocol

type Handler[E] = Callable[[E], None]


class EventBusProtocol(Protocol):
    """What WorkerCycle needs from a bus; EventBus and NullEventBus both fit."""

    def subscribe[E](self, event_type: type[E], handler: Handler[E]) -> None: ...

    def emit(self, event: object) -> None: ...


class EventBus:
    """Dispatches each event to the handlers registered for its exact type.

    Handler exceptions propagate to the emitter, which for WorkerCycle
    means a broken handler fails the cycle loudly. While a cycle is already
    failing, WorkerCycle logs them instead so the phase fault survives.

    Example:
        bus = EventBus()
        bus.subscribe(PhaseCompleted, lambda e: print(e.phase, e.status_counts))
        await WorkerCycle("recalc", phases, event_bus=bus).run(cards)
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[type, list[Handler[Any]]] = defaultdict(list)

    def subscribe[E](self, event_type: type[E], handler: Handler[E]) -> None:
        """Call ``handler`` for every emitted event of exactly ``event_type``."""
        self._handlers[event_type].append(handler)

    def emit(self, event: object) -> None:
        # .get so emitting an unknown type doesn't grow the table
        for handler in self._handlers.get(type(event), ()):
            handler(event)


class NullEventBus:
    """Bus for when nobody listens: subscriptions are accepted and ignored.

    Deliberately not an EventBus subclass, so it can't be mistaken for one
    that delivers.
    """

    def subscribe[E](self, event_type: type[E], handler: Handler[E]) -> None:
        pass

    def emit(self, event: object) -> None:
        pass
