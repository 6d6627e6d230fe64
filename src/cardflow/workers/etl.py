# src/cardflow/workers/etl.py
"""ETL worker: Extract → Transform → Load → Notify over one batch.

1. Extract: one batched ``fetch_entities`` call, joined onto cards as ``data["source"]``
2. Transform: caller-supplied per-card computation writing ``data["result"]``
3. Load: ``persist_entity`` of each card's result
4. Notify: one completion/failure event per card, best effort
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from cardflow.contracts.bridge import Bridge
from cardflow.contracts.card import JobCard
from cardflow.contracts.engine import RetryPolicy
from cardflow.contracts.enums import CardStatus, PhaseKind
from cardflow.contracts.results import TaskResult
from cardflow.core.events import EventBusProtocol
from cardflow.engine.cycle import WorkerCycle
from cardflow.engine.phases import card_phase, extract_phase, input_key, notify_phase

slog = structlog.get_logger(__name__)

SOURCE_KEY = "source"
RESULT_KEY = "result"

type TransformFn = Callable[[JobCard, Bridge], Awaitable[JobCard | TaskResult]]


def card_event(worker_type: str, card: JobCard) -> tuple[str, dict[str, Any]]:
    """Event name and payload announcing one card's outcome."""
    outcome = "completed" if card.status == CardStatus.PROCESSED else "failed"
    payload: dict[str, Any] = {"card_id": card.id, "status": card.status.value}
    if card.error:
        payload["error"] = card.error
    return f"{worker_type}.{outcome}", payload


def event_notifier(bridge: Bridge, worker_type: str) -> Callable[[Sequence[JobCard]], Awaitable[None]]:
    """Notifier emitting one event per card; individual failures are logged."""

    async def notify(cards: Sequence[JobCard]) -> None:
        events = [card_event(worker_type, card) for card in cards]
        outcomes = await asyncio.gather(
            *(bridge.emit_event(name, payload) for name, payload in events),
            return_exceptions=True,
        )
        for (name, payload), outcome in zip(events, outcomes, strict=True):
            if isinstance(outcome, Exception):
                slog.warning(
                    "Notification failed",
                    event=name,
                    card_id=payload["card_id"],
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
            elif isinstance(outcome, BaseException):
                raise outcome

    return notify


def build_etl_worker(
    worker_type: str,
    bridge: Bridge,
    transform: TransformFn,
    *,
    key_field: str = "entity_id",
    entity_name: str = "entity",
    entity_scope: Callable[[Any], str | None] | None = None,
    transform_policy: RetryPolicy | None = None,
    load_policy: RetryPolicy | None = None,
    event_bus: EventBusProtocol | None = None,
    max_concurrency: int | None = None,
) -> WorkerCycle:
    """Compose the standard four-phase worker.

    Args:
        worker_type: Worker name for logs and event names
        bridge: External collaborator, passed to every phase explicitly
        transform: ``async (card, bridge) -> card | TaskResult``; must write
            ``data["result"]`` and mark the card processed
        key_field: Input holding the entity id to fetch
        entity_name: Noun used in lookup-miss messages
        entity_scope: Tenant accessor for fetched entities, for scoped cards
        transform_policy: Retry policy for the transform phase
        load_policy: Retry policy for the load phase
    """

    async def run_transform(card: JobCard) -> JobCard | TaskResult:
        return await transform(card, bridge)

    async def load(card: JobCard) -> JobCard:
        await bridge.persist_entity(str(card.inputs[key_field]), card.data[RESULT_KEY])
        return card.mark_processed()

    phases = [
        extract_phase(
            bridge.fetch_entities,
            key_for_card=input_key(key_field),
            entity_name=entity_name,
            entity_scope=entity_scope,
            target=SOURCE_KEY,
        ),
        card_phase(PhaseKind.TRANSFORM, run_transform, policy=transform_policy, requires_data=(SOURCE_KEY,)),
        card_phase(PhaseKind.LOAD, load, policy=load_policy, requires_data=(RESULT_KEY,)),
        notify_phase(event_notifier(bridge, worker_type)),
    ]
    return WorkerCycle(worker_type, phases, event_bus=event_bus, max_concurrency=max_concurrency)
