# src/cardflow/engine/phases.py
"""Phase builders for the standard worker shapes.

Each builder takes its collaborators explicitly (a bridge method, a task,
a notifier) and returns a Phase. Nothing is inherited or read from ambient
state.

- extract_phase: one batched fetch for the distinct keys, then an index join
- card_phase: a per-card task run through the BatchProcessor
- notify_phase: best-effort side effects over the whole batch
- skip_phase: pre-filter marking cards SKIPPED
"""

from __future__ import annotations

import copy
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import BaseModel

from cardflow.contracts.bridge import LookupKey, canonical_id
from cardflow.contracts.card import JobCard
from cardflow.contracts.engine import RetryPolicy
from cardflow.contracts.enums import PhaseKind
from cardflow.contracts.errors import CardError, InputValidationError
from cardflow.contracts.results import TaskResult
from cardflow.engine.cycle import CycleContext, Phase
from cardflow.engine.processor import CardTask, call_task

type Entity = Any
type FetchFn = Callable[[list[LookupKey]], Awaitable[Sequence[Entity]]]


def input_key(field: str) -> Callable[[JobCard], LookupKey]:
    """Lookup key built from one input field, scoped to the requesting entity."""

    def key_for_card(card: JobCard) -> LookupKey:
        if field not in card.inputs or card.inputs[field] is None:
            raise InputValidationError(card.id, f"missing input '{field}'")
        return LookupKey(canonical_id(card.inputs[field]), card.requesting_entity)

    return key_for_card


def entity_field(field: str = "_id") -> Callable[[Entity], object]:
    """Identity accessor for mapping-shaped entities."""

    def entity_id(entity: Entity) -> object:
        return entity[field]

    return entity_id


def build_index(
    entities: Sequence[Entity],
    entity_id: Callable[[Entity], object],
    entity_scope: Callable[[Entity], str | None] | None = None,
) -> dict[LookupKey, Entity]:
    """Index entities by canonical identity and scope. First occurrence wins.

    Without ``entity_scope`` every entity is indexed as unscoped.
    """
    index: dict[LookupKey, Entity] = {}
    for entity in entities:
        scope = entity_scope(entity) if entity_scope is not None else None
        index.setdefault(LookupKey(canonical_id(entity_id(entity)), scope), entity)
    return index


def distinct_keys(keys: Sequence[LookupKey | None]) -> list[LookupKey]:
    """Order-preserving dedup, dropping cards without a key."""
    return list(dict.fromkeys(key for key in keys if key is not None))


def extract_phase(
    fetch: FetchFn,
    *,
    key_for_card: Callable[[JobCard], LookupKey],
    entity_id: Callable[[Entity], object] | None = None,
    entity_scope: Callable[[Entity], str | None] | None = None,
    entity_name: str = "entity",
    target: str = "source",
    name: str = PhaseKind.EXTRACT,
) -> Phase:
    """Batched fetch and join.

    Collects the distinct lookup keys across the batch, issues ONE fetch,
    indexes the returned entities by identity and attaches each to its
    card(s) under ``data[target]``. Runs in O(N + M).

    Cards whose key has no match become ERROR with
    ``"<entity_name> not found: <key>"``. Cards that fail key extraction
    become ERROR with the extraction message. Already-failed cards neither
    contribute keys nor change. Joined cards keep their status.

    The join matches on id AND scope: a card scoped to a requesting entity
    only receives an entity whose ``entity_scope`` is that same scope, so
    two tenants asking for the same id never share a result. Without
    ``entity_scope`` only unscoped cards can match.

    A failing fetch is not card-local: it propagates and aborts the cycle.

    Args:
        fetch: Batched bridge call, e.g. ``bridge.fetch_entities``
        key_for_card: Builds a card's LookupKey (see ``input_key``)
        entity_id: Identity accessor for returned entities (default ``entity["_id"]``)
        entity_scope: Scope accessor for returned entities (default: unscoped)
        entity_name: Noun used in miss messages
        target: ``data`` key the entity is stored under
        name: Phase name
    """
    identity = entity_id or entity_field()

    async def run(cards: list[JobCard], ctx: CycleContext) -> list[JobCard]:
        keys: list[LookupKey | None] = []
        output: list[JobCard] = []
        for card in cards:
            key: LookupKey | None = None
            if not card.is_terminal_failure:
                try:
                    key = key_for_card(card)
                except InputValidationError as e:
                    card = card.fork().mark_error(str(e))
            keys.append(key)
            output.append(card)

        wanted = distinct_keys(keys)
        if not wanted:
            return output

        ctx.log.debug("Fetching entities", phase=name, key_count=len(wanted), card_count=len(cards))
        entities = await fetch(wanted)
        index = build_index(entities, identity, entity_scope)

        for position, key in enumerate(keys):
            if key is None:
                continue
            card = output[position].fork()
            entity = index.get(key)
            if entity is None:
                ctx.log.warning("Lookup miss", phase=name, card_id=card.id, key=key.entity_id, scope=key.scope)
                card.mark_error(CardError.lookup_miss(entity_name, key.entity_id).message)
            else:
                # Each card owns its copy; a later phase may mutate it in place
                card.data[target] = copy.deepcopy(entity)
            output[position] = card
        return output

    return Phase(name=name, run=run)


def card_phase(
    name: str,
    task: CardTask,
    *,
    policy: RetryPolicy | None = None,
    requires: type[BaseModel] | None = None,
    requires_data: Sequence[str] = (),
) -> Phase:
    """Per-card phase run through the BatchProcessor.

    Entry validation happens inside the task wrapper, so a card with bad
    inputs becomes ERROR without the task ever seeing it.

    Args:
        name: Phase name
        task: Per-card task (returns JobCard or TaskResult)
        policy: Retry/timeout policy for the task
        requires: Pydantic model the card's inputs must satisfy
        requires_data: ``data`` keys earlier phases must have written
    """

    async def checked(card: JobCard) -> JobCard | TaskResult:
        if requires is not None:
            try:
                card.require_inputs(requires)
            except InputValidationError as e:
                return TaskResult.error(card, CardError(message=str(e), reason="invalid_inputs"))
        for key in requires_data:
            if key not in card.data:
                return TaskResult.error(card, CardError(message=f"No {key} data found for job card {card.id}", reason="missing_data"))
        return await call_task(task, card)

    async def run(cards: list[JobCard], ctx: CycleContext) -> list[JobCard]:
        return await ctx.processor(name).process(cards, checked, policy)

    return Phase(name=name, run=run)


def notify_phase(
    notify: Callable[[Sequence[JobCard]], Awaitable[None]],
    *,
    name: str = PhaseKind.NOTIFY,
) -> Phase:
    """Best-effort side effects over the whole batch, failed cards included.

    The batch passes through unchanged; a raised failure is logged by the
    cycle and never aborts it.
    """

    async def run(cards: list[JobCard], ctx: CycleContext) -> list[JobCard]:
        await notify(cards)
        return cards

    return Phase(name=name, run=run, best_effort=True)


def skip_phase(
    predicate: Callable[[JobCard], bool],
    *,
    reason: str = "skipped",
    name: str = PhaseKind.FILTER,
) -> Phase:
    """Mark every still-live card matching ``predicate`` as SKIPPED."""

    async def run(cards: list[JobCard], ctx: CycleContext) -> list[JobCard]:
        output: list[JobCard] = []
        for card in cards:
            if not card.is_terminal_failure and predicate(card):
                card = card.fork().mark_skipped(reason)
            output.append(card)
        return output

    return Phase(name=name, run=run)

