# src/cardflow/testing/bridge.py
"""In-memory bridge for tests and local runs.

Implements the Bridge protocol against a dict of entities, records every
call, and can inject faults and latency so failure isolation and retry
behavior can be exercised without a real backend.

Example:
    bridge = InMemoryBridge([{"_id": 1, "lineItems": []}])
    bridge.fail_persist("1", times=2)

    result = await build_etl_worker("recalc", bridge, recalculate).run(cards)
    assert bridge.fetch_calls == [[LookupKey("1")]]
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Iterable, Sequence
from typing import Any

from cardflow.contracts.bridge import LookupKey, canonical_id


class BridgeUnavailableError(ConnectionError):
    """Injected fault standing in for a network/database failure."""


class InMemoryBridge:
    """Dict-backed Bridge with call recording and fault injection."""

    def __init__(
        self,
        entities: Iterable[dict[str, Any]] = (),
        *,
        id_field: str = "_id",
        scope_field: str | None = None,
        latency: float = 0.0,
    ) -> None:
        self._id_field = id_field
        self._scope_field = scope_field
        self._latency = latency
        self._entities: dict[LookupKey, dict[str, Any]] = {}
        for entity in entities:
            self.add_entity(entity)

        self.fetch_calls: list[list[LookupKey]] = []
        self.persist_calls: list[str] = []
        self.persisted: dict[str, Any] = {}
        self.events: list[tuple[str, dict[str, Any]]] = []

        self._fetch_error: BaseException | None = None
        self._persist_failures: dict[str, int] = {}
        self._event_error: BaseException | None = None

    def add_entity(self, entity: dict[str, Any]) -> None:
        scope = entity.get(self._scope_field) if self._scope_field else None
        self._entities[self._store_key(entity[self._id_field], scope)] = entity

    def _store_key(self, entity_id: object, scope: str | None) -> LookupKey:
        # Without a scope field the store is global and lookups ignore scope
        return LookupKey(canonical_id(entity_id), scope if self._scope_field else None)

    def fail_fetch(self, error: BaseException | None = None) -> None:
        """Make every fetch_entities call raise."""
        self._fetch_error = error or BridgeUnavailableError("fetch_entities unavailable")

    def fail_persist(self, entity_id: object, *, times: int = 1) -> None:
        """Make the next ``times`` persists of ``entity_id`` raise."""
        self._persist_failures[canonical_id(entity_id)] = times

    def fail_events(self, error: BaseException | None = None) -> None:
        self._event_error = error or BridgeUnavailableError("emit_event unavailable")

    async def fetch_entities(self, keys: Sequence[LookupKey]) -> list[dict[str, Any]]:
        self.fetch_calls.append(list(keys))
        if self._latency:
            await asyncio.sleep(self._latency)
        if self._fetch_error is not None:
            raise self._fetch_error
        # Copies, so callers can't mutate the store through returned entities
        found = (self._entities.get(self._store_key(key.entity_id, key.scope)) for key in keys)
        return [copy.deepcopy(entity) for entity in found if entity is not None]

    async def persist_entity(self, entity_id: str, entity: Any) -> None:
        entity_id = canonical_id(entity_id)
        self.persist_calls.append(entity_id)
        if self._latency:
            await asyncio.sleep(self._latency)
        remaining = self._persist_failures.get(entity_id, 0)
        if remaining:
            self._persist_failures[entity_id] = remaining - 1
            raise BridgeUnavailableError(f"persist_entity failed for {entity_id}")
        self.persisted[entity_id] = copy.deepcopy(entity)

    async def emit_event(self, name: str, payload: dict[str, Any]) -> None:
        if self._event_error is not None:
            raise self._event_error
        self.events.append((name, payload))
