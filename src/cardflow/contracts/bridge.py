# src/cardflow/contracts/bridge.py
"""Bridge protocol: the external collaborator phases talk to.

A bridge exposes batched remote operations (fetch by identity, persist,
domain calculations). Every operation is an opaque, fallible async call
from the engine's point of view. Concrete bridges may add any number of
domain calculations; phases receive the bridge explicitly.
"""

from collections.abc import Sequence
from typing import Any, NamedTuple, Protocol


class LookupKey(NamedTuple):
    """Reference from a card to an external entity.

    Attributes:
        entity_id: Identity of the entity, in canonical string form
        scope: Requesting entity / tenant the lookup is scoped to
    """

    entity_id: str
    scope: str | None = None


def canonical_id(value: object) -> str:
    """Canonical string form of an identity value.

    Entity ids coming back from a store may be ObjectIds, ints or strings;
    comparing string forms avoids type-identity mismatches.
    """
    return str(value)


class Bridge(Protocol):
    """Remote operations consumed by the standard phases."""

    async def fetch_entities(self, keys: Sequence[LookupKey]) -> list[dict[str, Any]]:
        """Resolve a batch of lookup keys in one call."""
        ...

    async def persist_entity(self, entity_id: str, entity: Any) -> None:
        """Write one entity back."""
        ...

    async def emit_event(self, name: str, payload: dict[str, Any]) -> None:
        """Publish a side-effect event (best effort)."""
        ...
