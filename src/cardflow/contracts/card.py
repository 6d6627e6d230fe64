# src/cardflow/contracts/card.py
"""JobCard: the unit of work moving through a worker cycle.

A card carries immutable ``inputs`` set before the cycle begins, a mutable
``data`` scratch area that phases add to, and a status that follows the
lifecycle in ``CardStatus``.

Invariants (checked by ``validate()``):
- ``error`` is non-empty iff ``status == ERROR``
- ``skip_reason`` is set iff ``status == SKIPPED``
- ``id`` and ``inputs`` never change after construction
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ValidationError

from cardflow.contracts.enums import PASSTHROUGH_STATUSES, CardStatus
from cardflow.contracts.errors import CardInvariantError, InputValidationError

type CardValue = str | int | float | bool | None | list[CardValue] | dict[str, CardValue]

_IMMUTABLE_FIELDS = frozenset({"id", "inputs"})


def _freeze(value: Any) -> Any:
    """Deep read-only copy: mappings become MappingProxyType, sequences tuples."""
    match value:
        case Mapping():
            return MappingProxyType({key: _freeze(item) for key, item in value.items()})
        case list() | tuple():
            return tuple(_freeze(item) for item in value)
        case set() | frozenset():
            return frozenset(_freeze(item) for item in value)
        case _:
            return copy.deepcopy(value)


def thaw(value: Any) -> Any:
    """Plain mutable copy of frozen inputs (dicts and lists), for validation and export."""
    match value:
        case Mapping():
            return {key: thaw(item) for key, item in value.items()}
        case tuple():
            return [thaw(item) for item in value]
        case frozenset():
            return {thaw(item) for item in value}
        case _:
            return value


@dataclass(eq=True)
class JobCard:
    """One unit of work.

    Attributes:
        id: Opaque identifier, assigned at creation
        inputs: Read-only mapping of input values
        data: Scratch area; each phase may add keys, never remove them
        status: Current lifecycle status
        error: Failure message, set exactly when status is ERROR
        attempts: Attempts made by the most recent batch processor pass
        requesting_entity: Tenant/requesting-entity scope for lookups
        skip_reason: Why a pre-filter excluded the card
    """

    id: str
    inputs: Mapping[str, CardValue] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)
    status: CardStatus = CardStatus.PENDING
    error: str | None = None
    attempts: int = 0
    requesting_entity: str | None = None
    skip_reason: str | None = None

    def __post_init__(self) -> None:
        # A detached frozen copy: neither the caller nor any phase can reach into it
        object.__setattr__(self, "inputs", _freeze(self.inputs))
        self.status = CardStatus(self.status)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"JobCard.{name} is immutable")
        object.__setattr__(self, name, value)

    @classmethod
    def create(
        cls,
        inputs: Mapping[str, CardValue],
        *,
        requesting_entity: str | None = None,
        card_id: str | None = None,
    ) -> JobCard:
        """Create a pending card with a fresh identifier."""
        return cls(
            id=card_id or uuid.uuid4().hex,
            inputs=inputs,
            requesting_entity=requesting_entity,
        )

    @property
    def is_terminal_failure(self) -> bool:
        """True for cards the batch processor passes through untouched."""
        return self.status in PASSTHROUGH_STATUSES

    def mark_processed(self) -> JobCard:
        self.status = CardStatus.PROCESSED
        self.error = None
        self.skip_reason = None
        return self

    def mark_error(self, message: str) -> JobCard:
        """Move the card to ERROR with a non-empty message."""
        if not message:
            raise CardInvariantError(f"card {self.id}: error message must be non-empty")
        self.status = CardStatus.ERROR
        self.error = message
        self.skip_reason = None
        return self

    def mark_skipped(self, reason: str = "skipped") -> JobCard:
        self.status = CardStatus.SKIPPED
        self.skip_reason = reason
        self.error = None
        return self

    def fork(self) -> JobCard:
        """Return an attempt-private copy.

        ``data`` is deep-copied so a failed or cancelled attempt cannot leave
        partial writes behind. ``inputs`` is deeply read-only at every level.
        """
        return replace(self, data=copy.deepcopy(self.data))

    def require_inputs[M: BaseModel](self, model: type[M]) -> M:
        """Validate ``inputs`` against a pydantic model at phase entry.

        Raises:
            InputValidationError: If the inputs don't satisfy the model
        """
        try:
            return model.model_validate(thaw(self.inputs))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
            raise InputValidationError(self.id, fields) from e

    def validate(self) -> None:
        """Check status/error invariants.

        Raises:
            CardInvariantError: If an invariant is broken
        """
        if self.status == CardStatus.ERROR and not self.error:
            raise CardInvariantError(f"card {self.id}: status is ERROR but no error message is set")
        if self.status != CardStatus.ERROR and self.error:
            raise CardInvariantError(f"card {self.id}: error message set but status is {self.status}")
        if (self.status == CardStatus.SKIPPED) != (self.skip_reason is not None):
            raise CardInvariantError(f"card {self.id}: skip_reason must be set exactly when status is SKIPPED")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "inputs": thaw(self.inputs),
            "data": self.data,
            "status": self.status.value,
            "error": self.error,
            "attempts": self.attempts,
            "requesting_entity": self.requesting_entity,
            "skip_reason": self.skip_reason,
        }
