# src/cardflow/workers/translator.py
"""Translator worker: converts fetched engagements to external formats (cXML, EDI, ...).

Each job card carries ``engagement_id`` and ``translator_key`` inputs, and
optionally ``output_destination``.

1. Extract: batch-fetch engagements, join as ``data["source"]``
2. Translate: check the registry, run the translator, store the output
3. Load (optional): hand each output to a caller-supplied ``deliver``
4. Notify: one event per card, best effort
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from cardflow.contracts.bridge import Bridge
from cardflow.contracts.card import JobCard
from cardflow.contracts.engine import RetryPolicy
from cardflow.contracts.enums import PhaseKind
from cardflow.contracts.errors import CardError, TranslationFailedError
from cardflow.contracts.results import TaskResult
from cardflow.core.events import EventBusProtocol
from cardflow.engine.cycle import Phase, WorkerCycle
from cardflow.engine.phases import card_phase, extract_phase, input_key, notify_phase
from cardflow.plugins.translators import TranslatorRegistry
from cardflow.workers.etl import SOURCE_KEY, event_notifier

WORKER_TYPE = "translator-worker"
TRANSLATE_PHASE = "translate"
OUTPUT_KEY = "translated_output"


class TranslateInputs(BaseModel):
    """Inputs a translator job card must carry."""

    model_config = {"extra": "allow"}

    engagement_id: str | int
    translator_key: str = Field(min_length=1)
    output_destination: str | None = None


def translate_task(registry: TranslatorRegistry) -> Callable[[JobCard], Awaitable[TaskResult]]:
    """Per-card translate task bound to a registry."""

    async def translate(card: JobCard) -> TaskResult:
        key = str(card.inputs["translator_key"])
        if not registry.has(key):
            return TaskResult.error(card, CardError(message=f"Translator not found: {key}", reason="translator_not_found"))

        try:
            output = await registry.run(key, card.data[SOURCE_KEY])
        except TranslationFailedError as e:
            return TaskResult.error(card, CardError(message=str(e), reason="translation_failed"))

        card.data[OUTPUT_KEY] = output
        card.data["translator_used"] = key
        return TaskResult.success(card.mark_processed())

    return translate


def build_translator_worker(
    bridge: Bridge,
    registry: TranslatorRegistry,
    *,
    policy: RetryPolicy | None = None,
    deliver: Callable[[JobCard], Awaitable[None]] | None = None,
    deliver_policy: RetryPolicy | None = None,
    worker_type: str = WORKER_TYPE,
    event_bus: EventBusProtocol | None = None,
    max_concurrency: int | None = None,
) -> WorkerCycle:
    """Compose the translator worker.

    Args:
        bridge: Source of engagements and sink for notifications
        registry: Translators available to job cards
        policy: Retry policy for the translate phase
        deliver: Optional async delivery of each card's output (load phase)
        deliver_policy: Retry policy for delivery
    """
    phases: list[Phase] = [
        extract_phase(
            bridge.fetch_entities,
            key_for_card=input_key("engagement_id"),
            entity_name="engagement",
            target=SOURCE_KEY,
        ),
        card_phase(
            TRANSLATE_PHASE,
            translate_task(registry),
            policy=policy,
            requires=TranslateInputs,
            requires_data=(SOURCE_KEY,),
        ),
    ]

    if deliver is not None:

        async def load(card: JobCard) -> JobCard:
            await deliver(card)
            return card.mark_processed()

        phases.append(card_phase(PhaseKind.LOAD, load, policy=deliver_policy, requires_data=(OUTPUT_KEY,)))

    phases.append(notify_phase(event_notifier(bridge, worker_type)))
    return WorkerCycle(worker_type, phases, event_bus=event_bus, max_concurrency=max_concurrency)
