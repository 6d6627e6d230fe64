# src/cardflow/engine/__init__.py
"""Batch processing engine: retries, the batch processor, phases and cycles."""

from cardflow.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from cardflow.engine.cycle import CycleContext, CycleResult, Phase, WorkerCycle
from cardflow.engine.phases import (
    build_index,
    card_phase,
    distinct_keys,
    entity_field,
    extract_phase,
    input_key,
    notify_phase,
    skip_phase,
)
from cardflow.engine.processor import BatchProcessor, CardTask
from cardflow.engine.retry import RetryManager
from cardflow.engine.spans import SpanFactory
from cardflow.engine.timers import CycleTimers

__all__ = [
    "DEFAULT_CLOCK",
    "BatchProcessor",
    "CardTask",
    "Clock",
    "CycleContext",
    "CycleResult",
    "CycleTimers",
    "MockClock",
    "Phase",
    "RetryManager",
    "SpanFactory",
    "SystemClock",
    "WorkerCycle",
    "build_index",
    "card_phase",
    "distinct_keys",
    "entity_field",
    "extract_phase",
    "input_key",
    "notify_phase",
    "skip_phase",
]
