# tests/property/engine/test_processor_properties.py
"""Property-based tests for BatchProcessor.

Properties tested:
1. Cardinality and order: output is position-for-position with input
2. Error stickiness: failed input cards come back as the identical object
3. Isolation: a card's outcome depends only on its own task behavior
4. Retry bound: a task is invoked at most max_retries + 1 times per card
"""

from __future__ import annotations

import asyncio
from collections import Counter

from hypothesis import given, settings
from hypothesis import strategies as st

from cardflow.contracts import CardStatus, JobCard, RetryPolicy
from cardflow.engine.processor import BatchProcessor

# Per-card behavior: succeed, fail every attempt, or arrive already failed
behaviors = st.lists(st.sampled_from(["ok", "raise", "pre_failed", "skipped"]), max_size=30)


def _build(plan: list[str]) -> list[JobCard]:
    cards = []
    for i, behavior in enumerate(plan):
        card = JobCard.create({"behavior": behavior}, card_id=f"card-{i}")
        if behavior == "pre_failed":
            card.mark_error("failed upstream")
        elif behavior == "skipped":
            card.mark_skipped("filtered")
        cards.append(card)
    return cards


async def _task(card: JobCard) -> JobCard:
    if card.inputs["behavior"] == "raise":
        raise RuntimeError(f"boom {card.id}")
    card.data["done"] = True
    return card.mark_processed()


class TestBatchProcessorProperties:
    @given(plan=behaviors)
    @settings(max_examples=100)
    def test_cardinality_and_order(self, plan: list[str]) -> None:
        """Property: len(out) == len(in) and ids line up position-for-position."""
        cards = _build(plan)

        results = asyncio.run(BatchProcessor().process(cards, _task))

        assert len(results) == len(cards)
        assert [c.id for c in results] == [c.id for c in cards]

    @given(plan=behaviors)
    @settings(max_examples=100)
    def test_error_stickiness(self, plan: list[str]) -> None:
        """Property: ERROR/SKIPPED inputs are returned as the same object, unchanged."""
        cards = _build(plan)
        snapshots = [card.to_dict() for card in cards]

        results = asyncio.run(BatchProcessor().process(cards, _task))

        for card, before, after in zip(cards, snapshots, results, strict=True):
            assert card.to_dict() == before
            if before["status"] in (CardStatus.ERROR, CardStatus.SKIPPED):
                assert after is card

    @given(plan=behaviors)
    @settings(max_examples=100)
    def test_outcome_depends_only_on_own_behavior(self, plan: list[str]) -> None:
        """Property: each card's status is determined by its own behavior."""
        expected = {
            "ok": CardStatus.PROCESSED,
            "raise": CardStatus.ERROR,
            "pre_failed": CardStatus.ERROR,
            "skipped": CardStatus.SKIPPED,
        }

        results = asyncio.run(BatchProcessor().process(_build(plan), _task))

        assert [c.status for c in results] == [expected[b] for b in plan]
        for card, behavior in zip(results, plan, strict=True):
            card.validate()
            if behavior == "raise":
                assert card.error == f"boom {card.id}"

    @given(
        plan=st.lists(st.sampled_from(["ok", "raise"]), min_size=1, max_size=10),
        max_retries=st.integers(min_value=0, max_value=4),
    )
    @settings(max_examples=50)
    def test_retry_bound(self, plan: list[str], max_retries: int) -> None:
        """Property: failing cards get exactly max_retries + 1 attempts, others one."""
        calls: Counter[str] = Counter()

        async def counting(card: JobCard) -> JobCard:
            calls[card.id] += 1
            return await _task(card)

        cards = _build(plan)
        results = asyncio.run(BatchProcessor().process(cards, counting, RetryPolicy(max_retries=max_retries)))

        for card, behavior in zip(results, plan, strict=True):
            expected = max_retries + 1 if behavior == "raise" else 1
            assert calls[card.id] == expected
            assert card.attempts == expected
