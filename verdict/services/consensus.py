"""Aggregates a full verdict set and completes the request.

``compute_outcome`` is a pure function of the verdicts, so recomputing an
unchanged set gives an identical outcome. ``ConsensusEngine.finalize`` is
safe to call more than once: only the store's conditional transition
completes a request, and later calls return the stored outcome.
"""

from __future__ import annotations

from collections import Counter
from typing import Sequence
from uuid import UUID

from verdict.domain import (
    ComparisonOutcome,
    ConsensusOutcome,
    RequestStatus,
    RequestVariant,
    SplitTestOutcome,
    StandardOutcome,
    Verdict,
)
from verdict.errors import ConsensusNotReady, InvalidTransition, RequestNotFound
from verdict.logging_config import get_logger
from verdict.services.events import REQUEST_COMPLETED, EventBus
from verdict.store.base import RequestStore

logger = get_logger(__name__)


def _mean(values: Sequence[int]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def _standard(verdicts: Sequence[Verdict]) -> StandardOutcome:
    ratings = [v.payload.rating for v in verdicts if v.payload.rating is not None]
    tones = Counter(v.payload.tone for v in verdicts)
    return StandardOutcome(
        avg_rating=_mean(ratings),
        rating_count=len(ratings),
        tone_breakdown=dict(sorted(tones.items())),
    )


def _comparison(verdicts: Sequence[Verdict]) -> ComparisonOutcome:
    tally = {"A": 0, "B": 0, "tie": 0}
    for v in verdicts:
        tally[v.payload.preferred_option] += 1

    # Explicit tie votes never decide between A and B
    if tally["A"] > tally["B"]:
        winner = "A"
    elif tally["B"] > tally["A"]:
        winner = "B"
    else:
        winner = "tie"

    return ComparisonOutcome(
        winner_option=winner,
        tally=tally,
        total_votes=len(verdicts),
        avg_option_a_rating=_mean([v.payload.option_a_rating for v in verdicts]),
        avg_option_b_rating=_mean([v.payload.option_b_rating for v in verdicts]),
    )


def _split_test(verdicts: Sequence[Verdict]) -> SplitTestOutcome:
    votes_a = sum(1 for v in verdicts if v.payload.chosen_photo == "A")
    votes_b = sum(1 for v in verdicts if v.payload.chosen_photo == "B")
    total = votes_a + votes_b

    if votes_a > votes_b:
        winner, winning_votes = "A", votes_a
    elif votes_b > votes_a:
        winner, winning_votes = "B", votes_b
    else:
        winner, winning_votes = "tie", votes_a

    return SplitTestOutcome(
        winning_photo=winner,
        consensus_strength=winning_votes / total if total else 0.0,
        votes_a=votes_a,
        votes_b=votes_b,
        total_votes=total,
        avg_photo_a_rating=_mean([v.payload.photo_a_rating for v in verdicts]),
        avg_photo_b_rating=_mean([v.payload.photo_b_rating for v in verdicts]),
    )


_AGGREGATORS = {
    RequestVariant.standard: _standard,
    RequestVariant.comparison: _comparison,
    RequestVariant.split_test: _split_test,
}


def compute_outcome(variant: RequestVariant, verdicts: Sequence[Verdict]) -> ConsensusOutcome:
    """Aggregate verdicts for one request variant.

    Every verdict must carry the payload type of ``variant``.
    """
    variant = RequestVariant(variant)
    mismatched = [v.id for v in verdicts if v.variant != variant]
    if mismatched:
        raise ValueError(f"Verdicts {mismatched} do not match request variant {variant.value}")
    return _AGGREGATORS[variant](verdicts)


class ConsensusEngine:
    def __init__(self, requests: RequestStore, bus: EventBus | None = None) -> None:
        self.requests = requests
        self.bus = bus

    async def finalize(self, request_id: UUID) -> ConsensusOutcome:
        request = await self.requests.get_by_id(request_id, include_deleted=True)
        if request is None:
            raise RequestNotFound(request_id)

        if request.status == RequestStatus.completed and request.outcome is not None:
            return request.outcome
        if request.status == RequestStatus.cancelled:
            raise InvalidTransition(request.status.value, RequestStatus.completed.value)
        if request.received_verdict_count != request.target_verdict_count:
            raise ConsensusNotReady(request.received_verdict_count, request.target_verdict_count)

        verdicts = await self.requests.list_verdicts(request_id)
        outcome = compute_outcome(request.variant, verdicts)

        if not await self.requests.finalize(request_id, outcome):
            # Another caller completed it first; theirs is the stored one
            current = await self.requests.get_by_id(request_id, include_deleted=True)
            if current is not None and current.outcome is not None:
                return current.outcome
            raise ConsensusNotReady(request.received_verdict_count, request.target_verdict_count)

        logger.info(
            "request_finalized",
            request_id=str(request_id),
            variant=request.variant.value,
            verdict_count=len(verdicts),
        )
        if self.bus is not None:
            self.bus.emit(
                REQUEST_COMPLETED,
                {
                    "request_id": str(request_id),
                    "owner_id": str(request.owner_id),
                    "variant": request.variant.value,
                    "outcome": outcome.model_dump(mode="json"),
                },
            )
        return outcome

    async def recover(self) -> int:
        """Finalize requests left full but not completed, e.g. after a crash."""
        finalized = 0
        for request_id in await self.requests.list_awaiting_finalization():
            try:
                await self.finalize(request_id)
                finalized += 1
            except Exception as e:
                logger.error(
                    "recovery_finalize_failed",
                    request_id=str(request_id),
                    error=str(e),
                    exc_info=True,
                )
        if finalized:
            logger.info("recovery_sweep_complete", finalized=finalized)
        return finalized
