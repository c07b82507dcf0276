"""Validate, persist and count one verdict at a time."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from verdict.domain import RequestVariant, Verdict
from verdict.errors import (
    CannotJudgeOwnRequest,
    DuplicateVerdict,
    InvalidVerdictShape,
    RequestNotAcceptingVerdicts,
    RequestNotFound,
)
from verdict.logging_config import get_logger
from verdict.payloads.verdict_payloads import check_verdict_rules, parse_verdict_payload
from verdict.services.consensus import ConsensusEngine
from verdict.services.events import VERDICT_SUBMITTED, EventBus
from verdict.store.base import RequestStore

logger = get_logger(__name__)


class VerdictIngestion:
    def __init__(
        self,
        requests: RequestStore,
        consensus: ConsensusEngine,
        bus: EventBus | None = None,
    ) -> None:
        self.requests = requests
        self.consensus = consensus
        self.bus = bus

    async def submit(
        self,
        request_id: UUID,
        judge_id: UUID,
        raw_payload: dict[str, Any],
        expected_variant: RequestVariant | None = None,
    ) -> Verdict:
        """Accept one verdict.

        Checks run in order: request accepting, judge is not the owner,
        judge has not already answered, payload shape, text rules. The store
        then saves the verdict and increments the counter as one unit; the
        submission that brings the counter to the target finalizes.
        """
        request = await self.requests.get_by_id(request_id)
        if request is None:
            raise RequestNotFound(request_id)
        if expected_variant is not None and request.variant != expected_variant:
            raise InvalidVerdictShape(
                f"Request is a {request.variant.value} request, not {expected_variant.value}"
            )
        if not request.accepting_verdicts:
            raise RequestNotAcceptingVerdicts(request_id, request.status.value)
        if request.owner_id == judge_id:
            raise CannotJudgeOwnRequest()
        if await self.requests.has_verdict(request_id, judge_id):
            raise DuplicateVerdict(request_id, judge_id)

        payload = parse_verdict_payload(request.variant.value, raw_payload)
        check_verdict_rules(payload)

        verdict = Verdict(
            id=uuid4(),
            request_id=request_id,
            judge_id=judge_id,
            created_at=datetime.now(timezone.utc),
            payload=payload,
        )
        counters = await self.requests.append_verdict(verdict)

        logger.info(
            "verdict_submitted",
            request_id=str(request_id),
            judge_id=str(judge_id),
            variant=request.variant.value,
            received=counters.received,
            target=counters.target,
        )
        if self.bus is not None:
            self.bus.emit(
                VERDICT_SUBMITTED,
                {
                    "request_id": str(request_id),
                    "judge_id": str(judge_id),
                    "verdict_id": str(verdict.id),
                    "received": counters.received,
                    "target": counters.target,
                },
            )

        if counters.reached_target:
            try:
                await self.consensus.finalize(request_id)
            except Exception as e:
                # The verdict is saved; the startup sweep retries finalization
                logger.error(
                    "finalize_after_verdict_failed",
                    request_id=str(request_id),
                    error=str(e),
                    exc_info=True,
                )
        return verdict
