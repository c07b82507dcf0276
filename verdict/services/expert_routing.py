"""Best-effort assignment of elevated-tier requests to expert reviewers.

Routing never fails request creation. It runs from the ``request.created``
event, and every error or timeout is logged and reported as an unsuccessful
RoutingResult while the request stays open for community pickup.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import UUID

from verdict.domain import JudgeProfile, Request, RoutingStrategy, TierConfig
from verdict.logging_config import get_logger
from verdict.services.events import REQUEST_CREATED, REQUEST_ROUTED, EventBus
from verdict.services.tier_catalog import TierCatalog
from verdict.store.base import JudgeDirectory, RequestStore

logger = get_logger(__name__)

# Request category -> reviewer industries considered relevant
CATEGORY_INDUSTRIES: dict[str, list[str]] = {
    "career": ["Technology", "Finance", "HR/Recruiting", "Marketing", "Sales"],
    "business": ["Finance", "Technology", "Marketing", "Sales"],
    "appearance": ["Design", "Marketing", "HR/Recruiting"],
    "lifestyle": ["HR/Recruiting", "Healthcare", "Real Estate"],
}

STRATEGY_EXPERT_ONLY = "expert_only"
STRATEGY_MIXED = "mixed"
STRATEGY_COMMUNITY = "community"


@dataclass
class RoutingResult:
    success: bool
    routing_strategy: str
    expert_pool: list[UUID] = field(default_factory=list)


def availability_score(last_active: datetime | None, now: datetime) -> float:
    """Decay by days since the judge was last active."""
    if last_active is None:
        return 0.1
    days = (now - last_active).total_seconds() / 86400
    if days > 14:
        return 0.1
    if days > 7:
        return 0.3
    if days > 3:
        return 0.6
    if days > 1:
        return 0.8
    return 1.0


def rank_score(judge: JudgeProfile, now: datetime) -> float:
    return (
        judge.reputation_score * 0.4
        + availability_score(judge.last_active, now) * 0.4
        + min(judge.total_reviews / 50, 1.0) * 0.2
    )


class ExpertRoutingService:
    def __init__(
        self,
        requests: RequestStore,
        judges: JudgeDirectory,
        catalog: TierCatalog,
        bus: EventBus | None = None,
        timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.requests = requests
        self.judges = judges
        self.catalog = catalog
        self.bus = bus
        self.timeout_seconds = timeout_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def select_pool(self, request: Request, tier: TierConfig) -> list[UUID]:
        exclude = {request.owner_id}
        exclude.update(v.judge_id for v in await self.requests.list_verdicts(request.id))

        industries = CATEGORY_INDUSTRIES.get(request.payload.category)
        candidates = await self.judges.find_candidates(
            min_reputation=tier.min_reputation,
            industries=industries,
            exclude=exclude,
            limit=max(tier.pool_size * 3, tier.pool_size),
        )
        now = self._clock()
        # Stable sort keeps directory order among equal scores
        ranked = sorted(candidates, key=lambda j: rank_score(j, now), reverse=True)
        return [j.judge_id for j in ranked[: tier.pool_size]]

    async def _route(self, request_id: UUID) -> RoutingResult:
        request = await self.requests.get_by_id(request_id)
        if request is None:
            raise LookupError(f"Request {request_id} not found")

        tier = self.catalog.resolve(request.tier)
        if tier.routing_strategy != RoutingStrategy.expert_pool:
            return RoutingResult(success=True, routing_strategy=STRATEGY_COMMUNITY)

        strategy = STRATEGY_EXPERT_ONLY if tier.expert_only else STRATEGY_MIXED
        pool = await self.select_pool(request, tier)
        if not pool:
            logger.warning(
                "routing_empty_pool",
                request_id=str(request_id),
                strategy=strategy,
                category=request.payload.category,
            )

        await self.requests.record_routing(request_id, strategy, pool)
        return RoutingResult(success=True, routing_strategy=strategy, expert_pool=pool)

    async def route_request(self, request_id: UUID) -> RoutingResult:
        """Route one request. Returns ``success=False`` instead of raising."""
        try:
            result = await asyncio.wait_for(self._route(request_id), self.timeout_seconds)
        except Exception as e:
            logger.warning(
                "routing_failed",
                request_id=str(request_id),
                error_type=type(e).__name__,
                error=str(e),
            )
            return RoutingResult(success=False, routing_strategy=STRATEGY_COMMUNITY)

        logger.info(
            "request_routed",
            request_id=str(request_id),
            strategy=result.routing_strategy,
            expert_pool_size=len(result.expert_pool),
        )
        if self.bus is not None and result.expert_pool:
            self.bus.emit(
                REQUEST_ROUTED,
                {
                    "request_id": str(request_id),
                    "routing_strategy": result.routing_strategy,
                    "expert_pool": [str(j) for j in result.expert_pool],
                },
            )
        return result

    def register(self, bus: EventBus) -> None:
        """Route newly created requests whose tier asks for an expert pool."""

        async def on_created(event: dict[str, Any]) -> None:
            if event.get("routing_strategy") != RoutingStrategy.expert_pool.value:
                return
            await self.route_request(UUID(event["request_id"]))

        bus.subscribe(REQUEST_CREATED, on_created)
