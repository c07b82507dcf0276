"""Tests for expert pool selection and best-effort routing."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from tests.factories import comparison_payload, make_verdict, standard_verdict
from verdict.domain import JudgeProfile, RequestStatus, RoutingStrategy, TierConfig
from verdict.services.events import REQUEST_CREATED, REQUEST_ROUTED, EventBus
from verdict.services.expert_routing import (
    STRATEGY_COMMUNITY,
    STRATEGY_EXPERT_ONLY,
    STRATEGY_MIXED,
    ExpertRoutingService,
    availability_score,
)
from verdict.services.tier_catalog import DEFAULT_TIERS, TierCatalog
from verdict.store.memory import InMemoryJudgeDirectory, InMemoryRequestStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def judge(reputation=8.0, days_idle=0.5, industry="Technology", reviews=50, **overrides):
    data = {
        "judge_id": uuid4(),
        "reputation_score": reputation,
        "verified_expert": True,
        "industry": industry,
        "total_reviews": reviews,
        "last_active": NOW - timedelta(days=days_idle),
    }
    data.update(overrides)
    return JudgeProfile(**data)


def small_pool_catalog(pool_size=2) -> TierCatalog:
    tiers = [
        DEFAULT_TIERS[0],
        TierConfig(
            tier_name="panel",
            display_name="Panel",
            credits_required=2,
            verdict_count=5,
            routing_strategy=RoutingStrategy.expert_pool,
            min_reputation=7.0,
            pool_size=pool_size,
        ),
    ]
    return TierCatalog(tiers, legacy_pricing={})


def make_service(store, judges, catalog=None, bus=None, **kwargs):
    return ExpertRoutingService(
        store,
        InMemoryJudgeDirectory(judges),
        catalog or TierCatalog(),
        bus=bus,
        clock=lambda: NOW,
        **kwargs,
    )


class TestAvailabilityScore:

    @pytest.mark.parametrize(
        "days,expected",
        [(0.5, 1.0), (2, 0.8), (5, 0.6), (10, 0.3), (30, 0.1)],
    )
    def test_decay(self, days, expected):
        assert availability_score(NOW - timedelta(days=days), NOW) == expected

    def test_never_active(self):
        assert availability_score(None, NOW) == 0.1


class TestSelectPool:

    @pytest.mark.asyncio
    async def test_ranks_and_truncates(self):
        store = InMemoryRequestStore()
        catalog = small_pool_catalog(pool_size=2)
        best = judge(reputation=9.5)
        good = judge(reputation=9.0)
        idle = judge(reputation=9.6, days_idle=30)
        service = make_service(store, [idle, good, best], catalog)
        request = await store.create(uuid4(), comparison_payload(), catalog.resolve("panel"))

        pool = await service.select_pool(request, catalog.resolve("panel"))

        assert pool == [best.judge_id, good.judge_id]

    @pytest.mark.asyncio
    async def test_excludes_owner_and_existing_judges(self):
        store = InMemoryRequestStore()
        catalog = small_pool_catalog(pool_size=5)
        owner = judge()
        already = judge()
        fresh = judge()
        service = make_service(store, [owner, already, fresh], catalog)
        request = await store.create(owner.judge_id, comparison_payload(), catalog.resolve("panel"))
        await store.append_verdict(make_verdict("standard", standard_verdict(), request.id, already.judge_id))

        pool = await service.select_pool(request, catalog.resolve("panel"))

        assert pool == [fresh.judge_id]

    @pytest.mark.asyncio
    async def test_filters_reputation_industry_and_status(self):
        store = InMemoryRequestStore()
        catalog = small_pool_catalog(pool_size=5)
        eligible = judge(industry="finance")
        profiles = [
            eligible,
            judge(reputation=6.0),
            judge(industry="Healthcare"),
            judge(status="suspended"),
            judge(verified_expert=False),
        ]
        service = make_service(store, profiles, catalog)
        request = await store.create(uuid4(), comparison_payload(), catalog.resolve("panel"))

        assert await service.select_pool(request, catalog.resolve("panel")) == [eligible.judge_id]


class TestRouteRequest:

    @pytest.mark.asyncio
    async def test_expert_tier_routes_and_records(self):
        store = InMemoryRequestStore()
        bus = EventBus()
        routed_events = []

        async def on_routed(event):
            routed_events.append(event)

        bus.subscribe(REQUEST_ROUTED, on_routed)
        expert = judge(reputation=9.0)
        service = make_service(store, [expert], bus=bus)
        request = await store.create(uuid4(), comparison_payload(), TierCatalog().resolve("pro"))

        result = await service.route_request(request.id)
        await bus.drain()

        assert result.success is True
        assert result.routing_strategy == STRATEGY_EXPERT_ONLY
        assert result.expert_pool == [expert.judge_id]
        stored = await store.get_by_id(request.id)
        assert stored.status == RequestStatus.in_progress
        assert stored.routing_strategy == STRATEGY_EXPERT_ONLY
        assert routed_events[0]["expert_pool"] == [str(expert.judge_id)]

    @pytest.mark.asyncio
    async def test_empty_pool_still_succeeds(self):
        store = InMemoryRequestStore()
        service = make_service(store, [])
        request = await store.create(uuid4(), comparison_payload(), TierCatalog().resolve("standard"))

        result = await service.route_request(request.id)

        assert result.success is True
        assert result.routing_strategy == STRATEGY_MIXED
        assert result.expert_pool == []
        assert (await store.get_by_id(request.id)).status == RequestStatus.open

    @pytest.mark.asyncio
    async def test_community_tier_is_not_routed(self):
        store = InMemoryRequestStore()
        service = make_service(store, [judge()])
        request = await store.create(uuid4(), comparison_payload(), TierCatalog().resolve("community"))

        result = await service.route_request(request.id)

        assert result.routing_strategy == STRATEGY_COMMUNITY
        assert (await store.get_by_id(request.id)).routed_at is None

    @pytest.mark.asyncio
    async def test_directory_failure_reports_unsuccessful(self):
        store = InMemoryRequestStore()
        service = make_service(store, [judge()])
        service.judges.find_candidates = AsyncMock(side_effect=ConnectionError("directory down"))
        request = await store.create(uuid4(), comparison_payload(), TierCatalog().resolve("pro"))

        result = await service.route_request(request.id)

        assert result.success is False
        stored = await store.get_by_id(request.id)
        assert stored.status == RequestStatus.open
        assert stored.expert_pool == []

    @pytest.mark.asyncio
    async def test_timeout_reports_unsuccessful(self):
        store = InMemoryRequestStore()
        service = make_service(store, [judge()], timeout_seconds=0.01)

        async def slow(**kwargs):
            await asyncio.sleep(5)

        service.judges.find_candidates = slow
        request = await store.create(uuid4(), comparison_payload(), TierCatalog().resolve("pro"))

        result = await service.route_request(request.id)
        assert result.success is False

    @pytest.mark.asyncio
    async def test_unknown_request_reports_unsuccessful(self):
        service = make_service(InMemoryRequestStore(), [])
        assert (await service.route_request(uuid4())).success is False


class TestRegister:

    @pytest.mark.asyncio
    async def test_routes_only_expert_pool_events(self):
        store = InMemoryRequestStore()
        bus = EventBus()
        service = make_service(store, [judge()])
        service.register(bus)
        pro = await store.create(uuid4(), comparison_payload(), TierCatalog().resolve("pro"))
        community = await store.create(uuid4(), comparison_payload(), TierCatalog().resolve("community"))

        bus.emit(REQUEST_CREATED, {"request_id": str(pro.id), "routing_strategy": "expert_pool"})
        bus.emit(REQUEST_CREATED, {"request_id": str(community.id), "routing_strategy": "community"})
        await bus.drain()

        assert (await store.get_by_id(pro.id)).status == RequestStatus.in_progress
        assert (await store.get_by_id(community.id)).routed_at is None
