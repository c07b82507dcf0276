"""Wires stores and services together from Settings."""

from __future__ import annotations

from dataclasses import dataclass, field

from verdict.config import Settings
from verdict.database import Database
from verdict.logging_config import get_logger
from verdict.services.consensus import ConsensusEngine
from verdict.services.events import EventBus
from verdict.services.expert_routing import ExpertRoutingService
from verdict.services.moderation import ModerationGate, OpenAIModerationClassifier
from verdict.services.notifications import (
    LoggingNotificationSender,
    NotificationSender,
    register_notification_handlers,
)
from verdict.services.rate_limiter import RateLimiter, RedisSlidingWindowLimiter, TokenBucketLimiter
from verdict.services.request_service import RequestService
from verdict.services.tier_catalog import TierCatalog
from verdict.services.verdict_ingestion import VerdictIngestion
from verdict.store.base import CreditLedger, JudgeDirectory, RequestStore
from verdict.store.memory import InMemoryCreditLedger, InMemoryJudgeDirectory, InMemoryRequestStore

logger = get_logger(__name__)


@dataclass
class Container:
    settings: Settings
    requests: RequestStore
    ledger: CreditLedger
    judges: JudgeDirectory
    catalog: TierCatalog
    moderation: ModerationGate
    rate_limiter: RateLimiter
    notifier: NotificationSender
    bus: EventBus = field(default_factory=EventBus)
    database: Database | None = None

    def __post_init__(self) -> None:
        self.consensus = ConsensusEngine(self.requests, self.bus)
        self.ingestion = VerdictIngestion(self.requests, self.consensus, self.bus)
        self.request_service = RequestService(
            self.requests, self.ledger, self.catalog, self.moderation, self.bus
        )
        self.routing = ExpertRoutingService(
            self.requests,
            self.judges,
            self.catalog,
            bus=self.bus,
            timeout_seconds=self.settings.routing_timeout_seconds,
        )
        self.routing.register(self.bus)
        register_notification_handlers(self.bus, self.notifier)

    async def startup(self) -> None:
        if self.database is not None:
            await self.database.verify()
        recovered = await self.consensus.recover()
        logger.info(
            "container_started",
            storage_backend=self.settings.storage_backend,
            recovered_requests=recovered,
        )

    async def shutdown(self) -> None:
        await self.bus.drain()
        await self.rate_limiter.close()
        primary = self.moderation.primary
        if isinstance(primary, OpenAIModerationClassifier):
            await primary.aclose()
        if self.database is not None:
            await self.database.dispose()


def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.redis_url:
        return RedisSlidingWindowLimiter.from_url(
            settings.redis_url,
            settings.rate_limit_requests,
            settings.rate_limit_window_seconds,
        )
    return TokenBucketLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)


def build_moderation_gate(settings: Settings) -> ModerationGate:
    primary = None
    if settings.moderation_api_key:
        primary = OpenAIModerationClassifier(
            api_key=settings.moderation_api_key,
            url=settings.moderation_url,
            model=settings.moderation_model,
        )
    else:
        logger.info("moderation_primary_disabled")
    return ModerationGate(primary=primary, timeout_seconds=settings.moderation_timeout_seconds)


def build_container(settings: Settings) -> Container:
    """Build the production wiring for ``settings.storage_backend``."""
    catalog = TierCatalog()

    database = None
    if settings.storage_backend == "sql":
        from verdict.store.sql import SqlCreditLedger, SqlJudgeDirectory, SqlRequestStore

        database = Database(settings)
        requests: RequestStore = SqlRequestStore(database)
        ledger: CreditLedger = SqlCreditLedger(database)
        judges: JudgeDirectory = SqlJudgeDirectory(database)
    else:
        requests = InMemoryRequestStore()
        ledger = InMemoryCreditLedger()
        judges = InMemoryJudgeDirectory()

    return Container(
        settings=settings,
        requests=requests,
        ledger=ledger,
        judges=judges,
        catalog=catalog,
        moderation=build_moderation_gate(settings),
        rate_limiter=build_rate_limiter(settings),
        notifier=LoggingNotificationSender(),
        database=database,
    )
