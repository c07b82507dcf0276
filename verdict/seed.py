"""Seed demo judges and credited accounts.

Creates a pool of verified expert judges across the routing industries
plus a few community judges, grants starter credits to demo accounts and
prints a bearer token for each account.

Usage:
    python -m verdict.seed
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import UUID

from verdict.auth import create_access_token
from verdict.config import get_settings
from verdict.container import Container, build_container
from verdict.domain import JudgeProfile
from verdict.logging_config import configure_from_settings, get_logger

logger = get_logger(__name__)

NOW = datetime.now(timezone.utc)


def ago(**kwargs) -> datetime:
    """Helper: return a datetime offset from NOW."""
    return NOW - timedelta(**kwargs)


DEMO_ACCOUNTS = [
    (UUID("00000000-0000-4000-8000-000000000001"), 10),
    (UUID("00000000-0000-4000-8000-000000000002"), 3),
    (UUID("00000000-0000-4000-8000-000000000003"), 0),
]

JUDGES = [
    JudgeProfile(
        judge_id=UUID("10000000-0000-4000-8000-000000000001"),
        reputation_score=9.2,
        verified_expert=True,
        expert_title="Senior Recruiter",
        industry="HR/Recruiting",
        total_reviews=140,
        last_active=ago(hours=3),
    ),
    JudgeProfile(
        judge_id=UUID("10000000-0000-4000-8000-000000000002"),
        reputation_score=8.6,
        verified_expert=True,
        expert_title="Brand Designer",
        industry="Design",
        total_reviews=64,
        last_active=ago(days=2),
    ),
    JudgeProfile(
        judge_id=UUID("10000000-0000-4000-8000-000000000003"),
        reputation_score=8.1,
        verified_expert=True,
        expert_title="Product Marketing Lead",
        industry="Marketing",
        total_reviews=22,
        last_active=ago(days=5),
    ),
    JudgeProfile(
        judge_id=UUID("10000000-0000-4000-8000-000000000004"),
        reputation_score=7.4,
        verified_expert=True,
        expert_title="Engineering Manager",
        industry="Technology",
        total_reviews=31,
        last_active=ago(days=10),
    ),
    JudgeProfile(
        judge_id=UUID("10000000-0000-4000-8000-000000000005"),
        reputation_score=6.8,
        verified_expert=True,
        expert_title="Financial Analyst",
        industry="Finance",
        total_reviews=8,
        last_active=ago(days=20),
    ),
    JudgeProfile(
        judge_id=UUID("10000000-0000-4000-8000-000000000006"),
        reputation_score=5.5,
        total_reviews=12,
        last_active=ago(hours=1),
    ),
    JudgeProfile(
        judge_id=UUID("10000000-0000-4000-8000-000000000007"),
        reputation_score=6.1,
        total_reviews=40,
        last_active=ago(days=1, hours=2),
    ),
]


async def seed_container(container: Container) -> dict[UUID, str]:
    """Load demo data through the container's stores. Returns account tokens."""
    for judge in JUDGES:
        await container.judges.upsert(judge)

    tokens: dict[UUID, str] = {}
    for account_id, credits in DEMO_ACCOUNTS:
        if credits:
            await container.ledger.credit(account_id, credits, "seed_grant")
        tokens[account_id] = create_access_token(account_id, container.settings)

    logger.info("seed_complete", judges=len(JUDGES), accounts=len(DEMO_ACCOUNTS))
    return tokens


async def seed() -> None:
    settings = get_settings()
    configure_from_settings(settings, json_format=False)
    container = build_container(settings)
    try:
        tokens = await seed_container(container)
    finally:
        await container.shutdown()

    for account_id, token in tokens.items():
        print(f"{account_id}  Bearer {token}")


if __name__ == "__main__":
    asyncio.run(seed())
