"""Tests for SQL row conversion and database URL handling."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from tests.factories import comparison_verdict, standard_payload
from verdict.database import normalize_database_url
from verdict.domain import RequestStatus, RequestVariant
from verdict.errors import ValidationError
from verdict.store.sql import (
    SqlCreditLedger,
    _judge_from_row,
    _request_from_row,
    _verdict_from_row,
)

NOW = datetime(2026, 5, 4, 9, 30, tzinfo=timezone.utc)


class TestNormalizeDatabaseUrl:

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@db/verdict", "postgresql+asyncpg://u:p@db/verdict"),
            ("postgresql://u:p@db/verdict", "postgresql+asyncpg://u:p@db/verdict"),
            ("postgresql+asyncpg://u:p@db/verdict", "postgresql+asyncpg://u:p@db/verdict"),
        ],
    )
    def test_forces_asyncpg(self, url, expected):
        assert normalize_database_url(url) == expected


class TestRowConverters:

    def test_request_row(self):
        pool = [uuid4()]
        row = SimpleNamespace(
            id=uuid4(),
            owner_id=uuid4(),
            created_at=NOW,
            updated_at=NOW,
            status="in_progress",
            tier="standard",
            credits_charged=2,
            target_verdict_count=5,
            received_verdict_count=1,
            payload=standard_payload().model_dump(mode="json"),
            outcome=None,
            completed_at=None,
            deleted_at=None,
            routing_strategy="mixed",
            routed_at=NOW,
            expert_pool=pool,
        )

        request = _request_from_row(row)

        assert request.status == RequestStatus.in_progress
        assert request.variant == RequestVariant.standard
        assert request.payload.media_url == "https://cdn.example.com/outfit.jpg"
        assert request.expert_pool == pool
        assert request.accepting_verdicts is True

    def test_request_row_with_outcome(self):
        row = SimpleNamespace(
            id=uuid4(),
            owner_id=uuid4(),
            created_at=NOW,
            updated_at=NOW,
            status="completed",
            tier="community",
            credits_charged=1,
            target_verdict_count=3,
            received_verdict_count=3,
            payload=standard_payload().model_dump(mode="json"),
            outcome={"variant": "standard", "avg_rating": 8.0, "rating_count": 3, "tone_breakdown": {}},
            completed_at=NOW,
            deleted_at=None,
            routing_strategy=None,
            routed_at=None,
            expert_pool=None,
        )

        request = _request_from_row(row)

        assert request.outcome.avg_rating == 8.0
        assert request.expert_pool == []
        assert request.accepting_verdicts is False

    def test_verdict_row(self):
        payload = {"variant": "comparison", **comparison_verdict("B")}
        row = SimpleNamespace(
            id=uuid4(), request_id=uuid4(), judge_id=uuid4(), created_at=NOW, payload=payload
        )
        verdict = _verdict_from_row(row)
        assert verdict.variant == RequestVariant.comparison
        assert verdict.payload.preferred_option == "B"

    def test_judge_row_decimal_reputation(self):
        row = SimpleNamespace(
            judge_id=uuid4(),
            reputation_score=Decimal("8.75"),
            verified_expert=True,
            expert_title="Recruiter",
            industry="HR/Recruiting",
            total_reviews=40,
            last_active=NOW,
            status="active",
        )
        assert _judge_from_row(row).reputation_score == 8.75


class TestSqlCreditLedgerGuards:

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amounts_without_a_session(self):
        db = MagicMock()
        ledger = SqlCreditLedger(db)
        with pytest.raises(ValidationError):
            await ledger.debit(uuid4(), 0, "x")
        with pytest.raises(ValidationError):
            await ledger.credit(uuid4(), -2, "x")
        db.session.assert_not_called()
