"""Tests for the SQL stores' conditional-write branches over a mocked session."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from tests.factories import make_verdict, standard_verdict
from verdict.domain import RequestStatus, StandardOutcome
from verdict.errors import (
    DuplicateVerdict,
    InsufficientCredits,
    RequestNotAcceptingVerdicts,
    RequestNotFound,
)
from verdict.models import CreditLedgerEntry, VerdictResponse
from verdict.store.sql import SqlCreditLedger, SqlRequestStore

OUTCOME = StandardOutcome(avg_rating=8.0, rating_count=3)


def _result(one=None, scalar=None) -> MagicMock:
    result = MagicMock()
    result.one_or_none.return_value = one
    result.scalar_one_or_none.return_value = scalar
    return result


def _verdict():
    return make_verdict("standard", standard_verdict())


class TestAppendVerdict:

    @pytest.mark.asyncio
    async def test_increment_and_insert_commit_together(self, mock_db, db_session):
        db_session.execute.return_value = _result(one=(3, 3))
        verdict = _verdict()

        counters = await SqlRequestStore(mock_db).append_verdict(verdict)

        assert (counters.received, counters.target, counters.reached_target) == (3, 3, True)
        added = db_session.add.call_args.args[0]
        assert isinstance(added, VerdictResponse)
        assert added.judge_id == verdict.judge_id
        db_session.flush.assert_awaited_once()
        db_session.commit.assert_awaited_once()
        db_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_request(self, mock_db, db_session):
        db_session.execute.return_value = _result(one=None)
        db_session.get.return_value = None

        with pytest.raises(RequestNotFound):
            await SqlRequestStore(mock_db).append_verdict(_verdict())

        db_session.rollback.assert_awaited()
        db_session.add.assert_not_called()
        db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_soft_deleted_request_reads_as_missing(self, mock_db, db_session):
        db_session.execute.return_value = _result(one=None)
        db_session.get.return_value = SimpleNamespace(deleted_at="2026-01-01", status="open")

        with pytest.raises(RequestNotFound):
            await SqlRequestStore(mock_db).append_verdict(_verdict())

    @pytest.mark.asyncio
    async def test_closed_request_rejects(self, mock_db, db_session):
        db_session.execute.return_value = _result(one=None)
        db_session.get.return_value = SimpleNamespace(deleted_at=None, status="completed")

        with pytest.raises(RequestNotAcceptingVerdicts) as exc_info:
            await SqlRequestStore(mock_db).append_verdict(_verdict())

        assert exc_info.value.status == "completed"
        db_session.rollback.assert_awaited()
        db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unique_violation_becomes_duplicate(self, mock_db, db_session):
        db_session.execute.return_value = _result(one=(1, 3))
        db_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("uq_verdict_request_judge"))
        verdict = _verdict()

        with pytest.raises(DuplicateVerdict) as exc_info:
            await SqlRequestStore(mock_db).append_verdict(verdict)

        assert exc_info.value.judge_id == verdict.judge_id
        db_session.rollback.assert_awaited()
        db_session.commit.assert_not_awaited()


class TestFinalize:

    @pytest.mark.asyncio
    async def test_winning_update(self, mock_db, db_session):
        db_session.execute.return_value = _result(one=(uuid4(),))
        assert await SqlRequestStore(mock_db).finalize(uuid4(), OUTCOME) is True
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_matching_row(self, mock_db, db_session):
        db_session.execute.return_value = _result(one=None)
        assert await SqlRequestStore(mock_db).finalize(uuid4(), OUTCOME) is False


class TestRecordRouting:

    @staticmethod
    def _row(received: int) -> SimpleNamespace:
        return SimpleNamespace(status=RequestStatus.open.value, received_verdict_count=received)

    @pytest.mark.asyncio
    async def test_pool_before_first_verdict_moves_to_in_progress(self, mock_db, db_session):
        row = self._row(received=0)
        db_session.execute.return_value = _result(scalar=row)

        with patch("verdict.store.sql._request_from_row", side_effect=lambda r: r):
            await SqlRequestStore(mock_db).record_routing(uuid4(), "mixed", [uuid4()])

        assert row.status == RequestStatus.in_progress.value
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pool_after_first_verdict_stays_open(self, mock_db, db_session):
        row = self._row(received=2)
        db_session.execute.return_value = _result(scalar=row)

        with patch("verdict.store.sql._request_from_row", side_effect=lambda r: r):
            await SqlRequestStore(mock_db).record_routing(uuid4(), "mixed", [uuid4()])

        assert row.status == RequestStatus.open.value
        assert row.routing_strategy == "mixed"


class TestDebit:

    @pytest.mark.asyncio
    async def test_balance_miss_rolls_back(self, mock_db, db_session):
        db_session.execute.side_effect = [_result(scalar=None), _result(scalar=1)]

        with pytest.raises(InsufficientCredits) as exc_info:
            await SqlCreditLedger(mock_db).debit(uuid4(), 2, "request_created")

        assert exc_info.value.required_credits == 2
        assert exc_info.value.balance == 1
        db_session.rollback.assert_awaited()
        db_session.add.assert_not_called()
        db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_successful_debit_writes_entry(self, mock_db, db_session):
        db_session.execute.return_value = _result(scalar=3)
        account, reference = uuid4(), uuid4()

        with patch("verdict.store.sql._ledger_from_row", side_effect=lambda r: r):
            entry = await SqlCreditLedger(mock_db).debit(account, 2, "request_created", reference)

        assert isinstance(entry, CreditLedgerEntry)
        assert (entry.delta, entry.balance_after, entry.reference_id) == (-2, 3, reference)
        db_session.commit.assert_awaited_once()
        db_session.rollback.assert_not_awaited()
