"""PostgreSQL store implementations on SQLAlchemy async sessions.

Counter and balance changes are single conditional ``UPDATE ... RETURNING``
statements, so the database row is the only arbiter under concurrency.
Status changes that need to inspect the row first take ``FOR UPDATE``.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError

from verdict.database import Database
from verdict.domain import (
    ACCEPTING_STATUSES,
    ConsensusOutcome,
    JudgeProfile,
    LedgerEntry,
    Request,
    RequestPayload,
    RequestStatus,
    RequestVariant,
    TierConfig,
    Verdict,
    can_transition,
)
from verdict.errors import (
    DuplicateVerdict,
    InsufficientCredits,
    InvalidTransition,
    RequestNotAcceptingVerdicts,
    RequestNotFound,
    ValidationError,
)
from verdict.logging_config import get_logger
from verdict.models import CreditAccount, CreditLedgerEntry, Judge, VerdictRequest, VerdictResponse
from verdict.store.base import CreditLedger, IncrementResult, JudgeDirectory, RequestStore

logger = get_logger(__name__)

_ACCEPTING = [s.value for s in ACCEPTING_STATUSES]


def _request_from_row(row: VerdictRequest) -> Request:
    return Request.model_validate(
        {
            "id": row.id,
            "owner_id": row.owner_id,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
            "status": row.status,
            "tier": row.tier,
            "credits_charged": row.credits_charged,
            "target_verdict_count": row.target_verdict_count,
            "received_verdict_count": row.received_verdict_count,
            "payload": row.payload,
            "outcome": row.outcome,
            "completed_at": row.completed_at,
            "deleted_at": row.deleted_at,
            "routing_strategy": row.routing_strategy,
            "routed_at": row.routed_at,
            "expert_pool": list(row.expert_pool or []),
        }
    )


def _verdict_from_row(row: VerdictResponse) -> Verdict:
    return Verdict.model_validate(
        {
            "id": row.id,
            "request_id": row.request_id,
            "judge_id": row.judge_id,
            "created_at": row.created_at,
            "payload": row.payload,
        }
    )


def _ledger_from_row(row: CreditLedgerEntry) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        account_id=row.account_id,
        delta=row.delta,
        balance_after=row.balance_after,
        reason=row.reason,
        reference_id=row.reference_id,
        created_at=row.created_at,
    )


def _judge_from_row(row: Judge) -> JudgeProfile:
    return JudgeProfile(
        judge_id=row.judge_id,
        reputation_score=float(row.reputation_score),
        verified_expert=row.verified_expert,
        expert_title=row.expert_title,
        industry=row.industry,
        total_reviews=row.total_reviews,
        last_active=row.last_active,
        status=row.status,
    )


class SqlRequestStore(RequestStore):
    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(
        self,
        owner_id: UUID,
        payload: RequestPayload,
        tier: TierConfig,
        request_id: UUID | None = None,
    ) -> Request:
        row = VerdictRequest(
            id=request_id or uuid4(),
            owner_id=owner_id,
            variant=payload.variant,
            status=RequestStatus.open.value,
            tier=tier.tier_name,
            credits_charged=tier.credits_required,
            target_verdict_count=tier.verdict_count,
            received_verdict_count=0,
            payload=payload.model_dump(mode="json"),
            expert_pool=[],
        )
        async with self.db.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return _request_from_row(row)

    async def get_by_id(self, request_id: UUID, include_deleted: bool = False) -> Request | None:
        query = select(VerdictRequest).where(VerdictRequest.id == request_id)
        if not include_deleted:
            query = query.where(VerdictRequest.deleted_at.is_(None))
        async with self.db.session() as session:
            row = (await session.execute(query)).scalar_one_or_none()
        return _request_from_row(row) if row is not None else None

    async def list_by_owner(
        self,
        owner_id: UUID,
        variant: RequestVariant | None = None,
        limit: int = 20,
    ) -> list[Request]:
        query = (
            select(VerdictRequest)
            .where(VerdictRequest.owner_id == owner_id, VerdictRequest.deleted_at.is_(None))
            .order_by(VerdictRequest.created_at.desc())
            .limit(limit)
        )
        if variant is not None:
            query = query.where(VerdictRequest.variant == variant.value)
        async with self.db.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [_request_from_row(r) for r in rows]

    async def list_verdicts(self, request_id: UUID) -> list[Verdict]:
        query = (
            select(VerdictResponse)
            .where(VerdictResponse.request_id == request_id)
            .order_by(VerdictResponse.created_at.asc())
        )
        async with self.db.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [_verdict_from_row(r) for r in rows]

    async def has_verdict(self, request_id: UUID, judge_id: UUID) -> bool:
        query = select(func.count()).select_from(VerdictResponse).where(
            VerdictResponse.request_id == request_id,
            VerdictResponse.judge_id == judge_id,
        )
        async with self.db.session() as session:
            count = (await session.execute(query)).scalar_one()
        return count > 0

    async def append_verdict(self, verdict: Verdict) -> IncrementResult:
        increment = (
            update(VerdictRequest)
            .where(
                VerdictRequest.id == verdict.request_id,
                VerdictRequest.deleted_at.is_(None),
                VerdictRequest.status.in_(_ACCEPTING),
                VerdictRequest.received_verdict_count < VerdictRequest.target_verdict_count,
            )
            .values(
                received_verdict_count=VerdictRequest.received_verdict_count + 1,
                updated_at=func.now(),
            )
            .returning(VerdictRequest.received_verdict_count, VerdictRequest.target_verdict_count)
        )

        async with self.db.session() as session:
            # The conditional increment also row-locks the request until commit
            counters = (await session.execute(increment)).one_or_none()
            if counters is None:
                await session.rollback()
                current = await session.get(VerdictRequest, verdict.request_id)
                if current is None or current.deleted_at is not None:
                    raise RequestNotFound(verdict.request_id)
                raise RequestNotAcceptingVerdicts(verdict.request_id, current.status)

            session.add(
                VerdictResponse(
                    id=verdict.id,
                    request_id=verdict.request_id,
                    judge_id=verdict.judge_id,
                    variant=verdict.payload.variant,
                    payload=verdict.payload.model_dump(mode="json"),
                    reasoning=verdict.reasoning,
                    time_spent_seconds=verdict.time_spent_seconds,
                    created_at=verdict.created_at,
                )
            )
            try:
                await session.flush()
            except IntegrityError:
                await session.rollback()
                raise DuplicateVerdict(verdict.request_id, verdict.judge_id)

            await session.commit()

        received, target = counters
        return IncrementResult(request_id=verdict.request_id, received=received, target=target)

    async def finalize(self, request_id: UUID, outcome: ConsensusOutcome) -> bool:
        stmt = (
            update(VerdictRequest)
            .where(
                VerdictRequest.id == request_id,
                VerdictRequest.status.in_(_ACCEPTING),
                VerdictRequest.received_verdict_count == VerdictRequest.target_verdict_count,
            )
            .values(
                status=RequestStatus.completed.value,
                outcome=outcome.model_dump(mode="json"),
                completed_at=func.now(),
                updated_at=func.now(),
            )
            .returning(VerdictRequest.id)
        )
        async with self.db.session() as session:
            row = (await session.execute(stmt)).one_or_none()
            await session.commit()
        return row is not None

    async def record_routing(
        self, request_id: UUID, strategy: str, expert_pool: list[UUID]
    ) -> Request | None:
        async with self.db.session() as session:
            row = (
                await session.execute(
                    select(VerdictRequest)
                    .where(VerdictRequest.id == request_id)
                    .with_for_update()
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            row.routing_strategy = strategy
            row.routed_at = func.now()
            row.expert_pool = list(expert_pool)
            row.updated_at = func.now()
            if (
                expert_pool
                and can_transition(row.status, RequestStatus.in_progress)
                and row.received_verdict_count == 0
            ):
                row.status = RequestStatus.in_progress.value
            await session.commit()
            await session.refresh(row)
        return _request_from_row(row)

    async def cancel(self, request_id: UUID) -> Request:
        async with self.db.session() as session:
            row = (
                await session.execute(
                    select(VerdictRequest)
                    .where(VerdictRequest.id == request_id, VerdictRequest.deleted_at.is_(None))
                    .with_for_update()
                )
            ).scalar_one_or_none()
            if row is None:
                raise RequestNotFound(request_id)
            if (
                not can_transition(row.status, RequestStatus.cancelled)
                or row.received_verdict_count >= row.target_verdict_count
            ):
                raise InvalidTransition(row.status, RequestStatus.cancelled.value)
            row.status = RequestStatus.cancelled.value
            row.updated_at = func.now()
            await session.commit()
            await session.refresh(row)
        return _request_from_row(row)

    async def soft_delete(self, request_id: UUID) -> Request:
        async with self.db.session() as session:
            row = (
                await session.execute(
                    select(VerdictRequest)
                    .where(VerdictRequest.id == request_id, VerdictRequest.deleted_at.is_(None))
                    .with_for_update()
                )
            ).scalar_one_or_none()
            if row is None:
                raise RequestNotFound(request_id)
            row.deleted_at = func.now()
            row.updated_at = func.now()
            await session.commit()
            await session.refresh(row)
        return _request_from_row(row)

    async def list_awaiting_finalization(self) -> list[UUID]:
        query = select(VerdictRequest.id).where(
            VerdictRequest.status.in_(_ACCEPTING),
            VerdictRequest.received_verdict_count == VerdictRequest.target_verdict_count,
        )
        async with self.db.session() as session:
            return list((await session.execute(query)).scalars().all())


class SqlCreditLedger(CreditLedger):
    def __init__(self, db: Database) -> None:
        self.db = db

    async def balance(self, account_id: UUID) -> int:
        async with self.db.session() as session:
            value = (
                await session.execute(
                    select(CreditAccount.balance).where(CreditAccount.account_id == account_id)
                )
            ).scalar_one_or_none()
        return value or 0

    async def debit(
        self,
        account_id: UUID,
        amount: int,
        reason: str,
        reference_id: UUID | None = None,
    ) -> LedgerEntry:
        if amount <= 0:
            raise ValidationError("Debit amount must be positive", field="amount")
        stmt = (
            update(CreditAccount)
            .where(CreditAccount.account_id == account_id, CreditAccount.balance >= amount)
            .values(balance=CreditAccount.balance - amount, updated_at=func.now())
            .returning(CreditAccount.balance)
        )
        async with self.db.session() as session:
            balance_after = (await session.execute(stmt)).scalar_one_or_none()
            if balance_after is None:
                await session.rollback()
                current = await self.balance(account_id)
                raise InsufficientCredits(amount, current)
            entry = CreditLedgerEntry(
                account_id=account_id,
                delta=-amount,
                balance_after=balance_after,
                reason=reason,
                reference_id=reference_id,
            )
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        return _ledger_from_row(entry)

    async def credit(
        self,
        account_id: UUID,
        amount: int,
        reason: str,
        reference_id: UUID | None = None,
    ) -> LedgerEntry:
        if amount <= 0:
            raise ValidationError("Credit amount must be positive", field="amount")
        stmt = (
            pg_insert(CreditAccount)
            .values(account_id=account_id, balance=amount)
            .on_conflict_do_update(
                index_elements=[CreditAccount.account_id],
                set_={
                    "balance": CreditAccount.__table__.c.balance + amount,
                    "updated_at": func.now(),
                },
            )
            .returning(CreditAccount.balance)
        )
        async with self.db.session() as session:
            balance_after = (await session.execute(stmt)).scalar_one()
            entry = CreditLedgerEntry(
                account_id=account_id,
                delta=amount,
                balance_after=balance_after,
                reason=reason,
                reference_id=reference_id,
            )
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        return _ledger_from_row(entry)

    async def entries(self, account_id: UUID, limit: int = 20) -> list[LedgerEntry]:
        query = (
            select(CreditLedgerEntry)
            .where(CreditLedgerEntry.account_id == account_id)
            .order_by(CreditLedgerEntry.created_at.desc())
            .limit(limit)
        )
        async with self.db.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [_ledger_from_row(r) for r in rows]


class SqlJudgeDirectory(JudgeDirectory):
    def __init__(self, db: Database) -> None:
        self.db = db

    async def find_candidates(
        self,
        min_reputation: float,
        industries: list[str] | None = None,
        exclude: set[UUID] | None = None,
        limit: int = 50,
    ) -> list[JudgeProfile]:
        query = (
            select(Judge)
            .where(
                Judge.status == "active",
                Judge.verified_expert.is_(True),
                Judge.reputation_score >= min_reputation,
            )
            .order_by(Judge.reputation_score.desc())
            .limit(limit)
        )
        if exclude:
            query = query.where(Judge.judge_id.notin_(list(exclude)))
        if industries:
            query = query.where(func.lower(Judge.industry).in_([i.lower() for i in industries]))
        async with self.db.session() as session:
            rows = (await session.execute(query)).scalars().all()
        return [_judge_from_row(r) for r in rows]

    async def upsert(self, profile: JudgeProfile) -> JudgeProfile:
        values = profile.model_dump()
        stmt = (
            pg_insert(Judge)
            .values(**values)
            .on_conflict_do_update(
                index_elements=[Judge.judge_id],
                set_={k: v for k, v in values.items() if k != "judge_id"},
            )
        )
        async with self.db.session() as session:
            await session.execute(stmt)
            await session.commit()
        logger.debug("judge_upserted", judge_id=str(profile.judge_id))
        return profile
