"""In-process store implementations.

Each store serializes its mutations behind one ``asyncio.Lock`` and hands
out copies, so callers never hold a reference into the store's state.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from uuid import UUID, uuid4

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
from verdict.store.base import CreditLedger, IncrementResult, JudgeDirectory, RequestStore


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRequestStore(RequestStore):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._requests: dict[UUID, Request] = {}
        self._verdicts: dict[UUID, list[Verdict]] = {}

    async def create(
        self,
        owner_id: UUID,
        payload: RequestPayload,
        tier: TierConfig,
        request_id: UUID | None = None,
    ) -> Request:
        now = _now()
        request = Request(
            id=request_id or uuid4(),
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
            tier=tier.tier_name,
            credits_charged=tier.credits_required,
            target_verdict_count=tier.verdict_count,
            payload=payload,
        )
        async with self._lock:
            self._requests[request.id] = request
            self._verdicts[request.id] = []
        return request.model_copy()

    async def get_by_id(self, request_id: UUID, include_deleted: bool = False) -> Request | None:
        request = self._requests.get(request_id)
        if request is None or (request.deleted_at is not None and not include_deleted):
            return None
        return request.model_copy()

    async def list_by_owner(
        self,
        owner_id: UUID,
        variant: RequestVariant | None = None,
        limit: int = 20,
    ) -> list[Request]:
        rows = [
            r for r in self._requests.values()
            if r.owner_id == owner_id
            and r.deleted_at is None
            and (variant is None or r.variant == variant)
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy() for r in rows[:limit]]

    async def list_verdicts(self, request_id: UUID) -> list[Verdict]:
        return list(self._verdicts.get(request_id, []))

    async def has_verdict(self, request_id: UUID, judge_id: UUID) -> bool:
        return any(v.judge_id == judge_id for v in self._verdicts.get(request_id, []))

    async def append_verdict(self, verdict: Verdict) -> IncrementResult:
        async with self._lock:
            request = self._requests.get(verdict.request_id)
            if request is None:
                raise RequestNotFound(verdict.request_id)
            if not request.accepting_verdicts:
                raise RequestNotAcceptingVerdicts(request.id, request.status.value)

            existing = self._verdicts.setdefault(request.id, [])
            if any(v.judge_id == verdict.judge_id for v in existing):
                raise DuplicateVerdict(request.id, verdict.judge_id)

            existing.append(verdict)
            request.received_verdict_count += 1
            request.updated_at = _now()
            return IncrementResult(
                request_id=request.id,
                received=request.received_verdict_count,
                target=request.target_verdict_count,
            )

    async def finalize(self, request_id: UUID, outcome: ConsensusOutcome) -> bool:
        async with self._lock:
            request = self._requests.get(request_id)
            if (
                request is None
                or not can_transition(request.status, RequestStatus.completed)
                or request.received_verdict_count != request.target_verdict_count
            ):
                return False
            now = _now()
            request.status = RequestStatus.completed
            request.outcome = outcome
            request.completed_at = now
            request.updated_at = now
            return True

    async def record_routing(
        self, request_id: UUID, strategy: str, expert_pool: list[UUID]
    ) -> Request | None:
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return None
            now = _now()
            request.routing_strategy = strategy
            request.routed_at = now
            request.expert_pool = list(expert_pool)
            request.updated_at = now
            # in_progress only before the first verdict lands
            if (
                expert_pool
                and can_transition(request.status, RequestStatus.in_progress)
                and request.received_verdict_count == 0
            ):
                request.status = RequestStatus.in_progress
            return request.model_copy()

    async def cancel(self, request_id: UUID) -> Request:
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None or request.deleted_at is not None:
                raise RequestNotFound(request_id)
            if (
                not can_transition(request.status, RequestStatus.cancelled)
                or request.received_verdict_count >= request.target_verdict_count
            ):
                raise InvalidTransition(request.status.value, RequestStatus.cancelled.value)
            request.status = RequestStatus.cancelled
            request.updated_at = _now()
            return request.model_copy()

    async def soft_delete(self, request_id: UUID) -> Request:
        async with self._lock:
            request = self._requests.get(request_id)
            if request is None or request.deleted_at is not None:
                raise RequestNotFound(request_id)
            now = _now()
            request.deleted_at = now
            request.updated_at = now
            return request.model_copy()

    async def list_awaiting_finalization(self) -> list[UUID]:
        return [
            r.id for r in self._requests.values()
            if r.status in ACCEPTING_STATUSES
            and r.received_verdict_count == r.target_verdict_count
        ]


class InMemoryCreditLedger(CreditLedger):
    def __init__(self, initial: dict[UUID, int] | None = None) -> None:
        self._lock = asyncio.Lock()
        self._balances: dict[UUID, int] = dict(initial or {})
        self._entries: dict[UUID, list[LedgerEntry]] = {}

    async def balance(self, account_id: UUID) -> int:
        return self._balances.get(account_id, 0)

    async def debit(
        self,
        account_id: UUID,
        amount: int,
        reason: str,
        reference_id: UUID | None = None,
    ) -> LedgerEntry:
        if amount <= 0:
            raise ValidationError("Debit amount must be positive", field="amount")
        async with self._lock:
            current = self._balances.get(account_id, 0)
            if current < amount:
                raise InsufficientCredits(amount, current)
            return self._apply(account_id, -amount, reason, reference_id)

    async def credit(
        self,
        account_id: UUID,
        amount: int,
        reason: str,
        reference_id: UUID | None = None,
    ) -> LedgerEntry:
        if amount <= 0:
            raise ValidationError("Credit amount must be positive", field="amount")
        async with self._lock:
            return self._apply(account_id, amount, reason, reference_id)

    async def entries(self, account_id: UUID, limit: int = 20) -> list[LedgerEntry]:
        return list(reversed(self._entries.get(account_id, [])))[:limit]

    def _apply(
        self, account_id: UUID, delta: int, reason: str, reference_id: UUID | None
    ) -> LedgerEntry:
        # Caller holds the lock
        balance_after = self._balances.get(account_id, 0) + delta
        self._balances[account_id] = balance_after
        entry = LedgerEntry(
            account_id=account_id,
            delta=delta,
            balance_after=balance_after,
            reason=reason,
            reference_id=reference_id,
            created_at=_now(),
        )
        self._entries.setdefault(account_id, []).append(entry)
        return entry


class InMemoryJudgeDirectory(JudgeDirectory):
    def __init__(self, profiles: list[JudgeProfile] | None = None) -> None:
        self._profiles: dict[UUID, JudgeProfile] = {p.judge_id: p for p in profiles or []}

    async def find_candidates(
        self,
        min_reputation: float,
        industries: list[str] | None = None,
        exclude: set[UUID] | None = None,
        limit: int = 50,
    ) -> list[JudgeProfile]:
        exclude = exclude or set()
        wanted = {i.lower() for i in industries} if industries else None
        rows = [
            p for p in self._profiles.values()
            if p.status == "active"
            and p.verified_expert
            and p.reputation_score >= min_reputation
            and p.judge_id not in exclude
            and (wanted is None or (p.industry or "").lower() in wanted)
        ]
        rows.sort(key=lambda p: p.reputation_score, reverse=True)
        return [p.model_copy() for p in rows[:limit]]

    async def upsert(self, profile: JudgeProfile) -> JudgeProfile:
        self._profiles[profile.judge_id] = profile.model_copy()
        return profile
