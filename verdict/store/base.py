"""Storage interfaces for requests, credits and judges.

Services depend only on these abstract classes. ``store.memory`` backs them
with in-process dictionaries (tests, local runs) and ``store.sql`` with
PostgreSQL.

Mutation discipline for requests: only ``append_verdict`` touches the
received counter and only ``finalize`` sets ``completed``. Both are
conditional writes, so concurrent callers cannot overshoot the target or
finalize twice.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import UUID

from verdict.domain import (
    ConsensusOutcome,
    JudgeProfile,
    LedgerEntry,
    Request,
    RequestPayload,
    RequestVariant,
    TierConfig,
    Verdict,
)


@dataclass(frozen=True)
class IncrementResult:
    """Counter state right after one verdict was appended."""

    request_id: UUID
    received: int
    target: int

    @property
    def reached_target(self) -> bool:
        # Each append yields a distinct count, so exactly one caller sees this
        return self.received == self.target


class RequestStore(ABC):
    """Persisted requests and their verdicts."""

    @abstractmethod
    async def create(
        self,
        owner_id: UUID,
        payload: RequestPayload,
        tier: TierConfig,
        request_id: UUID | None = None,
    ) -> Request:
        """Insert a request: status open, received 0, target from the tier."""

    @abstractmethod
    async def get_by_id(self, request_id: UUID, include_deleted: bool = False) -> Request | None:
        ...

    @abstractmethod
    async def list_by_owner(
        self,
        owner_id: UUID,
        variant: RequestVariant | None = None,
        limit: int = 20,
    ) -> list[Request]:
        """Newest-first requests of one owner, soft-deleted rows excluded."""

    @abstractmethod
    async def list_verdicts(self, request_id: UUID) -> list[Verdict]:
        """All verdicts of a request in arrival order."""

    @abstractmethod
    async def has_verdict(self, request_id: UUID, judge_id: UUID) -> bool:
        ...

    @abstractmethod
    async def append_verdict(self, verdict: Verdict) -> IncrementResult:
        """Persist a verdict and increment the received counter as one unit.

        The increment is a compare-and-increment guarded by status and
        ``received < target``. If the guard fails nothing is persisted and
        RequestNotAcceptingVerdicts is raised. A second verdict from the same
        judge raises DuplicateVerdict.
        """

    @abstractmethod
    async def finalize(self, request_id: UUID, outcome: ConsensusOutcome) -> bool:
        """Mark a full request completed and attach its outcome.

        Returns True only for the call that performed the transition.
        """

    @abstractmethod
    async def record_routing(
        self, request_id: UUID, strategy: str, expert_pool: list[UUID]
    ) -> Request | None:
        """Attach routing metadata; open requests with a non-empty pool move to in_progress."""

    @abstractmethod
    async def cancel(self, request_id: UUID) -> Request:
        """Move a non-terminal, not-yet-full request to cancelled."""

    @abstractmethod
    async def soft_delete(self, request_id: UUID) -> Request:
        ...

    @abstractmethod
    async def list_awaiting_finalization(self) -> list[UUID]:
        """Requests whose counter reached the target but are not completed yet."""


class CreditLedger(ABC):
    """Per-account integer credit balances with an audit trail."""

    @abstractmethod
    async def balance(self, account_id: UUID) -> int:
        ...

    @abstractmethod
    async def debit(
        self,
        account_id: UUID,
        amount: int,
        reason: str,
        reference_id: UUID | None = None,
    ) -> LedgerEntry:
        """Atomically subtract ``amount``; raises InsufficientCredits without side effects."""

    @abstractmethod
    async def credit(
        self,
        account_id: UUID,
        amount: int,
        reason: str,
        reference_id: UUID | None = None,
    ) -> LedgerEntry:
        ...

    @abstractmethod
    async def entries(self, account_id: UUID, limit: int = 20) -> list[LedgerEntry]:
        """Newest-first ledger entries."""


class JudgeDirectory(ABC):
    """Reviewer profiles used to build expert pools."""

    @abstractmethod
    async def find_candidates(
        self,
        min_reputation: float,
        industries: list[str] | None = None,
        exclude: set[UUID] | None = None,
        limit: int = 50,
    ) -> list[JudgeProfile]:
        """Active verified experts at or above ``min_reputation``."""

    @abstractmethod
    async def upsert(self, profile: JudgeProfile) -> JudgeProfile:
        ...
