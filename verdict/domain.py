"""Domain types shared by the stores, services and routes.

A request is one tagged type: ``payload.variant`` selects standard,
comparison or split_test, and every consumer dispatches on it. Verdicts and
consensus outcomes follow the same discriminated-union layout.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from verdict.payloads.verdict_payloads import VerdictPayload


class RequestVariant(str, enum.Enum):
    standard = "standard"
    comparison = "comparison"
    split_test = "split_test"


class RequestStatus(str, enum.Enum):
    open = "open"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


ACCEPTING_STATUSES = frozenset({RequestStatus.open, RequestStatus.in_progress})

# Status never regresses; completed is only reachable through finalize.
VALID_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.open: frozenset(
        {RequestStatus.in_progress, RequestStatus.completed, RequestStatus.cancelled}
    ),
    RequestStatus.in_progress: frozenset(
        {RequestStatus.completed, RequestStatus.cancelled}
    ),
    RequestStatus.completed: frozenset(),
    RequestStatus.cancelled: frozenset(),
}


def can_transition(current: RequestStatus | str, target: RequestStatus | str) -> bool:
    return RequestStatus(target) in VALID_TRANSITIONS[RequestStatus(current)]


class RoutingStrategy(str, enum.Enum):
    none = "none"
    community = "community"
    expert_pool = "expert_pool"


# ---------------------------------------------------------------------------
# Tier configuration
# ---------------------------------------------------------------------------


class TierConfig(BaseModel):
    """Price and service level for one named tier."""

    model_config = ConfigDict(frozen=True)

    tier_name: str
    display_name: str
    credits_required: int = Field(..., ge=0)
    verdict_count: int = Field(..., gt=0)
    routing_strategy: RoutingStrategy = RoutingStrategy.none
    active: bool = True
    expert_only: bool = False
    min_reputation: float = 0.0
    pool_size: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class StandardPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["standard"] = "standard"
    category: str
    subcategory: str | None = None
    media_type: Literal["photo", "text"]
    media_url: str | None = None
    text_content: str | None = None
    context: str


class ComparisonOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    image_url: str | None = None


class DecisionContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeframe: str | None = None
    importance: Literal["low", "medium", "high", "critical"] = "medium"
    budget: str | None = None
    goals: list[str] = Field(default_factory=list)


class ComparisonPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["comparison"] = "comparison"
    category: str
    question: str
    option_a: ComparisonOption
    option_b: ComparisonOption
    decision_context: DecisionContext = Field(default_factory=DecisionContext)
    visibility: Literal["public", "private"] = "private"


class SplitTestPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["split_test"] = "split_test"
    category: str
    question: str | None = None
    photo_a_url: str
    photo_b_url: str
    context: str


RequestPayload = Annotated[
    Union[StandardPayload, ComparisonPayload, SplitTestPayload],
    Field(discriminator="variant"),
]


# ---------------------------------------------------------------------------
# Consensus outcomes
# ---------------------------------------------------------------------------


class StandardOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["standard"] = "standard"
    avg_rating: float | None
    rating_count: int
    tone_breakdown: dict[str, int] = Field(default_factory=dict)


class ComparisonOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["comparison"] = "comparison"
    winner_option: Literal["A", "B", "tie"]
    tally: dict[str, int]
    total_votes: int
    avg_option_a_rating: float | None = None
    avg_option_b_rating: float | None = None


class SplitTestOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["split_test"] = "split_test"
    winning_photo: Literal["A", "B", "tie"]
    consensus_strength: float = Field(..., ge=0.0, le=1.0)
    votes_a: int
    votes_b: int
    total_votes: int
    avg_photo_a_rating: float | None = None
    avg_photo_b_rating: float | None = None


ConsensusOutcome = Annotated[
    Union[StandardOutcome, ComparisonOutcome, SplitTestOutcome],
    Field(discriminator="variant"),
]


# ---------------------------------------------------------------------------
# Request / Verdict records
# ---------------------------------------------------------------------------


class Request(BaseModel):
    """One persisted evaluation request."""

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    created_at: datetime
    updated_at: datetime | None = None
    status: RequestStatus = RequestStatus.open
    tier: str
    credits_charged: int = 0
    target_verdict_count: int = Field(..., gt=0)
    received_verdict_count: int = Field(default=0, ge=0)
    payload: RequestPayload
    outcome: ConsensusOutcome | None = None
    completed_at: datetime | None = None
    deleted_at: datetime | None = None
    routing_strategy: str | None = None
    routed_at: datetime | None = None
    expert_pool: list[UUID] = Field(default_factory=list)

    @property
    def variant(self) -> RequestVariant:
        return RequestVariant(self.payload.variant)

    @property
    def accepting_verdicts(self) -> bool:
        return (
            self.deleted_at is None
            and self.status in ACCEPTING_STATUSES
            and self.received_verdict_count < self.target_verdict_count
        )


class Verdict(BaseModel):
    """One judge's immutable evaluation of a request."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    request_id: UUID
    judge_id: UUID
    created_at: datetime
    payload: VerdictPayload

    @property
    def variant(self) -> RequestVariant:
        return RequestVariant(self.payload.variant)

    @property
    def reasoning(self) -> str:
        return self.payload.reasoning

    @property
    def time_spent_seconds(self) -> int:
        return self.payload.time_spent_seconds


class LedgerEntry(BaseModel):
    """Audit record for one credit balance change."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    delta: int
    balance_after: int = Field(..., ge=0)
    reason: str
    reference_id: UUID | None = None
    created_at: datetime


class JudgeProfile(BaseModel):
    """Reviewer record consulted by expert routing."""

    judge_id: UUID
    reputation_score: float = 5.0
    verified_expert: bool = False
    expert_title: str | None = None
    industry: str | None = None
    total_reviews: int = 0
    last_active: datetime | None = None
    status: Literal["active", "suspended", "inactive"] = "active"
