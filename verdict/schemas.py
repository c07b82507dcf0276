"""Pydantic v2 request/response schemas for all endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from verdict.domain import LedgerEntry, Request, Verdict
from verdict.services.request_service import verdict_preview


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateRequestBody(BaseModel):
    """Loose envelope; per-variant rules live in the request service."""

    model_config = ConfigDict(extra="ignore")

    request_type: str = Field(default="standard", max_length=20)
    tier: str | int | None = None
    request_tier: str | int | None = None
    category: str | None = None
    subcategory: str | None = Field(default=None, max_length=100)
    context: str | None = None

    # standard
    media_type: str | None = None
    media_url: str | None = None
    text_content: str | None = None

    # comparison
    question: str | None = None
    option_a: dict[str, Any] | None = None
    option_b: dict[str, Any] | None = None
    decision_context: dict[str, Any] | None = None
    visibility: str | None = None

    # split test
    photo_a_url: str | None = None
    photo_b_url: str | None = None


class RequestResponse(BaseModel):
    id: UUID
    owner_id: UUID
    request_type: str
    status: str
    tier: str
    credits_charged: int
    target_verdict_count: int
    received_verdict_count: int
    payload: dict[str, Any]
    outcome: dict[str, Any] | None = None
    routing_strategy: str | None = None
    routed_at: datetime | None = None
    expert_pool_size: int = 0
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_domain(cls, request: Request) -> "RequestResponse":
        return cls(
            id=request.id,
            owner_id=request.owner_id,
            request_type=request.variant.value,
            status=request.status.value,
            tier=request.tier,
            credits_charged=request.credits_charged,
            target_verdict_count=request.target_verdict_count,
            received_verdict_count=request.received_verdict_count,
            payload=request.payload.model_dump(mode="json"),
            outcome=request.outcome.model_dump(mode="json") if request.outcome else None,
            routing_strategy=request.routing_strategy,
            routed_at=request.routed_at,
            expert_pool_size=len(request.expert_pool),
            created_at=request.created_at,
            completed_at=request.completed_at,
        )


class RequestSummary(RequestResponse):
    verdict_preview: str
    avg_rating: float | None = None

    @classmethod
    def from_domain(cls, request: Request) -> "RequestSummary":
        preview, avg = verdict_preview(request)
        base = RequestResponse.from_domain(request).model_dump()
        return cls(**base, verdict_preview=preview, avg_rating=avg)


class RequestListResponse(BaseModel):
    items: list[RequestSummary]
    limit: int
    offset: int


# ---------------------------------------------------------------------------
# Verdicts
# ---------------------------------------------------------------------------


class VerdictResponse(BaseModel):
    id: UUID
    request_id: UUID
    judge_id: UUID
    variant: str
    payload: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_domain(cls, verdict: Verdict) -> "VerdictResponse":
        return cls(
            id=verdict.id,
            request_id=verdict.request_id,
            judge_id=verdict.judge_id,
            variant=verdict.variant.value,
            payload=verdict.payload.model_dump(mode="json"),
            created_at=verdict.created_at,
        )


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------


class ConsensusResponse(BaseModel):
    request_id: UUID
    request_type: str
    status: str
    verdict_count: int
    outcome: dict[str, Any]


# ---------------------------------------------------------------------------
# Credits
# ---------------------------------------------------------------------------


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    delta: int
    balance_after: int
    reason: str
    reference_id: UUID | None
    created_at: datetime


class CreditsResponse(BaseModel):
    account_id: UUID
    balance: int
    entries: list[LedgerEntryResponse] = Field(default_factory=list)

    @classmethod
    def build(cls, account_id: UUID, balance: int, entries: list[LedgerEntry]) -> "CreditsResponse":
        return cls(
            account_id=account_id,
            balance=balance,
            entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        )
