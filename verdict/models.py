"""SQLAlchemy ORM models for requests, verdicts, credits and judges."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    ARRAY,
    CheckConstraint,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import DECIMAL, Boolean, DateTime, Integer


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Credits
# ---------------------------------------------------------------------------


class CreditAccount(Base):
    __tablename__ = "credit_accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_credit_balance_non_negative"),
    )

    account_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    balance: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )

    entries: Mapped[list["CreditLedgerEntry"]] = relationship(back_populates="account")


class CreditLedgerEntry(Base):
    __tablename__ = "credit_ledger"
    __table_args__ = (
        Index("idx_credit_ledger_account_created", "account_id", "created_at"),
        CheckConstraint("balance_after >= 0", name="ck_ledger_balance_after"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    account_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("credit_accounts.account_id", ondelete="CASCADE"),
        nullable=False,
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    reference_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )

    account: Mapped["CreditAccount"] = relationship(back_populates="entries")


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class VerdictRequest(Base):
    __tablename__ = "verdict_requests"
    __table_args__ = (
        Index("idx_requests_owner_created", "owner_id", "created_at"),
        Index("idx_requests_status", "status"),
        CheckConstraint(
            "variant IN ('standard','comparison','split_test')",
            name="ck_request_variant",
        ),
        CheckConstraint(
            "status IN ('open','in_progress','completed','cancelled')",
            name="ck_request_status",
        ),
        CheckConstraint("target_verdict_count > 0", name="ck_request_target_positive"),
        CheckConstraint(
            "received_verdict_count >= 0 AND received_verdict_count <= target_verdict_count",
            name="ck_request_received_bounds",
        ),
        CheckConstraint(
            "status <> 'completed' OR received_verdict_count = target_verdict_count",
            name="ck_request_completed_full",
        ),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    owner_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    variant: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'open'")
    )
    tier: Mapped[str] = mapped_column(Text, nullable=False)
    credits_charged: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    target_verdict_count: Mapped[int] = mapped_column(Integer, nullable=False)
    received_verdict_count: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
    outcome: Mapped[dict | None] = mapped_column(JSONB)
    routing_strategy: Mapped[str | None] = mapped_column(Text)
    routed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expert_pool: Mapped[list[UUID]] = mapped_column(
        ARRAY(PG_UUID(as_uuid=True)), nullable=False, server_default=text("'{}'")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    verdicts: Mapped[list["VerdictResponse"]] = relationship(back_populates="request")


class VerdictResponse(Base):
    __tablename__ = "verdict_responses"
    __table_args__ = (
        UniqueConstraint("request_id", "judge_id", name="uq_verdict_request_judge"),
        Index("idx_verdicts_request_created", "request_id", "created_at"),
        Index("idx_verdicts_judge", "judge_id"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    # RESTRICT: a request with verdicts is soft-deleted, never removed
    request_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("verdict_requests.id", ondelete="RESTRICT"),
        nullable=False,
    )
    judge_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    variant: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
    reasoning: Mapped[str] = mapped_column(Text, nullable=False)
    time_spent_seconds: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )

    request: Mapped["VerdictRequest"] = relationship(back_populates="verdicts")


# ---------------------------------------------------------------------------
# Judges
# ---------------------------------------------------------------------------


class Judge(Base):
    __tablename__ = "judges"
    __table_args__ = (
        Index("idx_judges_routing", "status", "verified_expert", "reputation_score"),
        CheckConstraint(
            "status IN ('active','suspended','inactive')", name="ck_judge_status"
        ),
    )

    judge_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    reputation_score: Mapped[float] = mapped_column(
        DECIMAL(4, 2), nullable=False, server_default=text("5.0")
    )
    verified_expert: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    expert_title: Mapped[str | None] = mapped_column(Text)
    industry: Mapped[str | None] = mapped_column(Text)
    total_reviews: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'active'")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )
