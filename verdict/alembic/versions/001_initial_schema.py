"""Create credit, request, verdict and judge tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "credit_accounts",
        sa.Column("account_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("balance >= 0", name="ck_credit_balance_non_negative"),
    )

    op.create_table(
        "credit_ledger",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "account_id",
            UUID(as_uuid=True),
            sa.ForeignKey("credit_accounts.account_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("reference_id", UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("balance_after >= 0", name="ck_ledger_balance_after"),
    )
    op.create_index("idx_credit_ledger_account_created", "credit_ledger", ["account_id", "created_at"])

    op.create_table(
        "verdict_requests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("owner_id", UUID(as_uuid=True), nullable=False),
        sa.Column("variant", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'open'")),
        sa.Column("tier", sa.Text(), nullable=False),
        sa.Column("credits_charged", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("target_verdict_count", sa.Integer(), nullable=False),
        sa.Column("received_verdict_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payload", JSONB(), nullable=False),
        sa.Column("outcome", JSONB(), nullable=True),
        sa.Column("routing_strategy", sa.Text(), nullable=True),
        sa.Column("routed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expert_pool", ARRAY(UUID(as_uuid=True)), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("variant IN ('standard','comparison','split_test')", name="ck_request_variant"),
        sa.CheckConstraint(
            "status IN ('open','in_progress','completed','cancelled')", name="ck_request_status"
        ),
        sa.CheckConstraint("target_verdict_count > 0", name="ck_request_target_positive"),
        sa.CheckConstraint(
            "received_verdict_count >= 0 AND received_verdict_count <= target_verdict_count",
            name="ck_request_received_bounds",
        ),
        sa.CheckConstraint(
            "status <> 'completed' OR received_verdict_count = target_verdict_count",
            name="ck_request_completed_full",
        ),
    )
    op.create_index("idx_requests_owner_created", "verdict_requests", ["owner_id", "created_at"])
    op.create_index("idx_requests_status", "verdict_requests", ["status"])

    op.create_table(
        "verdict_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "request_id",
            UUID(as_uuid=True),
            sa.ForeignKey("verdict_requests.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("judge_id", UUID(as_uuid=True), nullable=False),
        sa.Column("variant", sa.Text(), nullable=False),
        sa.Column("payload", JSONB(), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=False),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("request_id", "judge_id", name="uq_verdict_request_judge"),
    )
    op.create_index("idx_verdicts_request_created", "verdict_responses", ["request_id", "created_at"])
    op.create_index("idx_verdicts_judge", "verdict_responses", ["judge_id"])

    op.create_table(
        "judges",
        sa.Column("judge_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("reputation_score", sa.DECIMAL(4, 2), nullable=False, server_default=sa.text("5.0")),
        sa.Column("verified_expert", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("expert_title", sa.Text(), nullable=True),
        sa.Column("industry", sa.Text(), nullable=True),
        sa.Column("total_reviews", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_active", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'active'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('active','suspended','inactive')", name="ck_judge_status"),
    )
    op.create_index("idx_judges_routing", "judges", ["status", "verified_expert", "reputation_score"])


def downgrade() -> None:
    op.drop_index("idx_judges_routing", table_name="judges")
    op.drop_table("judges")
    op.drop_index("idx_verdicts_judge", table_name="verdict_responses")
    op.drop_index("idx_verdicts_request_created", table_name="verdict_responses")
    op.drop_table("verdict_responses")
    op.drop_index("idx_requests_status", table_name="verdict_requests")
    op.drop_index("idx_requests_owner_created", table_name="verdict_requests")
    op.drop_table("verdict_requests")
    op.drop_index("idx_credit_ledger_account_created", table_name="credit_ledger")
    op.drop_table("credit_ledger")
    op.drop_table("credit_accounts")
