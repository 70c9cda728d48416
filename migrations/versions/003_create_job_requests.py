"""Create job_requests and job_proposals tables.

Revision ID: 003
Revises: 002
Create Date: 2026-10-01
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # parish and lawnsize were created with autopay_settings
    parish = postgresql.ENUM(name="parish", create_type=False)
    lawnsize = postgresql.ENUM(name="lawnsize", create_type=False)

    op.create_table(
        "job_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("accepted_provider_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=True),
        sa.Column(
            "autopay_settings_id", sa.Uuid(),
            sa.ForeignKey("autopay_settings.id", ondelete="RESTRICT"), nullable=True,
        ),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("parish", parish, nullable=False),
        sa.Column("lawn_size", lawnsize, nullable=True),
        sa.Column("additional_requirements", sa.Text(), nullable=True),
        sa.Column("preferred_date", sa.Date(), nullable=True),
        sa.Column("preferred_time", sa.String(32), nullable=True),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("customer_offer", sa.Numeric(12, 2), nullable=True),
        sa.Column("final_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("platform_fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("provider_payout", sa.Numeric(12, 2), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "open", "accepted", "in_progress", "pending_completion", "completed",
                "disputed", "refund_requested", "cancelled",
                name="jobstatus",
            ),
            nullable=False,
            server_default="open",
        ),
        sa.Column(
            "payment_status",
            sa.Enum("pending", "awaiting_confirmation", "paid", "failed", name="paymentstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("payment_reference", sa.String(256), nullable=True),
        sa.Column("payment_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_confirmed_by", sa.Uuid(), nullable=True),
        sa.Column("provider_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "final_price IS NULL OR platform_fee IS NULL OR provider_payout IS NULL "
            "OR final_price = platform_fee + provider_payout",
            name="ck_job_requests_fee_split",
        ),
    )
    op.create_index("ix_job_requests_customer_id", "job_requests", ["customer_id"])
    op.create_index("ix_job_requests_accepted_provider_id", "job_requests", ["accepted_provider_id"])
    op.create_index("ix_job_requests_status", "job_requests", ["status"])

    op.create_table(
        "job_proposals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("job_requests.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("provider_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "accepted", "rejected", "withdrawn", name="proposalstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("job_id", "provider_id", name="uq_job_proposals_job_provider"),
    )
    op.create_index("ix_job_proposals_job_id", "job_proposals", ["job_id"])


def downgrade() -> None:
    op.drop_table("job_proposals")
    op.drop_table("job_requests")
    op.execute("DROP TYPE IF EXISTS proposalstatus")
    op.execute("DROP TYPE IF EXISTS paymentstatus")
    op.execute("DROP TYPE IF EXISTS jobstatus")
