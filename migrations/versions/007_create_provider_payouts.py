"""Create provider_payouts and provider_payout_jobs tables.

provider_payout_jobs.job_id is the primary key, so a job can appear in at
most one payout even when two batch runs overlap.

Revision ID: 007
Revises: 006
Create Date: 2026-10-04
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "provider_payouts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("provider_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("jobs_count", sa.Integer(), nullable=False),
        sa.Column("job_ids", ARRAY(sa.Uuid()), nullable=False),
        sa.Column("payout_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_provider_payouts_provider_id", "provider_payouts", ["provider_id"])
    op.create_index("ix_provider_payouts_payout_date", "provider_payouts", ["payout_date"])

    op.create_table(
        "provider_payout_jobs",
        sa.Column(
            "job_id", sa.Uuid(),
            sa.ForeignKey("job_requests.id", ondelete="RESTRICT"), primary_key=True,
        ),
        sa.Column(
            "payout_id", sa.Uuid(),
            sa.ForeignKey("provider_payouts.id", ondelete="RESTRICT"), nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("provider_payout_jobs")
    op.drop_table("provider_payouts")
