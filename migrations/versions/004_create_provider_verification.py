"""Create provider_verifications and provider_banking_details tables.

Revision ID: 004
Revises: 003
Create Date: 2026-10-02
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "provider_verifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "provider_id", sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, unique=True,
        ),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "rejected", name="verificationstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "document_type",
            sa.Enum("drivers_license", "passport", "national_id", name="documenttype"),
            nullable=False,
        ),
        sa.Column("document_url", sa.Text(), nullable=False),
        sa.Column("document_back_url", sa.Text(), nullable=True),
        sa.Column("selfie_url", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.Uuid(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "provider_banking_details",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "provider_id", sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, unique=True,
        ),
        sa.Column(
            "status",
            sa.Enum("pending", "verified", "rejected", name="bankingstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("full_legal_name", sa.String(256), nullable=False),
        sa.Column("bank_name", sa.Enum("scotiabank_jamaica", "ncb_jamaica", name="bankname"), nullable=False),
        sa.Column("branch_name", sa.String(128), nullable=False),
        sa.Column("branch_number", sa.String(32), nullable=True),
        sa.Column("account_number", sa.String(64), nullable=False),
        sa.Column("account_type", sa.Enum("savings", "chequing", name="accounttype"), nullable=False),
        sa.Column("trn", sa.String(16), nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.Uuid(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("provider_banking_details")
    op.drop_table("provider_verifications")
    for enum_name in ("accounttype", "bankname", "bankingstatus", "documenttype", "verificationstatus"):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
