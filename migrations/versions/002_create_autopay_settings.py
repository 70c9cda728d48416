"""Create autopay_settings table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-01
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PARISHES = (
    "Kingston", "St. Andrew", "St. Thomas", "Portland", "St. Mary", "St. Ann", "Trelawny",
    "St. James", "Hanover", "Westmoreland", "St. Elizabeth", "Manchester", "Clarendon",
    "St. Catherine",
)


def upgrade() -> None:
    op.create_table(
        "autopay_settings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("location_name", sa.String(128), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "frequency",
            sa.Enum("monthly", "bimonthly", name="autopayfrequency"),
            nullable=False,
            server_default="monthly",
        ),
        sa.Column("recurring_day", sa.Integer(), nullable=False),
        sa.Column("recurring_day_2", sa.Integer(), nullable=True),
        sa.Column("next_scheduled_date", sa.Date(), nullable=True),
        sa.Column("next_scheduled_date_2", sa.Date(), nullable=True),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("parish", sa.Enum(*PARISHES, name="parish"), nullable=False),
        sa.Column("lawn_size", sa.Enum("small", "medium", "large", "xlarge", name="lawnsize"), nullable=False),
        sa.Column("job_type", sa.String(128), nullable=True),
        sa.Column("additional_requirements", sa.Text(), nullable=True),
        sa.Column("card_last_four", sa.String(4), nullable=True),
        sa.Column("card_name", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("recurring_day >= 1 AND recurring_day <= 31", name="ck_autopay_recurring_day"),
        sa.CheckConstraint(
            "recurring_day_2 IS NULL OR (recurring_day_2 >= 1 AND recurring_day_2 <= 31)",
            name="ck_autopay_recurring_day_2",
        ),
    )
    op.create_index("ix_autopay_settings_customer_id", "autopay_settings", ["customer_id"])
    op.create_index("ix_autopay_settings_next_scheduled_date", "autopay_settings", ["next_scheduled_date"])
    op.create_index("ix_autopay_settings_next_scheduled_date_2", "autopay_settings", ["next_scheduled_date_2"])


def downgrade() -> None:
    op.drop_table("autopay_settings")
    op.execute("DROP TYPE IF EXISTS autopayfrequency")
    op.execute("DROP TYPE IF EXISTS parish")
    op.execute("DROP TYPE IF EXISTS lawnsize")
