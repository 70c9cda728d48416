"""Provider payout batches. Append-only."""

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ARRAY, DateTime, ForeignKey, Integer, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from lawnconnect.database import Base


class ProviderPayout(Base):
    __tablename__ = "provider_payouts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    jobs_count: Mapped[int] = mapped_column(Integer, nullable=False)
    job_ids: Mapped[list[uuid.UUID]] = mapped_column(ARRAY(Uuid), nullable=False)
    payout_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


class ProviderPayoutJob(Base):
    """One row per paid job. The primary key keeps job ids disjoint across payouts."""

    __tablename__ = "provider_payout_jobs"

    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("job_requests.id", ondelete="RESTRICT"), primary_key=True
    )
    payout_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("provider_payouts.id", ondelete="RESTRICT"), nullable=False
    )
