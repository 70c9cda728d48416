"""Job request model: the system of record for every lawn-care job."""

import enum
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from lawnconnect.database import Base


class JobStatus(enum.Enum):
    OPEN = "open"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    PENDING_COMPLETION = "pending_completion"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    REFUND_REQUESTED = "refund_requested"
    CANCELLED = "cancelled"


class PaymentStatus(enum.Enum):
    PENDING = "pending"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    PAID = "paid"
    FAILED = "failed"


class Parish(enum.Enum):
    KINGSTON = "Kingston"
    ST_ANDREW = "St. Andrew"
    ST_THOMAS = "St. Thomas"
    PORTLAND = "Portland"
    ST_MARY = "St. Mary"
    ST_ANN = "St. Ann"
    TRELAWNY = "Trelawny"
    ST_JAMES = "St. James"
    HANOVER = "Hanover"
    WESTMORELAND = "Westmoreland"
    ST_ELIZABETH = "St. Elizabeth"
    MANCHESTER = "Manchester"
    CLARENDON = "Clarendon"
    ST_CATHERINE = "St. Catherine"


class LawnSize(enum.Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"


# Forward chain plus the admin-resolved side branch. Nothing leads back into the chain.
VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.OPEN: {JobStatus.ACCEPTED, JobStatus.CANCELLED},
    JobStatus.ACCEPTED: {JobStatus.IN_PROGRESS},
    JobStatus.IN_PROGRESS: {JobStatus.PENDING_COMPLETION},
    JobStatus.PENDING_COMPLETION: {
        JobStatus.COMPLETED, JobStatus.DISPUTED, JobStatus.REFUND_REQUESTED,
    },
    JobStatus.COMPLETED: {JobStatus.DISPUTED, JobStatus.REFUND_REQUESTED},
    JobStatus.DISPUTED: set(),
    JobStatus.REFUND_REQUESTED: set(),
    JobStatus.CANCELLED: set(),
}


def _enum(cls: type[enum.Enum]) -> Enum:
    return Enum(cls, values_callable=lambda x: [e.value for e in x])


class JobRequest(Base):
    __tablename__ = "job_requests"
    __table_args__ = (
        CheckConstraint(
            "final_price IS NULL OR platform_fee IS NULL OR provider_payout IS NULL "
            "OR final_price = platform_fee + provider_payout",
            name="ck_job_requests_fee_split",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    accepted_provider_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    autopay_settings_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("autopay_settings.id", ondelete="RESTRICT"), nullable=True
    )

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    parish: Mapped[Parish] = mapped_column(_enum(Parish), nullable=False)
    lawn_size: Mapped[LawnSize | None] = mapped_column(_enum(LawnSize), nullable=True)
    additional_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)
    preferred_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    preferred_time: Mapped[str | None] = mapped_column(String(32), nullable=True)

    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    customer_offer: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    final_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    platform_fee: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    provider_payout: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    status: Mapped[JobStatus] = mapped_column(
        _enum(JobStatus), nullable=False, default=JobStatus.OPEN, index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING
    )
    payment_reference: Mapped[str | None] = mapped_column(String(256), nullable=True)
    payment_confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    payment_confirmed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    provider_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class ProposalStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class JobProposal(Base):
    """A provider's offer to take an open job."""

    __tablename__ = "job_proposals"
    __table_args__ = (
        UniqueConstraint("job_id", "provider_id", name="uq_job_proposals_job_provider"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("job_requests.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ProposalStatus] = mapped_column(
        _enum(ProposalStatus), nullable=False, default=ProposalStatus.PENDING
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
