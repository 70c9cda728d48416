"""Recurring autopay schedules that materialize jobs ahead of each cut date."""

import enum
import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Enum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from lawnconnect.database import Base
from lawnconnect.models.job import LawnSize, Parish


class AutopayFrequency(enum.Enum):
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"


class AutopaySettings(Base):
    __tablename__ = "autopay_settings"
    __table_args__ = (
        CheckConstraint("recurring_day >= 1 AND recurring_day <= 31", name="ck_autopay_recurring_day"),
        CheckConstraint(
            "recurring_day_2 IS NULL OR (recurring_day_2 >= 1 AND recurring_day_2 <= 31)",
            name="ck_autopay_recurring_day_2",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    location_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    frequency: Mapped[AutopayFrequency] = mapped_column(
        Enum(AutopayFrequency, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=AutopayFrequency.MONTHLY,
    )
    recurring_day: Mapped[int] = mapped_column(Integer, nullable=False)
    recurring_day_2: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    next_scheduled_date_2: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)

    # Template copied into every generated job
    location: Mapped[str] = mapped_column(Text, nullable=False)
    parish: Mapped[Parish] = mapped_column(
        Enum(Parish, values_callable=lambda x: [e.value for e in x]), nullable=False
    )
    lawn_size: Mapped[LawnSize] = mapped_column(
        Enum(LawnSize, values_callable=lambda x: [e.value for e in x]), nullable=False
    )
    job_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    additional_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Display only; card data never touches this service
    card_last_four: Mapped[str | None] = mapped_column(String(4), nullable=True)
    card_name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
