"""Autopay schedule schemas."""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from lawnconnect.models.autopay import AutopayFrequency
from lawnconnect.models.job import LawnSize, Parish


class AutopayCreate(BaseModel):
    """Recurring day(s) are limited to 1-28 so every month has them."""
    location_name: str | None = Field(None, max_length=128)
    frequency: AutopayFrequency = AutopayFrequency.MONTHLY
    recurring_day: int = Field(..., ge=1, le=28)
    recurring_day_2: int | None = Field(None, ge=1, le=28)
    location: str = Field(..., min_length=1, max_length=1024)
    parish: Parish
    lawn_size: LawnSize
    job_type: str | None = Field(None, max_length=128)
    additional_requirements: str | None = Field(None, max_length=4096)
    card_last_four: str | None = Field(None, pattern=r"^\d{4}$")
    card_name: str | None = Field(None, max_length=128)

    @model_validator(mode="after")
    def check_second_day(self) -> "AutopayCreate":
        if self.frequency == AutopayFrequency.BIMONTHLY:
            if self.recurring_day_2 is None:
                raise ValueError("recurring_day_2 is required for bimonthly schedules")
        elif self.recurring_day_2 is not None:
            raise ValueError("recurring_day_2 is only allowed for bimonthly schedules")
        return self


class AutopayUpdate(BaseModel):
    """Partial edit. Changing the frequency or a recurring day recomputes the cut dates."""
    frequency: AutopayFrequency | None = None
    recurring_day: int | None = Field(None, ge=1, le=28)
    recurring_day_2: int | None = Field(None, ge=1, le=28)
    location_name: str | None = Field(None, max_length=128)
    location: str | None = Field(None, min_length=1, max_length=1024)
    parish: Parish | None = None
    lawn_size: LawnSize | None = None
    job_type: str | None = Field(None, max_length=128)
    additional_requirements: str | None = Field(None, max_length=4096)
    card_last_four: str | None = Field(None, pattern=r"^\d{4}$")
    card_name: str | None = Field(None, max_length=128)


class AutopayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    customer_id: uuid.UUID
    location_name: str | None
    enabled: bool
    frequency: str
    recurring_day: int
    recurring_day_2: int | None
    next_scheduled_date: date | None
    next_scheduled_date_2: date | None
    location: str
    parish: str
    lawn_size: str
    job_type: str | None
    additional_requirements: str | None
    card_last_four: str | None
    card_name: str | None
    created_at: datetime

    @field_validator("frequency", "parish", "lawn_size", mode="before")
    @classmethod
    def serialize_enum(cls, v: object) -> object:
        if hasattr(v, "value"):
            return v.value
        return v
