"""Pydantic v2 schemas for job lifecycle endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lawnconnect.models.job import LawnSize, Parish


def _enum_value(v: object) -> object:
    if hasattr(v, "value"):
        return v.value
    return v


class JobCreate(BaseModel):
    """Customer posts a job.

    ``customer_offer`` may raise the price above the lawn-size base price,
    never lower it. Omit it to pay the base price.
    """
    title: str = Field("Basic Grass Cutting", min_length=1, max_length=256)
    description: str | None = Field(None, max_length=4096)
    location: str = Field(..., min_length=1, max_length=1024)
    parish: Parish
    lawn_size: LawnSize | None = None
    additional_requirements: str | None = Field(None, max_length=4096)
    preferred_date: date | None = None
    preferred_time: str | None = Field(None, max_length=32)
    customer_offer: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Location is required")
        return v.strip()


class OfferUpdate(BaseModel):
    customer_offer: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    customer_id: uuid.UUID
    accepted_provider_id: uuid.UUID | None
    autopay_settings_id: uuid.UUID | None = None
    title: str
    description: str | None
    location: str
    parish: str
    lawn_size: str | None
    additional_requirements: str | None
    preferred_date: date | None
    preferred_time: str | None
    base_price: Decimal
    customer_offer: Decimal | None
    final_price: Decimal | None
    platform_fee: Decimal | None
    provider_payout: Decimal | None
    status: str
    payment_status: str
    payment_reference: str | None
    payment_confirmed_at: datetime | None
    provider_completed_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @field_validator("status", "payment_status", "parish", "lawn_size", mode="before")
    @classmethod
    def serialize_enum(cls, v: object) -> object:
        return _enum_value(v)


class CheckoutResponse(BaseModel):
    job: JobResponse
    payment_url: str


class ProposalCreate(BaseModel):
    message: str | None = Field(None, max_length=2048)


class ProposalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    job_id: uuid.UUID
    provider_id: uuid.UUID
    message: str | None
    status: str
    created_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def serialize_status(cls, v: object) -> object:
        return _enum_value(v)
