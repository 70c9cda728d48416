"""Dispute and refund schemas."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DisputeCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=4096)


class DisputeResolve(BaseModel):
    outcome: Literal["approved", "rejected"]
    admin_notes: str | None = Field(None, max_length=4096)
    refund: bool = False


class RefundCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=4096)


class RefundReview(BaseModel):
    outcome: Literal["approved", "rejected"]
    admin_notes: str | None = Field(None, max_length=4096)


class DisputeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    job_id: uuid.UUID
    customer_id: uuid.UUID
    provider_id: uuid.UUID
    reason: str
    status: str
    admin_notes: str | None
    resolved_at: datetime | None
    created_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def serialize_status(cls, v: object) -> object:
        return v.value if hasattr(v, "value") else v


class RefundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    job_id: uuid.UUID
    customer_id: uuid.UUID
    reason: str
    status: str
    admin_notes: str | None
    reviewed_at: datetime | None
    created_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def serialize_status(cls, v: object) -> object:
        return v.value if hasattr(v, "value") else v
