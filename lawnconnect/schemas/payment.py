"""Payment reconciliation schemas."""

import uuid

from pydantic import BaseModel, Field


class PaymentReferenceSubmit(BaseModel):
    """Reference number of a manual bank transfer (e.g. Lynk)."""
    payment_reference: str = Field(..., min_length=3, max_length=256)


class GatewayResult(BaseModel):
    """Webhook body posted by the hosted payment gateway."""
    job_id: uuid.UUID
    success: bool
    transaction_reference: str | None = Field(None, max_length=256)


class GatewayResultResponse(BaseModel):
    job_id: uuid.UUID
    outcome: str  # "processed" | "already_processed"
    payment_status: str


class PaymentVerification(BaseModel):
    job_id: uuid.UUID
    outcome: str  # "paid" | "failed" | "timed_out"
    payment_status: str
    attempts: int
