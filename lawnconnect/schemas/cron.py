"""Batch run results returned by the cron endpoints, and payout history."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class AutopayDetail(BaseModel):
    settings_id: uuid.UUID
    slot: int
    status: str  # "success" | "failed"
    job_id: uuid.UUID | None = None
    next_date: date | None = None
    error: str | None = None


class AutopayRunResult(BaseModel):
    target_date: date
    success: int
    failed: int
    details: list[AutopayDetail]


class CompletionDetail(BaseModel):
    job_id: uuid.UUID
    status: str  # "completed" | "skipped" | "failed"
    provider_payout: Decimal | None = None
    payout_percent: Decimal | None = None
    error: str | None = None


class CompletionRunResult(BaseModel):
    processed: int
    results: list[CompletionDetail]


class PayoutDetail(BaseModel):
    provider_id: uuid.UUID
    status: str  # "paid" | "failed"
    amount: Decimal | None = None
    jobs_count: int = 0
    payout_id: uuid.UUID | None = None
    error: str | None = None


class PayoutRunResult(BaseModel):
    skipped: bool
    message: str | None = None
    total_paid: Decimal = Decimal("0.00")
    results: list[PayoutDetail] = []


class PayoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    provider_id: uuid.UUID
    amount: Decimal
    jobs_count: int
    job_ids: list[uuid.UUID]
    payout_date: datetime
