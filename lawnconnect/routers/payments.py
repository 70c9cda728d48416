"""Payment endpoints: hosted checkout, gateway webhook, manual reference, test payments."""

import uuid

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.auth.identity import AuthenticatedUser, verify_request
from lawnconnect.auth.rate_limit import check_rate_limit
from lawnconnect.database import get_db
from lawnconnect.schemas.job import CheckoutResponse, JobCreate, JobResponse
from lawnconnect.schemas.payment import (
    GatewayResult,
    GatewayResultResponse,
    PaymentReferenceSubmit,
    PaymentVerification,
)
from lawnconnect.services import payments as payment_service
from lawnconnect.services.review import require_reviews_settled

router = APIRouter(tags=["payments"])


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=201,
    dependencies=[Depends(check_rate_limit)],
)
async def checkout(
    data: JobCreate,
    return_url: str | None = None,
    auth: AuthenticatedUser = Depends(require_reviews_settled),
    db: AsyncSession = Depends(get_db),
) -> CheckoutResponse:
    """Post a job and get a hosted payment page for it."""
    job, payment_url = await payment_service.start_checkout(db, auth.profile, data, return_url)
    return CheckoutResponse(job=JobResponse.model_validate(job), payment_url=payment_url)


@router.post("/payments/webhook", response_model=GatewayResultResponse)
async def gateway_webhook(
    request: Request,
    x_timestamp: str | None = Header(default=None),
    x_signature: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> GatewayResultResponse:
    """Signed payment outcome from the hosted gateway. Replays are no-ops."""
    body = await request.body()
    payment_service.verify_webhook_signature(body, x_timestamp, x_signature)
    try:
        result = GatewayResult.model_validate_json(body)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail="Malformed gateway payload") from exc
    outcome, payment_status = await payment_service.apply_gateway_result(
        db, result.job_id, result.success, result.transaction_reference,
    )
    return GatewayResultResponse(
        job_id=result.job_id, outcome=outcome, payment_status=payment_status.value,
    )


@router.get(
    "/jobs/{job_id}/payment/verify",
    response_model=PaymentVerification,
    dependencies=[Depends(check_rate_limit)],
)
async def verify_payment(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> PaymentVerification:
    """Poll for the gateway outcome after returning from the payment page."""
    outcome, payment_status, attempts = await payment_service.verify_payment_return(
        db, job_id, auth.user_id,
    )
    return PaymentVerification(
        job_id=job_id, outcome=outcome, payment_status=payment_status.value, attempts=attempts,
    )


@router.post(
    "/jobs/{job_id}/payment/reference",
    response_model=JobResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def submit_reference(
    job_id: uuid.UUID,
    data: PaymentReferenceSubmit,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Customer reports a manual bank-transfer reference."""
    job = await payment_service.submit_payment_reference(db, job_id, auth.user_id, data.payment_reference)
    return JobResponse.model_validate(job)


@router.post(
    "/jobs/{job_id}/payment/confirm",
    response_model=JobResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def confirm_payment(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Provider confirms the manual transfer arrived."""
    job = await payment_service.confirm_manual_payment(db, job_id, auth.user_id)
    return JobResponse.model_validate(job)


@router.post(
    "/jobs/{job_id}/payment/test",
    response_model=JobResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def test_payment(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Simulated payment. Only available when test payments are enabled."""
    job = await payment_service.simulate_payment(db, job_id, auth.user_id)
    return JobResponse.model_validate(job)
