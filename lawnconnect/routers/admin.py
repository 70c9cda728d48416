"""Admin review endpoints: verifications, banking, disputes, refunds."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.auth.identity import AuthenticatedUser, require_admin
from lawnconnect.database import get_db
from lawnconnect.models.dispute import DisputeStatus, RefundStatus
from lawnconnect.schemas.dispute import DisputeResolve, DisputeResponse, RefundResponse, RefundReview
from lawnconnect.schemas.verification import (
    BankingResponse,
    BankingReview,
    VerificationResponse,
    VerificationReview,
)
from lawnconnect.services import dispute as dispute_service
from lawnconnect.services import eligibility as eligibility_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/providers/{provider_id}/verification", response_model=VerificationResponse)
async def review_verification(
    provider_id: uuid.UUID,
    data: VerificationReview,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> VerificationResponse:
    verification = await eligibility_service.review_verification(
        db, provider_id, admin.user_id, data.outcome == "approved", data.rejection_reason,
    )
    return VerificationResponse.from_model(verification)


@router.post("/providers/{provider_id}/banking", response_model=BankingResponse)
async def review_banking(
    provider_id: uuid.UUID,
    data: BankingReview,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> BankingResponse:
    banking = await eligibility_service.review_banking_details(
        db, provider_id, admin.user_id, data.outcome == "verified", data.admin_notes,
    )
    return BankingResponse.from_model(banking)


@router.get("/disputes", response_model=list[DisputeResponse])
async def list_disputes(
    status: DisputeStatus | None = None,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[DisputeResponse]:
    disputes = await dispute_service.list_disputes(db, status)
    return [DisputeResponse.model_validate(d) for d in disputes]


@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute(
    dispute_id: uuid.UUID,
    data: DisputeResolve,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> DisputeResponse:
    dispute = await dispute_service.resolve_dispute(
        db, dispute_id, admin.user_id, data.outcome == "approved", data.admin_notes, data.refund,
    )
    return DisputeResponse.model_validate(dispute)


@router.get("/refunds", response_model=list[RefundResponse])
async def list_refunds(
    status: RefundStatus | None = None,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[RefundResponse]:
    refunds = await dispute_service.list_refund_requests(db, status)
    return [RefundResponse.model_validate(r) for r in refunds]


@router.post("/refunds/{refund_id}/review", response_model=RefundResponse)
async def review_refund(
    refund_id: uuid.UUID,
    data: RefundReview,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> RefundResponse:
    refund = await dispute_service.review_refund(
        db, refund_id, admin.user_id, data.outcome == "approved", data.admin_notes,
    )
    return RefundResponse.model_validate(refund)
