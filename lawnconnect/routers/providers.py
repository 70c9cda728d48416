"""Provider onboarding (eligibility, ID verification, banking details) and payout history."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.auth.identity import AuthenticatedUser, verify_request
from lawnconnect.auth.rate_limit import check_rate_limit
from lawnconnect.database import get_db
from lawnconnect.schemas.cron import PayoutResponse
from lawnconnect.schemas.verification import (
    BankingResponse,
    BankingSubmit,
    EligibilityResponse,
    VerificationResponse,
    VerificationSubmit,
)
from lawnconnect.services import eligibility as eligibility_service
from lawnconnect.services import payouts as payout_service

router = APIRouter(prefix="/me", tags=["providers"], dependencies=[Depends(check_rate_limit)])


@router.get("/eligibility", response_model=EligibilityResponse)
async def my_eligibility(
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> EligibilityResponse:
    """Hard gates plus the dismissible profile-completion prompt."""
    e = await eligibility_service.get_eligibility(db, auth.user_id)
    return EligibilityResponse(
        id_verified=e.id_verified,
        banking_verified=e.banking_verified,
        profile_complete=e.profile_complete,
        can_accept_jobs=e.can_accept_jobs,
        prompt_profile_completion=e.prompt_profile_completion,
    )


@router.post("/verification", response_model=VerificationResponse, status_code=201)
async def submit_verification(
    data: VerificationSubmit,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> VerificationResponse:
    verification = await eligibility_service.submit_verification(db, auth.user_id, data)
    return VerificationResponse.from_model(verification)


@router.get("/verification", response_model=VerificationResponse)
async def get_verification(
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> VerificationResponse:
    verification = await eligibility_service.get_verification(db, auth.user_id)
    return VerificationResponse.from_model(verification)


@router.put("/banking", response_model=BankingResponse)
async def submit_banking(
    data: BankingSubmit,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> BankingResponse:
    """Submit or replace banking details. Replacing sends them back to review."""
    banking = await eligibility_service.submit_banking_details(db, auth.user_id, data)
    return BankingResponse.from_model(banking)


@router.get("/banking", response_model=BankingResponse)
async def get_banking(
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> BankingResponse:
    banking = await eligibility_service.get_banking_details(db, auth.user_id)
    return BankingResponse.from_model(banking)


@router.get("/payouts", response_model=list[PayoutResponse])
async def my_payouts(
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> list[PayoutResponse]:
    payouts = await payout_service.list_payouts(db, auth.user_id)
    return [PayoutResponse.model_validate(p) for p in payouts]
