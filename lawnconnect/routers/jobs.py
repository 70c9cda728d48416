"""Job lifecycle endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.auth.identity import AuthenticatedUser, verify_request
from lawnconnect.auth.rate_limit import check_rate_limit
from lawnconnect.database import get_db
from lawnconnect.models.job import Parish
from lawnconnect.schemas.dispute import DisputeCreate, DisputeResponse, RefundCreate, RefundResponse
from lawnconnect.schemas.job import (
    JobCreate,
    JobResponse,
    OfferUpdate,
    ProposalCreate,
    ProposalResponse,
)
from lawnconnect.services import dispute as dispute_service
from lawnconnect.services import job as job_service
from lawnconnect.services.eligibility import assert_can_accept_jobs
from lawnconnect.services.pricing import get_price_schedule
from lawnconnect.services.review import require_reviews_settled

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("/prices")
async def price_schedule() -> dict:
    """Current lawn-size prices and fee split."""
    return get_price_schedule()


@router.post("", response_model=JobResponse, status_code=201, dependencies=[Depends(check_rate_limit)])
async def create_job(
    data: JobCreate,
    auth: AuthenticatedUser = Depends(require_reviews_settled),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Customer posts a job. Blocked while the customer owes reviews."""
    job = await job_service.create_job(db, auth.user_id, data)
    return JobResponse.model_validate(job)


@router.get("", response_model=list[JobResponse], dependencies=[Depends(check_rate_limit)])
async def browse_open_jobs(
    parish: Parish | None = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> list[JobResponse]:
    """Open jobs available to providers. Providers must pass the acceptance checks."""
    if auth.profile.is_provider:
        await assert_can_accept_jobs(db, auth.user_id)
    jobs = await job_service.list_open_jobs(db, parish, limit, offset)
    return [JobResponse.model_validate(j) for j in jobs]


@router.get("/mine", response_model=list[JobResponse], dependencies=[Depends(check_rate_limit)])
async def my_jobs(
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> list[JobResponse]:
    jobs = await job_service.list_my_jobs(db, auth.user_id)
    return [JobResponse.model_validate(j) for j in jobs]


@router.get("/{job_id}", response_model=JobResponse, dependencies=[Depends(check_rate_limit)])
async def get_job(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Get job details. Open jobs are visible to everyone, others only to parties."""
    job = await job_service.get_job(db, job_id, auth.user_id, is_provider=auth.profile.is_provider)
    return JobResponse.model_validate(job)


@router.patch("/{job_id}/offer", response_model=JobResponse, dependencies=[Depends(check_rate_limit)])
async def revise_offer(
    job_id: uuid.UUID,
    data: OfferUpdate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    job = await job_service.revise_offer(db, job_id, auth.user_id, data.customer_offer)
    return JobResponse.model_validate(job)


@router.post("/{job_id}/accept", response_model=JobResponse, dependencies=[Depends(check_rate_limit)])
async def accept_job(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Provider takes an open job. Requires approved ID and verified banking."""
    job = await job_service.accept_job(db, job_id, auth.user_id)
    return JobResponse.model_validate(job)


@router.post(
    "/{job_id}/proposals",
    response_model=ProposalResponse,
    status_code=201,
    dependencies=[Depends(check_rate_limit)],
)
async def submit_proposal(
    job_id: uuid.UUID,
    data: ProposalCreate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> ProposalResponse:
    proposal = await job_service.submit_proposal(db, job_id, auth.user_id, data.message)
    return ProposalResponse.model_validate(proposal)


@router.get(
    "/{job_id}/proposals",
    response_model=list[ProposalResponse],
    dependencies=[Depends(check_rate_limit)],
)
async def list_proposals(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> list[ProposalResponse]:
    proposals = await job_service.list_proposals(db, job_id, auth.user_id)
    return [ProposalResponse.model_validate(p) for p in proposals]


@router.post("/{job_id}/start", response_model=JobResponse, dependencies=[Depends(check_rate_limit)])
async def start_job(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Provider begins work. Payment must be confirmed."""
    job = await job_service.start_job(db, job_id, auth.user_id)
    return JobResponse.model_validate(job)


@router.post("/{job_id}/complete", response_model=JobResponse, dependencies=[Depends(check_rate_limit)])
async def mark_complete(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Provider reports the work done."""
    job = await job_service.mark_provider_complete(db, job_id, auth.user_id)
    return JobResponse.model_validate(job)


@router.post("/{job_id}/confirm", response_model=JobResponse, dependencies=[Depends(check_rate_limit)])
async def confirm_completion(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Customer confirms the work."""
    job = await job_service.confirm_completion(db, job_id, auth.user_id)
    return JobResponse.model_validate(job)


@router.post("/{job_id}/cancel", response_model=JobResponse, dependencies=[Depends(check_rate_limit)])
async def cancel_job(
    job_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    job = await job_service.cancel_job(db, job_id, auth.user_id)
    return JobResponse.model_validate(job)


@router.post(
    "/{job_id}/dispute",
    response_model=DisputeResponse,
    status_code=201,
    dependencies=[Depends(check_rate_limit)],
)
async def file_dispute(
    job_id: uuid.UUID,
    data: DisputeCreate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> DisputeResponse:
    dispute = await dispute_service.file_dispute(db, job_id, auth.user_id, data.reason)
    return DisputeResponse.model_validate(dispute)


@router.post(
    "/{job_id}/refund-request",
    response_model=RefundResponse,
    status_code=201,
    dependencies=[Depends(check_rate_limit)],
)
async def request_refund(
    job_id: uuid.UUID,
    data: RefundCreate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> RefundResponse:
    refund = await dispute_service.request_refund(db, job_id, auth.user_id, data.reason)
    return RefundResponse.model_validate(refund)


proposals_router = APIRouter(prefix="/proposals", tags=["jobs"])


@proposals_router.post(
    "/{proposal_id}/accept", response_model=JobResponse, dependencies=[Depends(check_rate_limit)],
)
async def accept_proposal(
    proposal_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Customer accepts a provider's proposal."""
    job = await job_service.accept_proposal(db, proposal_id, auth.user_id)
    return JobResponse.model_validate(job)
