"""Review endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.auth.identity import AuthenticatedUser, verify_request
from lawnconnect.auth.rate_limit import check_rate_limit
from lawnconnect.database import get_db
from lawnconnect.schemas.review import PendingReview, ReviewCreate, ReviewResponse
from lawnconnect.services import review as review_service

router = APIRouter(tags=["reviews"])


@router.post("/jobs/{job_id}/reviews", response_model=ReviewResponse, status_code=201)
async def submit_review(
    job_id: uuid.UUID,
    data: ReviewCreate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> ReviewResponse:
    """Submit a review for a completed job."""
    review = await review_service.submit_review(db, job_id, auth.user_id, data)
    return ReviewResponse.model_validate(review)


@router.get(
    "/reviews/pending",
    response_model=list[PendingReview],
    dependencies=[Depends(check_rate_limit)],
)
async def pending_reviews(
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> list[PendingReview]:
    """Completed jobs the caller still has to review."""
    return await review_service.get_pending_reviews(db, auth.user_id)


@router.get(
    "/users/{user_id}/reviews",
    response_model=list[ReviewResponse],
    dependencies=[Depends(check_rate_limit)],
)
async def get_user_reviews(
    user_id: uuid.UUID,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[ReviewResponse]:
    reviews = await review_service.get_reviews_for_user(db, user_id, limit, offset)
    return [ReviewResponse.model_validate(r) for r in reviews]


@router.get("/users/{user_id}/rating", dependencies=[Depends(check_rate_limit)])
async def get_user_rating(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await review_service.get_rating_summary(db, user_id)


@router.get(
    "/jobs/{job_id}/reviews",
    response_model=list[ReviewResponse],
    dependencies=[Depends(check_rate_limit)],
)
async def get_job_reviews(
    job_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> list[ReviewResponse]:
    """Get all reviews for a job."""
    reviews = await review_service.get_reviews_for_job(db, job_id)
    return [ReviewResponse.model_validate(r) for r in reviews]
