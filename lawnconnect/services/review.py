"""Reviews and the review gate.

Once a job completes, each party owes the other a review. A customer with
outstanding reviews cannot post new work (one-off jobs, checkout or
autopay schedules) until they are settled. Outstanding provider-side
reviews are listed but never block anything.
"""

import uuid
from decimal import Decimal

from fastapi import Depends, HTTPException
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.auth.identity import AuthenticatedUser, verify_request
from lawnconnect.database import get_db
from lawnconnect.models.job import JobRequest, JobStatus
from lawnconnect.models.review import Review
from lawnconnect.schemas.review import PendingReview, ReviewCreate
from lawnconnect.services.notifications import Notification, NotificationType, notify


async def submit_review(
    db: AsyncSession,
    job_id: uuid.UUID,
    reviewer_id: uuid.UUID,
    data: ReviewCreate,
) -> Review:
    """Submit a review for a completed job. Each party can review the other once."""
    result = await db.execute(select(JobRequest).where(JobRequest.id == job_id))
    job = result.scalar_one_or_none()
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    if reviewer_id == job.customer_id:
        reviewee_id = job.accepted_provider_id
    elif job.accepted_provider_id is not None and reviewer_id == job.accepted_provider_id:
        reviewee_id = job.customer_id
    else:
        raise HTTPException(status_code=403, detail="Only parties to the job can leave reviews")

    if job.status != JobStatus.COMPLETED or reviewee_id is None:
        raise HTTPException(status_code=409, detail="Can only review completed jobs")

    existing = await db.execute(
        select(Review).where(
            Review.job_id == job_id,
            Review.reviewer_id == reviewer_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="You have already reviewed this job")

    review = Review(
        id=uuid.uuid4(),
        job_id=job_id,
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        rating=data.rating,
        comment=data.comment,
    )
    db.add(review)
    await db.commit()
    await db.refresh(review)

    notify(Notification(
        type=NotificationType.REVIEW_RECEIVED,
        recipient_id=reviewee_id,
        job_id=job_id,
        job_title=job.title,
        additional_data={"rating": data.rating},
    ))
    return review


async def get_pending_reviews(db: AsyncSession, user_id: uuid.UUID) -> list[PendingReview]:
    """Completed jobs the user took part in but has not reviewed yet."""
    reviewed = (
        select(Review.id)
        .where(Review.job_id == JobRequest.id, Review.reviewer_id == user_id)
        .exists()
    )
    result = await db.execute(
        select(JobRequest)
        .where(
            JobRequest.status == JobStatus.COMPLETED,
            JobRequest.accepted_provider_id.is_not(None),
            or_(
                JobRequest.customer_id == user_id,
                JobRequest.accepted_provider_id == user_id,
            ),
            ~reviewed,
        )
        .order_by(JobRequest.completed_at)
    )
    pending = []
    for job in result.scalars().all():
        is_customer = job.customer_id == user_id
        pending.append(PendingReview(
            job_id=job.id,
            job_title=job.title,
            completed_at=job.completed_at,
            reviewee_id=job.accepted_provider_id if is_customer else job.customer_id,
            is_customer=is_customer,
        ))
    return pending


async def has_pending_customer_reviews(db: AsyncSession, customer_id: uuid.UUID) -> bool:
    reviewed = (
        select(Review.id)
        .where(Review.job_id == JobRequest.id, Review.reviewer_id == customer_id)
        .exists()
    )
    result = await db.execute(
        select(func.count(JobRequest.id)).where(
            and_(
                JobRequest.status == JobStatus.COMPLETED,
                JobRequest.customer_id == customer_id,
                JobRequest.accepted_provider_id.is_not(None),
                ~reviewed,
            )
        )
    )
    return result.scalar_one() > 0


async def require_reviews_settled(
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedUser:
    """Dependency: block customer flows while the customer owes reviews."""
    if await has_pending_customer_reviews(db, auth.user_id):
        raise HTTPException(
            status_code=409,
            detail="Please review your completed jobs before booking new service",
        )
    return auth


async def get_reviews_for_user(
    db: AsyncSession, user_id: uuid.UUID, limit: int = 20, offset: int = 0
) -> list[Review]:
    """Get reviews where the user is the reviewee."""
    result = await db.execute(
        select(Review)
        .where(Review.reviewee_id == user_id)
        .order_by(Review.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def get_rating_summary(db: AsyncSession, user_id: uuid.UUID) -> dict:
    result = await db.execute(
        select(func.count(Review.id), func.avg(Review.rating)).where(Review.reviewee_id == user_id)
    )
    count, average = result.one()
    return {
        "user_id": str(user_id),
        "review_count": int(count),
        "average_rating": (
            str(Decimal(str(average)).quantize(Decimal("0.01"))) if average is not None else None
        ),
    }


async def get_reviews_for_job(db: AsyncSession, job_id: uuid.UUID) -> list[Review]:
    """Get all reviews for a job."""
    result = await db.execute(
        select(Review).where(Review.job_id == job_id).order_by(Review.created_at)
    )
    return list(result.scalars().all())
