"""Disputes and refund requests.

Both branch off the completion end of the job chain and are settled by
admins. Settling one never moves the job back into the chain: the job
stays disputed or refund_requested, and money movement is recorded on the
refund request rather than by reverting payment_status.
"""

import logging
import uuid
from datetime import UTC, datetime

from dateutil.relativedelta import relativedelta
from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.models.dispute import DisputeStatus, JobDispute, RefundRequest, RefundStatus
from lawnconnect.models.job import JobStatus
from lawnconnect.services.job import _assert_party, _get_job, _transition
from lawnconnect.services.notifications import Notification, NotificationType, notify

logger = logging.getLogger(__name__)


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """[start, end) of the calendar month containing now, in now's timezone."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start, start + relativedelta(months=1)


async def count_provider_disputes(
    db: AsyncSession, provider_id: uuid.UUID, now: datetime
) -> int:
    """Disputes filed against provider_id during the calendar month of now."""
    start, end = month_bounds(now)
    result = await db.execute(
        select(func.count(JobDispute.id)).where(
            JobDispute.provider_id == provider_id,
            JobDispute.created_at >= start,
            JobDispute.created_at < end,
        )
    )
    return int(result.scalar_one())


async def file_dispute(
    db: AsyncSession,
    job_id: uuid.UUID,
    customer_id: uuid.UUID,
    reason: str,
    now: datetime | None = None,
) -> JobDispute:
    """Customer disputes a job awaiting confirmation or already completed."""
    now = now or datetime.now(UTC)
    job = await _get_job(db, job_id)
    _assert_party(job, customer_id, allowed="customer")
    if job.accepted_provider_id is None:
        raise HTTPException(status_code=409, detail="Job has no provider to dispute")

    await _transition(db, job, JobStatus.DISPUTED)
    dispute = JobDispute(
        id=uuid.uuid4(),
        job_id=job_id,
        customer_id=customer_id,
        provider_id=job.accepted_provider_id,
        reason=reason,
        status=DisputeStatus.OPEN,
        created_at=now,
    )
    db.add(dispute)
    await db.commit()
    await db.refresh(dispute)
    logger.info("Dispute %s opened on job %s", dispute.id, job_id)

    notify(Notification(
        type=NotificationType.DISPUTE_OPENED,
        recipient_id=dispute.provider_id,
        job_id=job_id,
        job_title=job.title,
        additional_data={"disputeId": str(dispute.id)},
    ))
    return dispute


async def resolve_dispute(
    db: AsyncSession,
    dispute_id: uuid.UUID,
    admin_id: uuid.UUID,
    approved: bool,
    admin_notes: str | None = None,
    refund: bool = False,
) -> JobDispute:
    """Admin settles an open dispute, optionally issuing a refund."""
    if refund and not approved:
        raise HTTPException(status_code=422, detail="Only an approved dispute can be refunded")

    now = datetime.now(UTC)
    result = await db.execute(
        update(JobDispute)
        .where(JobDispute.id == dispute_id, JobDispute.status == DisputeStatus.OPEN)
        .values(
            status=DisputeStatus.APPROVED if approved else DisputeStatus.REJECTED,
            admin_notes=admin_notes,
            resolved_by=admin_id,
            resolved_at=now,
        )
        .returning(JobDispute.job_id, JobDispute.customer_id)
        .execution_options(synchronize_session=False)
    )
    row = result.one_or_none()
    if row is None:
        existing = await db.get(JobDispute, dispute_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Dispute not found")
        raise HTTPException(status_code=409, detail=f"Dispute is already {existing.status.value}")

    if refund:
        db.add(RefundRequest(
            id=uuid.uuid4(),
            job_id=row.job_id,
            customer_id=row.customer_id,
            reason=f"Dispute {dispute_id} approved",
            status=RefundStatus.APPROVED,
            admin_notes=admin_notes,
            reviewed_by=admin_id,
            reviewed_at=now,
        ))
    await db.commit()
    logger.info(
        "Dispute %s on job %s %s by %s (refund=%s, notes=%r)",
        dispute_id, row.job_id, "approved" if approved else "rejected", admin_id, refund, admin_notes,
    )

    result = await db.execute(
        select(JobDispute)
        .where(JobDispute.id == dispute_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def request_refund(
    db: AsyncSession, job_id: uuid.UUID, customer_id: uuid.UUID, reason: str
) -> RefundRequest:
    job = await _get_job(db, job_id)
    _assert_party(job, customer_id, allowed="customer")
    await _transition(db, job, JobStatus.REFUND_REQUESTED)
    refund = RefundRequest(
        id=uuid.uuid4(),
        job_id=job_id,
        customer_id=customer_id,
        reason=reason,
        status=RefundStatus.PENDING,
    )
    db.add(refund)
    await db.commit()
    await db.refresh(refund)
    return refund


async def review_refund(
    db: AsyncSession,
    refund_id: uuid.UUID,
    admin_id: uuid.UUID,
    approved: bool,
    admin_notes: str | None = None,
) -> RefundRequest:
    result = await db.execute(
        update(RefundRequest)
        .where(RefundRequest.id == refund_id, RefundRequest.status == RefundStatus.PENDING)
        .values(
            status=RefundStatus.APPROVED if approved else RefundStatus.REJECTED,
            admin_notes=admin_notes,
            reviewed_by=admin_id,
            reviewed_at=datetime.now(UTC),
        )
        .returning(RefundRequest.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        existing = await db.get(RefundRequest, refund_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Refund request not found")
        raise HTTPException(status_code=409, detail=f"Refund request is already {existing.status.value}")
    await db.commit()

    result = await db.execute(
        select(RefundRequest)
        .where(RefundRequest.id == refund_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def list_disputes(
    db: AsyncSession, status: DisputeStatus | None = None
) -> list[JobDispute]:
    query = select(JobDispute)
    if status is not None:
        query = query.where(JobDispute.status == status)
    result = await db.execute(query.order_by(JobDispute.created_at.desc()))
    return list(result.scalars().all())


async def list_refund_requests(
    db: AsyncSession, status: RefundStatus | None = None
) -> list[RefundRequest]:
    query = select(RefundRequest)
    if status is not None:
        query = query.where(RefundRequest.status == status)
    result = await db.execute(query.order_by(RefundRequest.created_at.desc()))
    return list(result.scalars().all())


async def get_disputes_for_job(db: AsyncSession, job_id: uuid.UUID) -> list[JobDispute]:
    result = await db.execute(
        select(JobDispute).where(JobDispute.job_id == job_id).order_by(JobDispute.created_at)
    )
    return list(result.scalars().all())

