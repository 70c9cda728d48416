"""Job lifecycle business logic.

Every status change is a conditional UPDATE guarded on the expected current
state. When the guard matches no row the job is re-read: a missing job is a
404, a job that moved on is a 409. Two callers racing on the same transition
therefore get exactly one winner.
"""

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.models.dispute import RefundRequest
from lawnconnect.models.job import (
    VALID_TRANSITIONS,
    JobProposal,
    JobRequest,
    JobStatus,
    PaymentStatus,
    ProposalStatus,
)
from lawnconnect.schemas.job import JobCreate
from lawnconnect.services.eligibility import assert_can_accept_jobs
from lawnconnect.services.notifications import Notification, NotificationType, notify
from lawnconnect.services.pricing import base_price_for, split_price

logger = logging.getLogger(__name__)

TAKEN_MESSAGE = "This job has already been taken by another provider"


def _assert_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise 409 if the state transition is not valid."""
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise HTTPException(
            status_code=409,
            detail=f"Cannot transition from {current.value} to {target.value}",
        )


def _assert_party(job: JobRequest, user_id: uuid.UUID, allowed: str = "both") -> None:
    """Ensure user is a party to the job. allowed: 'customer', 'provider', 'both'."""
    is_customer = job.customer_id == user_id
    is_provider = job.accepted_provider_id is not None and job.accepted_provider_id == user_id
    if allowed == "customer" and not is_customer:
        raise HTTPException(status_code=403, detail="Only the customer can perform this action")
    if allowed == "provider" and not is_provider:
        raise HTTPException(status_code=403, detail="Only the assigned provider can perform this action")
    if allowed == "both" and not (is_customer or is_provider):
        raise HTTPException(status_code=403, detail="Not a party to this job")


async def _get_job(db: AsyncSession, job_id: uuid.UUID) -> JobRequest:
    result = await db.execute(
        select(JobRequest)
        .where(JobRequest.id == job_id)
        .execution_options(populate_existing=True)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


async def conditional_update(
    db: AsyncSession,
    job_id: uuid.UUID,
    guards: list[Any],
    values: dict[str, Any],
) -> bool:
    """UPDATE the job only if every guard still holds. Returns True if a row changed."""
    result = await db.execute(
        update(JobRequest)
        .where(JobRequest.id == job_id, *guards)
        .values(**values, updated_at=datetime.now(UTC))
        .returning(JobRequest.id)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none() is not None


async def _transition(
    db: AsyncSession,
    job: JobRequest,
    target: JobStatus,
    values: dict[str, Any] | None = None,
    guards: list[Any] | None = None,
    conflict_detail: str | None = None,
) -> JobRequest:
    """Move job from its observed status to target, or raise 404/409."""
    expected = job.status
    _assert_transition(expected, target)
    changed = await conditional_update(
        db,
        job.id,
        [JobRequest.status == expected, *(guards or [])],
        {"status": target, **(values or {})},
    )
    if not changed:
        current = await _get_job(db, job.id)
        raise HTTPException(
            status_code=409,
            detail=conflict_detail or f"Job is {current.status.value}, expected {expected.value}",
        )
    return job


async def create_job(db: AsyncSession, customer_id: uuid.UUID, data: JobCreate) -> JobRequest:
    """Customer posts a new open job. Payment starts pending."""
    base_price = base_price_for(data.lawn_size)
    if data.customer_offer is not None and data.customer_offer < base_price:
        raise HTTPException(
            status_code=422,
            detail=f"Offer must be at least the base price of J${base_price:,.2f}",
        )
    split = split_price(data.customer_offer or base_price)

    job = JobRequest(
        id=uuid.uuid4(),
        customer_id=customer_id,
        title=data.title,
        description=data.description,
        location=data.location,
        parish=data.parish,
        lawn_size=data.lawn_size,
        additional_requirements=data.additional_requirements,
        preferred_date=data.preferred_date,
        preferred_time=data.preferred_time,
        base_price=base_price,
        customer_offer=data.customer_offer,
        final_price=split.final_price,
        platform_fee=split.platform_fee,
        provider_payout=split.provider_payout,
        status=JobStatus.OPEN,
        payment_status=PaymentStatus.PENDING,
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)
    logger.info("Job %s posted by %s at J$%s", job.id, customer_id, job.final_price)
    return job


async def revise_offer(
    db: AsyncSession, job_id: uuid.UUID, customer_id: uuid.UUID, offer: Decimal
) -> JobRequest:
    """Raise the offer on a job nobody has accepted yet."""
    job = await _get_job(db, job_id)
    _assert_party(job, customer_id, allowed="customer")
    if offer < job.base_price:
        raise HTTPException(
            status_code=422,
            detail=f"Offer must be at least the base price of J${job.base_price:,.2f}",
        )
    if job.status != JobStatus.OPEN:
        raise HTTPException(status_code=409, detail="The price is fixed once a provider accepts")

    split = split_price(offer)
    changed = await conditional_update(
        db,
        job_id,
        [JobRequest.status == JobStatus.OPEN, JobRequest.accepted_provider_id.is_(None)],
        {
            "customer_offer": offer,
            "final_price": split.final_price,
            "platform_fee": split.platform_fee,
            "provider_payout": split.provider_payout,
        },
    )
    if not changed:
        raise HTTPException(status_code=409, detail="The price is fixed once a provider accepts")
    await db.commit()
    return await _get_job(db, job_id)


async def _assign_provider(db: AsyncSession, job: JobRequest, provider_id: uuid.UUID) -> None:
    """open -> accepted, only if no provider got there first.

    The price triple is left as the last offer revision wrote it.
    """
    _assert_transition(job.status, JobStatus.ACCEPTED)
    changed = await conditional_update(
        db,
        job.id,
        [JobRequest.status == JobStatus.OPEN, JobRequest.accepted_provider_id.is_(None)],
        {
            "status": JobStatus.ACCEPTED,
            "accepted_provider_id": provider_id,
        },
    )
    if not changed:
        await _get_job(db, job.id)
        raise HTTPException(status_code=409, detail=TAKEN_MESSAGE)


async def accept_job(db: AsyncSession, job_id: uuid.UUID, provider_id: uuid.UUID) -> JobRequest:
    """Provider takes an open job directly."""
    job = await _get_job(db, job_id)
    if job.customer_id == provider_id:
        raise HTTPException(status_code=422, detail="Cannot accept your own job")
    if job.status != JobStatus.OPEN or job.accepted_provider_id is not None:
        raise HTTPException(status_code=409, detail=TAKEN_MESSAGE)
    await assert_can_accept_jobs(db, provider_id)

    await _assign_provider(db, job, provider_id)
    await db.execute(
        update(JobProposal)
        .where(JobProposal.job_id == job_id, JobProposal.status == ProposalStatus.PENDING)
        .values(status=ProposalStatus.REJECTED)
    )
    await db.commit()
    job = await _get_job(db, job_id)

    notify(Notification(
        type=NotificationType.JOB_CONFIRMED,
        recipient_id=job.customer_id,
        job_id=job.id,
        job_title=job.title,
        additional_data={"providerId": str(provider_id)},
    ))
    return job


async def submit_proposal(
    db: AsyncSession, job_id: uuid.UUID, provider_id: uuid.UUID, message: str | None
) -> JobProposal:
    """Provider offers to take an open job. Subject to the same hard gates as accepting."""
    job = await _get_job(db, job_id)
    if job.customer_id == provider_id:
        raise HTTPException(status_code=422, detail="Cannot propose on your own job")
    if job.status != JobStatus.OPEN:
        raise HTTPException(status_code=409, detail="Job is no longer open")
    await assert_can_accept_jobs(db, provider_id)

    proposal = JobProposal(
        id=uuid.uuid4(),
        job_id=job_id,
        provider_id=provider_id,
        message=message,
        status=ProposalStatus.PENDING,
    )
    db.add(proposal)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="You have already proposed on this job")
    await db.refresh(proposal)

    notify(Notification(
        type=NotificationType.PROPOSAL_RECEIVED,
        recipient_id=job.customer_id,
        job_id=job.id,
        job_title=job.title,
        additional_data={"proposalId": str(proposal.id), "providerId": str(provider_id)},
    ))
    return proposal


async def list_proposals(
    db: AsyncSession, job_id: uuid.UUID, user_id: uuid.UUID
) -> list[JobProposal]:
    """Customers see every proposal on their job, providers only their own."""
    job = await _get_job(db, job_id)
    query = select(JobProposal).where(JobProposal.job_id == job_id)
    if job.customer_id != user_id:
        query = query.where(JobProposal.provider_id == user_id)
    result = await db.execute(
        query.order_by(JobProposal.created_at).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def accept_proposal(
    db: AsyncSession, proposal_id: uuid.UUID, customer_id: uuid.UUID
) -> JobRequest:
    """Customer picks a proposal; its provider becomes the accepted provider."""
    result = await db.execute(select(JobProposal).where(JobProposal.id == proposal_id))
    proposal = result.scalar_one_or_none()
    if proposal is None:
        raise HTTPException(status_code=404, detail="Proposal not found")

    job = await _get_job(db, proposal.job_id)
    _assert_party(job, customer_id, allowed="customer")
    if proposal.status != ProposalStatus.PENDING:
        raise HTTPException(status_code=409, detail=f"Proposal is {proposal.status.value}")
    # Eligibility may have been revoked since the proposal was made
    await assert_can_accept_jobs(db, proposal.provider_id)

    await _assign_provider(db, job, proposal.provider_id)
    await db.execute(
        update(JobProposal)
        .where(JobProposal.id == proposal_id)
        .values(status=ProposalStatus.ACCEPTED)
    )
    await db.execute(
        update(JobProposal)
        .where(
            JobProposal.job_id == job.id,
            JobProposal.id != proposal_id,
            JobProposal.status == ProposalStatus.PENDING,
        )
        .values(status=ProposalStatus.REJECTED)
    )
    await db.commit()
    job = await _get_job(db, job.id)

    notify(Notification(
        type=NotificationType.PROPOSAL_ACCEPTED,
        recipient_id=proposal.provider_id,
        job_id=job.id,
        job_title=job.title,
    ))
    return job


async def start_job(db: AsyncSession, job_id: uuid.UUID, provider_id: uuid.UUID) -> JobRequest:
    """Provider begins work. Payment must be confirmed first."""
    job = await _get_job(db, job_id)
    _assert_party(job, provider_id, allowed="provider")
    if job.payment_status != PaymentStatus.PAID:
        raise HTTPException(status_code=409, detail="Payment must be confirmed before work starts")

    await _transition(
        db, job, JobStatus.IN_PROGRESS,
        guards=[JobRequest.payment_status == PaymentStatus.PAID],
    )
    await db.commit()
    return await _get_job(db, job_id)


async def mark_provider_complete(
    db: AsyncSession, job_id: uuid.UUID, provider_id: uuid.UUID, now: datetime | None = None
) -> JobRequest:
    """Provider reports the work done. Starts the customer's confirmation window."""
    now = now or datetime.now(UTC)
    job = await _get_job(db, job_id)
    _assert_party(job, provider_id, allowed="provider")
    await _transition(
        db, job, JobStatus.PENDING_COMPLETION,
        values={"provider_completed_at": now},
    )
    await db.commit()
    job = await _get_job(db, job_id)

    notify(Notification(
        type=NotificationType.JOB_COMPLETED,
        recipient_id=job.customer_id,
        job_id=job.id,
        job_title=job.title,
        additional_data={"awaitingConfirmation": True},
    ))
    return job


async def confirm_completion(
    db: AsyncSession, job_id: uuid.UUID, customer_id: uuid.UUID, now: datetime | None = None
) -> JobRequest:
    """Customer confirms the work. Applies the dispute-sensitive payout split."""
    from lawnconnect.services.completion import completion_split

    now = now or datetime.now(UTC)
    job = await _get_job(db, job_id)
    _assert_party(job, customer_id, allowed="customer")
    _assert_transition(job.status, JobStatus.COMPLETED)

    split = await completion_split(db, job, now)
    await _transition(
        db, job, JobStatus.COMPLETED,
        values={
            "completed_at": now,
            "platform_fee": split.platform_fee,
            "provider_payout": split.provider_payout,
        },
        guards=[JobRequest.completed_at.is_(None)],
    )
    await db.commit()
    job = await _get_job(db, job_id)

    if job.accepted_provider_id is not None:
        notify(Notification(
            type=NotificationType.PAYMENT_CONFIRMED,
            recipient_id=job.accepted_provider_id,
            job_id=job.id,
            job_title=job.title,
            additional_data={"amount": str(split.provider_payout)},
        ))
    return job


async def cancel_job(db: AsyncSession, job_id: uuid.UUID, customer_id: uuid.UUID) -> JobRequest:
    """Customer withdraws an open job nobody has accepted.

    A paid job keeps payment_status=paid; the money goes back through a
    refund request that an admin reviews.
    """
    job = await _get_job(db, job_id)
    _assert_party(job, customer_id, allowed="customer")
    if job.accepted_provider_id is not None:
        raise HTTPException(status_code=409, detail="A provider has already accepted this job")

    await _transition(
        db, job, JobStatus.CANCELLED,
        guards=[JobRequest.accepted_provider_id.is_(None)],
    )
    await db.execute(
        update(JobProposal)
        .where(JobProposal.job_id == job_id, JobProposal.status == ProposalStatus.PENDING)
        .values(status=ProposalStatus.REJECTED)
    )
    if job.payment_status == PaymentStatus.PAID:
        db.add(RefundRequest(
            id=uuid.uuid4(),
            job_id=job_id,
            customer_id=customer_id,
            reason="Job cancelled before a provider was assigned",
        ))
    await db.commit()
    return await _get_job(db, job_id)


async def get_job(
    db: AsyncSession, job_id: uuid.UUID, user_id: uuid.UUID, is_provider: bool = False
) -> JobRequest:
    """Get a job. Parties always see it; open jobs are browsable.

    A provider who is not a party must pass the acceptance checks to see
    an open job, the same gate that guards accepting it.
    """
    job = await _get_job(db, job_id)
    if user_id in (job.customer_id, job.accepted_provider_id):
        return job
    if job.status == JobStatus.OPEN:
        if is_provider:
            await assert_can_accept_jobs(db, user_id)
        return job
    _assert_party(job, user_id)
    return job


async def list_open_jobs(
    db: AsyncSession, parish: str | None = None, limit: int = 50, offset: int = 0
) -> list[JobRequest]:
    query = select(JobRequest).where(
        JobRequest.status == JobStatus.OPEN,
        JobRequest.accepted_provider_id.is_(None),
    )
    if parish is not None:
        query = query.where(JobRequest.parish == parish)
    result = await db.execute(
        query.order_by(JobRequest.created_at.desc()).limit(limit).offset(offset)
    )
    return list(result.scalars().all())


async def list_my_jobs(db: AsyncSession, user_id: uuid.UUID) -> list[JobRequest]:
    result = await db.execute(
        select(JobRequest)
        .where((JobRequest.customer_id == user_id) | (JobRequest.accepted_provider_id == user_id))
        .order_by(JobRequest.created_at.desc())
    )
    return list(result.scalars().all())
