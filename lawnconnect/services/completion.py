"""Auto-completion sweeper.

A provider marks a job done, which starts the customer's confirmation
window. Jobs still awaiting confirmation once the grace period has passed
are completed on the customer's behalf, with the same dispute-sensitive
payout split the customer confirmation applies.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.config import settings
from lawnconnect.models.job import JobRequest, JobStatus
from lawnconnect.schemas.cron import CompletionDetail, CompletionRunResult
from lawnconnect.services.dispute import count_provider_disputes
from lawnconnect.services.job import conditional_update
from lawnconnect.services.notifications import Notification, NotificationType, notify
from lawnconnect.services.pricing import FeeSplit, split_for_completion

logger = logging.getLogger(__name__)


async def completion_split(db: AsyncSession, job: JobRequest, now: datetime) -> FeeSplit:
    """Fee split for completing job at now, based on the provider's disputes this month."""
    dispute_count = 0
    if job.accepted_provider_id is not None:
        dispute_count = await count_provider_disputes(db, job.accepted_provider_id, now)
    return split_for_completion(job.final_price or job.base_price, dispute_count)


async def find_overdue_jobs(db: AsyncSession, now: datetime) -> list[JobRequest]:
    cutoff = now - timedelta(hours=settings.auto_complete_grace_hours)
    result = await db.execute(
        select(JobRequest)
        .where(
            JobRequest.status == JobStatus.PENDING_COMPLETION,
            JobRequest.provider_completed_at.is_not(None),
            JobRequest.provider_completed_at < cutoff,
        )
        .order_by(JobRequest.provider_completed_at)
    )
    return list(result.scalars().all())


async def run_auto_completion(db: AsyncSession, now: datetime | None = None) -> CompletionRunResult:
    """Complete every job whose confirmation window has lapsed.

    Each job commits on its own; a failure on one job is logged and
    reported without affecting the rest. A job another caller completed
    first is reported as skipped.
    """
    now = now or datetime.now(UTC)
    jobs = await find_overdue_jobs(db, now)
    # Snapshot plain values; a rollback below expires ORM instances
    snapshots = [
        (job.id, job.title, job.customer_id, job.accepted_provider_id, job.final_price, job.base_price)
        for job in jobs
    ]
    results: list[CompletionDetail] = []

    for job_id, title, customer_id, provider_id, final_price, base_price in snapshots:
        try:
            dispute_count = 0
            if provider_id is not None:
                dispute_count = await count_provider_disputes(db, provider_id, now)
            split = split_for_completion(final_price or base_price, dispute_count)

            changed = await conditional_update(
                db,
                job_id,
                [
                    JobRequest.status == JobStatus.PENDING_COMPLETION,
                    JobRequest.completed_at.is_(None),
                ],
                {
                    "status": JobStatus.COMPLETED,
                    "completed_at": now,
                    "platform_fee": split.platform_fee,
                    "provider_payout": split.provider_payout,
                },
            )
            if not changed:
                await db.rollback()
                results.append(CompletionDetail(job_id=job_id, status="skipped"))
                continue
            await db.commit()
        except Exception as exc:
            logger.exception("Auto-completion failed for job %s", job_id)
            await db.rollback()
            results.append(CompletionDetail(job_id=job_id, status="failed", error=str(exc)))
            continue

        logger.info(
            "Auto-completed job %s (provider %s, %d disputes this month, payout %s)",
            job_id, provider_id, dispute_count, split.provider_payout,
        )
        results.append(CompletionDetail(
            job_id=job_id,
            status="completed",
            provider_payout=split.provider_payout,
            payout_percent=split.payout_percent,
        ))

        notify(Notification(
            type=NotificationType.JOB_COMPLETED,
            recipient_id=customer_id,
            job_id=job_id,
            job_title=title,
            additional_data={"autoCompleted": True},
        ))
        if provider_id is not None:
            notify(Notification(
                type=NotificationType.PAYMENT_CONFIRMED,
                recipient_id=provider_id,
                job_id=job_id,
                job_title=title,
                additional_data={"amount": str(split.provider_payout), "autoCompleted": True},
            ))

    processed = sum(1 for r in results if r.status == "completed")
    if results:
        logger.info("Auto-completion: %d of %d overdue jobs completed", processed, len(results))
    return CompletionRunResult(processed=processed, results=results)
