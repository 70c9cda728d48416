"""Provider payout batching.

Runs at most once per ``payout_interval_days``. Each run pays every
provider for their completed jobs that no earlier payout has covered. The
set of already-paid jobs is rebuilt from the full payout history on every
run, and the ``provider_payout_jobs`` primary key rejects a job id that a
concurrent run managed to pay first.
"""

import logging
import uuid
from collections import defaultdict
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.config import settings
from lawnconnect.models.job import JobRequest, JobStatus
from lawnconnect.models.payout import ProviderPayout, ProviderPayoutJob
from lawnconnect.models.profile import Profile
from lawnconnect.schemas.cron import PayoutDetail, PayoutRunResult
from lawnconnect.services.email import send_payout_email
from lawnconnect.services.notifications import fire_and_forget

logger = logging.getLogger(__name__)


def job_payout_amount(job: JobRequest) -> Decimal:
    """Provider's share of a job, falling back to the full price on legacy rows."""
    for amount in (job.provider_payout, job.final_price, job.base_price):
        if amount is not None:
            return amount
    return Decimal("0.00")


async def _last_payout_date(db: AsyncSession) -> datetime | None:
    result = await db.execute(select(func.max(ProviderPayout.payout_date)))
    return result.scalar_one_or_none()


async def _paid_job_ids(db: AsyncSession) -> set[uuid.UUID]:
    result = await db.execute(select(ProviderPayout.job_ids))
    paid: set[uuid.UUID] = set()
    for job_ids in result.scalars().all():
        paid.update(job_ids or [])
    return paid


async def _unpaid_jobs_by_provider(
    db: AsyncSession, paid: set[uuid.UUID]
) -> dict[uuid.UUID, list[tuple[uuid.UUID, Decimal]]]:
    result = await db.execute(
        select(JobRequest).where(
            JobRequest.status == JobStatus.COMPLETED,
            JobRequest.accepted_provider_id.is_not(None),
            JobRequest.completed_at.is_not(None),
        )
    )
    grouped: dict[uuid.UUID, list[tuple[uuid.UUID, Decimal]]] = defaultdict(list)
    for job in result.scalars().all():
        if job.id in paid:
            continue
        grouped[job.accepted_provider_id].append((job.id, job_payout_amount(job)))
    return grouped


async def run_provider_payouts(db: AsyncSession, now: datetime | None = None) -> PayoutRunResult:
    """Create one payout row per provider with unpaid completed jobs."""
    now = now or datetime.now(UTC)

    last = await _last_payout_date(db)
    if last is not None:
        days_since = (now - last).days
        if days_since < settings.payout_interval_days:
            message = (
                f"Last payout was {days_since} days ago. "
                f"Next payout in {settings.payout_interval_days - days_since} days."
            )
            logger.info("Payout run skipped: %s", message)
            return PayoutRunResult(skipped=True, message=message)

    paid = await _paid_job_ids(db)
    grouped = await _unpaid_jobs_by_provider(db, paid)

    results: list[PayoutDetail] = []
    total_paid = Decimal("0.00")
    for provider_id in sorted(grouped, key=str):
        jobs = grouped[provider_id]
        amount = sum((a for _, a in jobs), Decimal("0.00"))
        if amount <= 0:
            continue
        job_ids = [job_id for job_id, _ in jobs]

        payout_id = uuid.uuid4()
        try:
            db.add(ProviderPayout(
                id=payout_id,
                provider_id=provider_id,
                amount=amount,
                jobs_count=len(job_ids),
                job_ids=job_ids,
                payout_date=now,
            ))
            await db.flush()
            db.add_all([ProviderPayoutJob(job_id=j, payout_id=payout_id) for j in job_ids])
            await db.commit()
        except Exception as exc:
            logger.exception("Payout failed for provider %s", provider_id)
            await db.rollback()
            results.append(PayoutDetail(
                provider_id=provider_id, status="failed", jobs_count=len(job_ids), error=str(exc),
            ))
            continue

        total_paid += amount
        results.append(PayoutDetail(
            provider_id=provider_id, status="paid", amount=amount,
            jobs_count=len(job_ids), payout_id=payout_id,
        ))
        logger.info("Paid provider %s J$%s for %d jobs", provider_id, amount, len(job_ids))

        provider = await db.get(Profile, provider_id)
        if provider is not None and provider.email:
            fire_and_forget(
                send_payout_email(provider.email, provider.full_name, amount, len(job_ids)),
                f"payout email for provider {provider_id}",
            )

    return PayoutRunResult(skipped=False, total_paid=total_paid, results=results)


async def list_payouts(db: AsyncSession, provider_id: uuid.UUID) -> list[ProviderPayout]:
    result = await db.execute(
        select(ProviderPayout)
        .where(ProviderPayout.provider_id == provider_id)
        .order_by(ProviderPayout.payout_date.desc())
    )
    return list(result.scalars().all())
