"""Autopay: recurring schedules that post paid jobs ahead of each cut date.

A schedule has one cut date per month (monthly) or two (bimonthly). The
daily run looks ``autopay_lead_days`` ahead; every cut date landing exactly
on that target posts one job and moves forward one calendar month. Posting
the job and advancing the date commit together or not at all, and the
advance is conditional on the date still equalling the target, so a cut
fires at most once even with overlapping runs.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from dateutil.relativedelta import relativedelta
from fastapi import HTTPException
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.config import settings
from lawnconnect.models.autopay import AutopayFrequency, AutopaySettings
from lawnconnect.models.job import JobRequest, JobStatus, LawnSize, Parish, PaymentStatus
from lawnconnect.models.profile import Profile
from lawnconnect.schemas.autopay import AutopayCreate, AutopayUpdate
from lawnconnect.schemas.cron import AutopayDetail, AutopayRunResult
from lawnconnect.services.email import send_autopay_email
from lawnconnect.services.notifications import fire_and_forget
from lawnconnect.services.pricing import base_price_for, split_for_autopay

logger = logging.getLogger(__name__)

DEFAULT_JOB_TITLE = "Basic Grass Cutting"


def advance_one_month(fired: date, day: int) -> date:
    """Same day next month, or that month's last day if it is shorter."""
    return fired + relativedelta(months=1, day=day)


def first_cut_date(today: date, day: int) -> date:
    """Next date strictly after today falling on day (clamped to month end)."""
    candidate = today + relativedelta(day=day)
    if candidate <= today:
        candidate = today + relativedelta(months=1, day=day)
    return candidate


@dataclass
class _Slot:
    """Plain snapshot of one due cut, safe to use after a rollback."""
    settings_id: uuid.UUID
    slot: int
    customer_id: uuid.UUID
    recurring_day: int
    location: str
    parish: Parish
    lawn_size: LawnSize
    job_type: str | None
    additional_requirements: str | None


def _due_slots(schedule: AutopaySettings, target: date) -> list[_Slot]:
    candidates = [(1, schedule.next_scheduled_date, schedule.recurring_day)]
    if schedule.frequency == AutopayFrequency.BIMONTHLY:
        candidates.append((2, schedule.next_scheduled_date_2, schedule.recurring_day_2))
    return [
        _Slot(
            settings_id=schedule.id,
            slot=slot,
            customer_id=schedule.customer_id,
            recurring_day=day or target.day,
            location=schedule.location,
            parish=schedule.parish,
            lawn_size=schedule.lawn_size,
            job_type=schedule.job_type,
            additional_requirements=schedule.additional_requirements,
        )
        for slot, scheduled, day in candidates
        if scheduled == target
    ]


def _autopay_reference(now: datetime) -> str:
    return f"AUTOPAY-{int(now.timestamp() * 1000)}-{secrets.token_hex(4)}"


async def _fire_slot(
    db: AsyncSession, due: _Slot, target: date, now: datetime
) -> tuple[JobRequest, date] | None:
    """Advance the slot's date and post its job in one transaction.

    Returns None if another run already advanced the date.
    """
    column = (
        AutopaySettings.next_scheduled_date if due.slot == 1
        else AutopaySettings.next_scheduled_date_2
    )
    next_date = advance_one_month(target, due.recurring_day)
    result = await db.execute(
        update(AutopaySettings)
        .where(
            AutopaySettings.id == due.settings_id,
            AutopaySettings.enabled.is_(True),
            column == target,
        )
        .values({column.key: next_date, "updated_at": now})
        .returning(AutopaySettings.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        await db.rollback()
        return None

    base_price = base_price_for(due.lawn_size)
    split = split_for_autopay(base_price)
    job = JobRequest(
        id=uuid.uuid4(),
        customer_id=due.customer_id,
        autopay_settings_id=due.settings_id,
        title=due.job_type or DEFAULT_JOB_TITLE,
        description="Recurring lawn service (autopay)",
        location=due.location,
        parish=due.parish,
        lawn_size=due.lawn_size,
        additional_requirements=due.additional_requirements,
        preferred_date=target,
        base_price=base_price,
        customer_offer=base_price,
        final_price=split.final_price,
        platform_fee=split.platform_fee,
        provider_payout=split.provider_payout,
        status=JobStatus.OPEN,
        payment_status=PaymentStatus.PAID,
        payment_reference=_autopay_reference(now),
        payment_confirmed_at=now,
        payment_confirmed_by=due.customer_id,
    )
    db.add(job)
    await db.commit()
    return job, next_date


async def run_autopay(
    db: AsyncSession, today: date | None = None, now: datetime | None = None
) -> AutopayRunResult:
    """Post jobs for every cut date falling ``autopay_lead_days`` after today."""
    now = now or datetime.now(UTC)
    today = today or now.date()
    target = today + timedelta(days=settings.autopay_lead_days)

    result = await db.execute(
        select(AutopaySettings)
        .where(
            AutopaySettings.enabled.is_(True),
            or_(
                AutopaySettings.next_scheduled_date == target,
                AutopaySettings.next_scheduled_date_2 == target,
            ),
        )
        .order_by(AutopaySettings.created_at)
    )
    due_slots = [slot for schedule in result.scalars().all() for slot in _due_slots(schedule, target)]

    details: list[AutopayDetail] = []
    for due in due_slots:
        try:
            fired = await _fire_slot(db, due, target, now)
        except Exception as exc:
            logger.exception("Autopay failed for schedule %s slot %d", due.settings_id, due.slot)
            await db.rollback()
            details.append(AutopayDetail(
                settings_id=due.settings_id, slot=due.slot, status="failed", error=str(exc),
            ))
            continue

        if fired is None:
            logger.info("Autopay schedule %s slot %d already fired for %s", due.settings_id, due.slot, target)
            continue

        job, next_date = fired
        logger.info(
            "Autopay posted job %s for schedule %s slot %d (next %s)",
            job.id, due.settings_id, due.slot, next_date,
        )
        details.append(AutopayDetail(
            settings_id=due.settings_id, slot=due.slot, status="success",
            job_id=job.id, next_date=next_date,
        ))

        customer = await db.get(Profile, due.customer_id)
        if customer is not None and customer.email:
            fire_and_forget(
                send_autopay_email(
                    customer.email, customer.full_name, due.location,
                    target.isoformat(), job.final_price,
                ),
                f"autopay email for job {job.id}",
            )

    success = sum(1 for d in details if d.status == "success")
    return AutopayRunResult(
        target_date=target,
        success=success,
        failed=len(details) - success,
        details=details,
    )


# ---------------------------------------------------------------------------
# Schedule management
# ---------------------------------------------------------------------------

async def _get_settings(
    db: AsyncSession, settings_id: uuid.UUID, customer_id: uuid.UUID
) -> AutopaySettings:
    result = await db.execute(
        select(AutopaySettings)
        .where(AutopaySettings.id == settings_id)
        .execution_options(populate_existing=True)
    )
    schedule = result.scalar_one_or_none()
    if schedule is None:
        raise HTTPException(status_code=404, detail="Autopay schedule not found")
    if schedule.customer_id != customer_id:
        raise HTTPException(status_code=403, detail="Not your autopay schedule")
    return schedule


async def create_autopay_settings(
    db: AsyncSession, customer_id: uuid.UUID, data: AutopayCreate, today: date | None = None
) -> AutopaySettings:
    today = today or datetime.now(UTC).date()
    bimonthly = data.frequency == AutopayFrequency.BIMONTHLY
    schedule = AutopaySettings(
        id=uuid.uuid4(),
        customer_id=customer_id,
        location_name=data.location_name,
        enabled=True,
        frequency=data.frequency,
        recurring_day=data.recurring_day,
        recurring_day_2=data.recurring_day_2 if bimonthly else None,
        next_scheduled_date=first_cut_date(today, data.recurring_day),
        next_scheduled_date_2=(
            first_cut_date(today, data.recurring_day_2)
            if bimonthly and data.recurring_day_2 else None
        ),
        location=data.location,
        parish=data.parish,
        lawn_size=data.lawn_size,
        job_type=data.job_type,
        additional_requirements=data.additional_requirements,
        card_last_four=data.card_last_four,
        card_name=data.card_name,
    )
    db.add(schedule)
    await db.commit()
    await db.refresh(schedule)
    logger.info("Autopay schedule %s created for %s", schedule.id, customer_id)
    return schedule


_REQUIRED_FIELDS = ("frequency", "recurring_day", "location", "parish", "lawn_size")
_TIMING_FIELDS = ("frequency", "recurring_day", "recurring_day_2")


async def update_autopay_settings(
    db: AsyncSession,
    settings_id: uuid.UUID,
    customer_id: uuid.UUID,
    data: AutopayUpdate,
    today: date | None = None,
) -> AutopaySettings:
    """Apply a partial edit. New timing restarts the cut dates from today."""
    today = today or datetime.now(UTC).date()
    schedule = await _get_settings(db, settings_id, customer_id)
    changes = data.model_dump(exclude_unset=True)
    for field in _REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"{field} cannot be cleared")

    frequency = changes.get("frequency", schedule.frequency)
    day = changes.get("recurring_day", schedule.recurring_day)
    day_2 = changes.get("recurring_day_2", schedule.recurring_day_2)
    if frequency == AutopayFrequency.BIMONTHLY:
        if day_2 is None:
            raise HTTPException(
                status_code=422, detail="recurring_day_2 is required for bimonthly schedules",
            )
    else:
        if changes.get("recurring_day_2") is not None:
            raise HTTPException(
                status_code=422, detail="recurring_day_2 is only allowed for bimonthly schedules",
            )
        day_2 = None

    timing_changed = (
        frequency != schedule.frequency
        or day != schedule.recurring_day
        or day_2 != schedule.recurring_day_2
    )
    for field, value in changes.items():
        if field not in _TIMING_FIELDS:
            setattr(schedule, field, value)
    if timing_changed:
        schedule.frequency = frequency
        schedule.recurring_day = day
        schedule.recurring_day_2 = day_2
        schedule.next_scheduled_date = first_cut_date(today, day)
        schedule.next_scheduled_date_2 = first_cut_date(today, day_2) if day_2 else None
        logger.info(
            "Autopay schedule %s retimed: %s day %s/%s, next %s",
            settings_id, frequency.value, day, day_2, schedule.next_scheduled_date,
        )
    await db.commit()
    return await _get_settings(db, settings_id, customer_id)


async def set_autopay_enabled(
    db: AsyncSession,
    settings_id: uuid.UUID,
    customer_id: uuid.UUID,
    enabled: bool,
    today: date | None = None,
) -> AutopaySettings:
    """Pause or resume a schedule. Resuming recomputes cut dates from today."""
    today = today or datetime.now(UTC).date()
    schedule = await _get_settings(db, settings_id, customer_id)
    values: dict = {"enabled": enabled}
    if enabled and not schedule.enabled:
        values["next_scheduled_date"] = first_cut_date(today, schedule.recurring_day)
        if schedule.frequency == AutopayFrequency.BIMONTHLY and schedule.recurring_day_2:
            values["next_scheduled_date_2"] = first_cut_date(today, schedule.recurring_day_2)
    await db.execute(
        update(AutopaySettings)
        .where(AutopaySettings.id == settings_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return await _get_settings(db, settings_id, customer_id)


async def list_autopay_settings(db: AsyncSession, customer_id: uuid.UUID) -> list[AutopaySettings]:
    result = await db.execute(
        select(AutopaySettings)
        .where(AutopaySettings.customer_id == customer_id)
        .order_by(AutopaySettings.created_at)
    )
    return list(result.scalars().all())
