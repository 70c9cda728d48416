"""Tests for autopay scheduling: date arithmetic, firing, idempotency, schedule management."""

import uuid
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.models.autopay import AutopayFrequency, AutopaySettings
from lawnconnect.models.job import JobRequest, JobStatus, LawnSize, Parish, PaymentStatus
from lawnconnect.models.profile import Profile
from lawnconnect.schemas.autopay import AutopayCreate, AutopayUpdate
from lawnconnect.services.autopay import (
    advance_one_month,
    create_autopay_settings,
    first_cut_date,
    run_autopay,
    update_autopay_settings,
)
from tests.conftest import create_job, create_profile, make_auth_headers


async def _schedule(
    db: AsyncSession,
    customer: Profile,
    day: int,
    next_date: date,
    day_2: int | None = None,
    next_date_2: date | None = None,
    enabled: bool = True,
) -> AutopaySettings:
    schedule = AutopaySettings(
        id=uuid.uuid4(),
        customer_id=customer.id,
        location_name="Home",
        enabled=enabled,
        frequency=AutopayFrequency.BIMONTHLY if day_2 else AutopayFrequency.MONTHLY,
        recurring_day=day,
        recurring_day_2=day_2,
        next_scheduled_date=next_date,
        next_scheduled_date_2=next_date_2,
        location="5 Barbican Road",
        parish=Parish.ST_ANDREW,
        lawn_size=LawnSize.SMALL,
        job_type="Basic Grass Cutting",
    )
    db.add(schedule)
    await db.commit()
    return schedule


async def _jobs_for(db: AsyncSession, schedule: AutopaySettings) -> list[JobRequest]:
    result = await db.execute(
        select(JobRequest).where(JobRequest.autopay_settings_id == schedule.id)
    )
    return list(result.scalars().all())


async def _reload(db: AsyncSession, schedule: AutopaySettings) -> AutopaySettings:
    result = await db.execute(
        select(AutopaySettings)
        .where(AutopaySettings.id == schedule.id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


def _noon(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, 12, tzinfo=UTC)


# --- Date arithmetic ---

def test_advance_one_month_same_day() -> None:
    assert advance_one_month(date(2024, 6, 15), 15) == date(2024, 7, 15)
    assert advance_one_month(date(2024, 12, 15), 15) == date(2025, 1, 15)


def test_advance_one_month_clamps_to_month_end() -> None:
    assert advance_one_month(date(2024, 1, 31), 31) == date(2024, 2, 29)
    assert advance_one_month(date(2023, 1, 31), 31) == date(2023, 2, 28)
    assert advance_one_month(date(2024, 3, 31), 31) == date(2024, 4, 30)


def test_advance_one_month_recovers_day_after_short_month() -> None:
    # Clamped in February, back on the 31st in March
    assert advance_one_month(date(2024, 2, 29), 31) == date(2024, 3, 31)


def test_first_cut_date() -> None:
    assert first_cut_date(date(2024, 6, 13), 15) == date(2024, 6, 15)
    assert first_cut_date(date(2024, 6, 15), 15) == date(2024, 7, 15)
    assert first_cut_date(date(2024, 6, 20), 15) == date(2024, 7, 15)


# --- Firing ---

@pytest.mark.asyncio
async def test_autopay_fires_two_days_ahead(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _schedule(db_session, customer, 15, date(2024, 6, 15))

    result = await run_autopay(db_session, today=date(2024, 6, 13), now=_noon(date(2024, 6, 13)))

    assert result.target_date == date(2024, 6, 15)
    assert result.success == 1
    assert result.failed == 0
    assert result.details[0].next_date == date(2024, 7, 15)

    jobs = await _jobs_for(db_session, schedule)
    assert len(jobs) == 1
    job = jobs[0]
    assert job.status == JobStatus.OPEN
    assert job.payment_status == PaymentStatus.PAID
    assert job.accepted_provider_id is None
    assert job.preferred_date == date(2024, 6, 15)
    assert job.payment_reference.startswith("AUTOPAY-")
    assert job.final_price == Decimal("7000.00")
    assert job.platform_fee == Decimal("2100.00")
    assert job.provider_payout == Decimal("4900.00")
    assert job.location == "5 Barbican Road"

    schedule = await _reload(db_session, schedule)
    assert schedule.next_scheduled_date == date(2024, 7, 15)


@pytest.mark.asyncio
async def test_autopay_not_due_yet(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _schedule(db_session, customer, 15, date(2024, 6, 15))

    result = await run_autopay(db_session, today=date(2024, 6, 12), now=_noon(date(2024, 6, 12)))

    assert result.success == 0
    assert await _jobs_for(db_session, schedule) == []


@pytest.mark.asyncio
async def test_autopay_rerun_same_day_fires_once(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _schedule(db_session, customer, 15, date(2024, 6, 15))
    today = date(2024, 6, 13)

    first = await run_autopay(db_session, today=today, now=_noon(today))
    second = await run_autopay(db_session, today=today, now=_noon(today))

    assert first.success == 1
    assert second.success == 0
    assert len(await _jobs_for(db_session, schedule)) == 1


@pytest.mark.asyncio
async def test_autopay_month_end_clamp(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _schedule(db_session, customer, 31, date(2024, 1, 31))

    await run_autopay(db_session, today=date(2024, 1, 29), now=_noon(date(2024, 1, 29)))
    schedule = await _reload(db_session, schedule)
    assert schedule.next_scheduled_date == date(2024, 2, 29)

    await run_autopay(db_session, today=date(2024, 2, 27), now=_noon(date(2024, 2, 27)))
    schedule = await _reload(db_session, schedule)
    assert schedule.next_scheduled_date == date(2024, 3, 31)
    assert len(await _jobs_for(db_session, schedule)) == 2


@pytest.mark.asyncio
async def test_bimonthly_fires_each_slot(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _schedule(
        db_session, customer, 1, date(2024, 7, 1), day_2=15, next_date_2=date(2024, 6, 15),
    )

    result = await run_autopay(db_session, today=date(2024, 6, 13), now=_noon(date(2024, 6, 13)))
    assert result.success == 1
    assert result.details[0].slot == 2

    schedule = await _reload(db_session, schedule)
    assert schedule.next_scheduled_date == date(2024, 7, 1)
    assert schedule.next_scheduled_date_2 == date(2024, 7, 15)


@pytest.mark.asyncio
async def test_bimonthly_both_slots_same_day_fire_twice(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _schedule(
        db_session, customer, 15, date(2024, 6, 15), day_2=15, next_date_2=date(2024, 6, 15),
    )

    result = await run_autopay(db_session, today=date(2024, 6, 13), now=_noon(date(2024, 6, 13)))

    assert result.success == 2
    assert len(await _jobs_for(db_session, schedule)) == 2
    schedule = await _reload(db_session, schedule)
    assert schedule.next_scheduled_date == date(2024, 7, 15)
    assert schedule.next_scheduled_date_2 == date(2024, 7, 15)


@pytest.mark.asyncio
async def test_disabled_schedule_does_not_fire(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _schedule(db_session, customer, 15, date(2024, 6, 15), enabled=False)

    result = await run_autopay(db_session, today=date(2024, 6, 13), now=_noon(date(2024, 6, 13)))

    assert result.success == 0
    assert await _jobs_for(db_session, schedule) == []
    schedule = await _reload(db_session, schedule)
    assert schedule.next_scheduled_date == date(2024, 6, 15)


# --- Schedule management ---

def _autopay_payload(**overrides) -> dict:
    data = {
        "location_name": "Home",
        "frequency": "monthly",
        "recurring_day": 15,
        "location": "5 Barbican Road",
        "parish": "St. Andrew",
        "lawn_size": "large",
        "card_last_four": "4242",
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_create_schedule(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    resp = await client.post(
        "/autopay", json=_autopay_payload(), headers=make_auth_headers(customer.id),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["enabled"] is True
    assert body["frequency"] == "monthly"
    assert body["next_scheduled_date"] is not None
    assert body["next_scheduled_date_2"] is None
    assert body["card_last_four"] == "4242"


@pytest.mark.asyncio
async def test_create_bimonthly_requires_second_day(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    headers = make_auth_headers(customer.id)

    resp = await client.post("/autopay", json=_autopay_payload(frequency="bimonthly"), headers=headers)
    assert resp.status_code == 422

    resp = await client.post(
        "/autopay", json=_autopay_payload(frequency="bimonthly", recurring_day_2=1), headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["next_scheduled_date_2"] is not None


@pytest.mark.asyncio
async def test_create_rejects_day_past_28(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    resp = await client.post(
        "/autopay", json=_autopay_payload(recurring_day=31), headers=make_auth_headers(customer.id),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_blocked_by_pending_reviews(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    provider = await create_profile(db_session)
    await create_job(
        db_session, customer, provider,
        status=JobStatus.COMPLETED, payment_status=PaymentStatus.PAID,
        completed_at=datetime.now(UTC),
    )
    resp = await client.post(
        "/autopay", json=_autopay_payload(), headers=make_auth_headers(customer.id),
    )
    assert resp.status_code == 409
    assert "review" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_disable_and_enable(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    headers = make_auth_headers(customer.id)
    resp = await client.post("/autopay", json=_autopay_payload(), headers=headers)
    settings_id = resp.json()["id"]

    resp = await client.post(f"/autopay/{settings_id}/disable", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["enabled"] is False

    resp = await client.post(f"/autopay/{settings_id}/enable", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["enabled"] is True
    assert resp.json()["next_scheduled_date"] is not None

    resp = await client.get("/autopay", headers=headers)
    assert len(resp.json()) == 1


@pytest.mark.asyncio
async def test_other_customer_cannot_touch_schedule(client: AsyncClient, db_session: AsyncSession) -> None:
    owner = await create_profile(db_session)
    other = await create_profile(db_session)
    resp = await client.post("/autopay", json=_autopay_payload(), headers=make_auth_headers(owner.id))
    settings_id = resp.json()["id"]

    resp = await client.post(f"/autopay/{settings_id}/disable", headers=make_auth_headers(other.id))
    assert resp.status_code == 403

    resp = await client.patch(
        f"/autopay/{uuid.uuid4()}", json={"location": "x"}, headers=make_auth_headers(owner.id),
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_template(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    headers = make_auth_headers(customer.id)
    resp = await client.post("/autopay", json=_autopay_payload(), headers=headers)
    settings_id = resp.json()["id"]

    resp = await client.patch(
        f"/autopay/{settings_id}", json={"lawn_size": "xlarge", "job_type": "Hedge trim"}, headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["lawn_size"] == "xlarge"
    assert resp.json()["job_type"] == "Hedge trim"

    resp = await client.patch(f"/autopay/{settings_id}", json={"parish": None}, headers=headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_bimonthly_with_equal_days_fires_twice(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    resp = await client.post(
        "/autopay",
        json=_autopay_payload(frequency="bimonthly", recurring_day=1, recurring_day_2=1),
        headers=make_auth_headers(customer.id),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["recurring_day_2"] == 1
    assert body["next_scheduled_date"] == body["next_scheduled_date_2"]

    cut = date.fromisoformat(body["next_scheduled_date"])
    today = cut - timedelta(days=2)
    result = await run_autopay(db_session, today=today, now=_noon(today))

    assert result.success == 2
    assert {d.slot for d in result.details} == {1, 2}
    schedule = await db_session.get(AutopaySettings, uuid.UUID(body["id"]), populate_existing=True)
    assert len(await _jobs_for(db_session, schedule)) == 2
    assert schedule.next_scheduled_date == schedule.next_scheduled_date_2 == advance_one_month(cut, 1)


async def _created(db: AsyncSession, customer: Profile, **overrides) -> AutopaySettings:
    return await create_autopay_settings(
        db, customer.id, AutopayCreate(**_autopay_payload(**overrides)), today=date(2024, 6, 13),
    )


@pytest.mark.asyncio
async def test_update_recurring_day_recomputes_cut_date(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _created(db_session, customer)
    assert schedule.next_scheduled_date == date(2024, 6, 15)

    schedule = await update_autopay_settings(
        db_session, schedule.id, customer.id, AutopayUpdate(recurring_day=10), today=date(2024, 6, 13),
    )
    assert schedule.recurring_day == 10
    assert schedule.next_scheduled_date == date(2024, 7, 10)


@pytest.mark.asyncio
async def test_update_frequency_to_bimonthly_and_back(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _created(db_session, customer)

    schedule = await update_autopay_settings(
        db_session, schedule.id, customer.id,
        AutopayUpdate(frequency=AutopayFrequency.BIMONTHLY, recurring_day_2=28),
        today=date(2024, 6, 13),
    )
    assert schedule.frequency == AutopayFrequency.BIMONTHLY
    assert schedule.next_scheduled_date == date(2024, 6, 15)
    assert schedule.next_scheduled_date_2 == date(2024, 6, 28)

    schedule = await update_autopay_settings(
        db_session, schedule.id, customer.id,
        AutopayUpdate(frequency=AutopayFrequency.MONTHLY), today=date(2024, 6, 13),
    )
    assert schedule.frequency == AutopayFrequency.MONTHLY
    assert schedule.recurring_day_2 is None
    assert schedule.next_scheduled_date_2 is None


@pytest.mark.asyncio
async def test_template_edit_keeps_cut_dates(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    schedule = await _created(db_session, customer)

    schedule = await update_autopay_settings(
        db_session, schedule.id, customer.id,
        AutopayUpdate(recurring_day=15, job_type="Hedge trim"), today=date(2024, 6, 14),
    )
    assert schedule.job_type == "Hedge trim"
    assert schedule.next_scheduled_date == date(2024, 6, 15)


@pytest.mark.asyncio
async def test_update_timing_validation(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    headers = make_auth_headers(customer.id)
    resp = await client.post("/autopay", json=_autopay_payload(), headers=headers)
    settings_id = resp.json()["id"]

    resp = await client.patch(f"/autopay/{settings_id}", json={"frequency": "bimonthly"}, headers=headers)
    assert resp.status_code == 422
    resp = await client.patch(f"/autopay/{settings_id}", json={"recurring_day_2": 3}, headers=headers)
    assert resp.status_code == 422
    resp = await client.patch(f"/autopay/{settings_id}", json={"recurring_day": 29}, headers=headers)
    assert resp.status_code == 422
    resp = await client.patch(f"/autopay/{settings_id}", json={"recurring_day": None}, headers=headers)
    assert resp.status_code == 422

    resp = await client.patch(
        f"/autopay/{settings_id}", json={"frequency": "bimonthly", "recurring_day_2": 3}, headers=headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["frequency"] == "bimonthly"
    assert body["recurring_day_2"] == 3
    assert body["next_scheduled_date_2"] == first_cut_date(datetime.now(UTC).date(), 3).isoformat()
