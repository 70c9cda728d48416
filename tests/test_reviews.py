"""Tests for reviews and the review gate on new bookings."""

from datetime import UTC, datetime

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.models.job import JobRequest, JobStatus, PaymentStatus
from lawnconnect.models.profile import Profile
from lawnconnect.services.notifications import drain_background_tasks
from lawnconnect.services.review import get_pending_reviews, has_pending_customer_reviews
from tests.conftest import (
    RecordingDispatcher,
    create_eligible_provider,
    create_job,
    create_profile,
    make_auth_headers,
    make_job_data,
)


async def _completed(db: AsyncSession, customer: Profile, provider: Profile) -> JobRequest:
    return await create_job(
        db, customer, provider,
        status=JobStatus.COMPLETED, payment_status=PaymentStatus.PAID, completed_at=datetime.now(UTC),
    )


@pytest.mark.asyncio
async def test_submit_review(
    client: AsyncClient, db_session: AsyncSession, sent_notifications: RecordingDispatcher
) -> None:
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    job = await _completed(db_session, customer, provider)

    resp = await client.post(
        f"/jobs/{job.id}/reviews", json={"rating": 5, "comment": "Spotless"},
        headers=make_auth_headers(customer.id),
    )
    assert resp.status_code == 201
    assert resp.json()["reviewee_id"] == str(provider.id)
    assert resp.json()["rating"] == 5

    await drain_background_tasks()
    received = sent_notifications.of_type("review_received")
    assert [n["recipientId"] for n in received] == [str(provider.id)]


@pytest.mark.asyncio
async def test_duplicate_review_rejected(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    job = await _completed(db_session, customer, provider)
    headers = make_auth_headers(customer.id)

    await client.post(f"/jobs/{job.id}/reviews", json={"rating": 4}, headers=headers)
    resp = await client.post(f"/jobs/{job.id}/reviews", json={"rating": 1}, headers=headers)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_review_requires_completed_job(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    job = await create_job(
        db_session, customer, provider, status=JobStatus.IN_PROGRESS, payment_status=PaymentStatus.PAID,
    )

    resp = await client.post(f"/jobs/{job.id}/reviews", json={"rating": 4}, headers=make_auth_headers(customer.id))
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_stranger_cannot_review(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    stranger = await create_profile(db_session)
    job = await _completed(db_session, customer, provider)

    resp = await client.post(f"/jobs/{job.id}/reviews", json={"rating": 1}, headers=make_auth_headers(stranger.id))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_rating_out_of_range(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    job = await _completed(db_session, customer, provider)

    resp = await client.post(f"/jobs/{job.id}/reviews", json={"rating": 6}, headers=make_auth_headers(customer.id))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_pending_reviews_for_both_sides(db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    job = await _completed(db_session, customer, provider)

    customer_pending = await get_pending_reviews(db_session, customer.id)
    provider_pending = await get_pending_reviews(db_session, provider.id)

    assert [p.job_id for p in customer_pending] == [job.id]
    assert customer_pending[0].is_customer is True
    assert customer_pending[0].reviewee_id == provider.id
    assert [p.job_id for p in provider_pending] == [job.id]
    assert provider_pending[0].is_customer is False
    assert await has_pending_customer_reviews(db_session, customer.id)
    assert not await has_pending_customer_reviews(db_session, provider.id)


@pytest.mark.asyncio
async def test_review_gate_blocks_then_releases(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    job = await _completed(db_session, customer, provider)
    headers = make_auth_headers(customer.id)

    resp = await client.post("/jobs", json=make_job_data(), headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Please review your completed jobs before booking new service"

    resp = await client.get("/reviews/pending", headers=headers)
    assert len(resp.json()) == 1

    resp = await client.post(f"/jobs/{job.id}/reviews", json={"rating": 4}, headers=headers)
    assert resp.status_code == 201

    resp = await client.post("/jobs", json=make_job_data(), headers=headers)
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_provider_pending_reviews_do_not_block(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    await _completed(db_session, customer, provider)

    # The provider also books lawn care for themselves
    resp = await client.post("/jobs", json=make_job_data(), headers=make_auth_headers(provider.id))
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_rating_summary(client: AsyncClient, db_session: AsyncSession) -> None:
    provider = await create_eligible_provider(db_session)
    for rating in (5, 4):
        customer = await create_profile(db_session)
        job = await _completed(db_session, customer, provider)
        await client.post(f"/jobs/{job.id}/reviews", json={"rating": rating}, headers=make_auth_headers(customer.id))

    resp = await client.get(f"/users/{provider.id}/rating")
    assert resp.json()["review_count"] == 2
    assert resp.json()["average_rating"] == "4.50"

    resp = await client.get(f"/users/{provider.id}/reviews")
    assert len(resp.json()) == 2
