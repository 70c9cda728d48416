"""Tests for the admin dispute and refund desk."""

import logging
import uuid
from datetime import UTC, datetime

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.models.dispute import JobDispute
from lawnconnect.models.job import JobRequest, JobStatus, PaymentStatus
from tests.conftest import create_eligible_provider, create_job, create_profile, make_auth_headers


async def _open_dispute(client: AsyncClient, db: AsyncSession) -> tuple[dict, str]:
    customer = await create_profile(db)
    provider = await create_eligible_provider(db)
    job = await create_job(
        db, customer, provider,
        status=JobStatus.COMPLETED, payment_status=PaymentStatus.PAID, completed_at=datetime.now(UTC),
    )
    resp = await client.post(
        f"/jobs/{job.id}/dispute", json={"reason": "Damaged flower bed"}, headers=make_auth_headers(customer.id),
    )
    assert resp.status_code == 201
    return resp.json(), str(job.id)


@pytest.mark.asyncio
async def test_admin_resolves_dispute_with_refund(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await create_profile(db_session, is_admin=True)
    headers = make_auth_headers(admin.id)
    dispute, job_id = await _open_dispute(client, db_session)

    resp = await client.get("/admin/disputes", params={"status": "open"}, headers=headers)
    assert [d["id"] for d in resp.json()] == [dispute["id"]]

    resp = await client.post(
        f"/admin/disputes/{dispute['id']}/resolve",
        json={"outcome": "approved", "admin_notes": "Photos confirm damage", "refund": True},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["resolved_at"] is not None

    resp = await client.get("/admin/refunds", headers=headers)
    refunds = resp.json()
    assert len(refunds) == 1
    assert refunds[0]["job_id"] == job_id
    assert refunds[0]["status"] == "approved"

    # Settling never moves the job back into the chain
    job = await db_session.get(JobRequest, uuid.UUID(job_id), populate_existing=True)
    assert job.status == JobStatus.DISPUTED
    assert job.payment_status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_resolve_twice_conflicts(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await create_profile(db_session, is_admin=True)
    headers = make_auth_headers(admin.id)
    dispute, _ = await _open_dispute(client, db_session)

    await client.post(f"/admin/disputes/{dispute['id']}/resolve", json={"outcome": "rejected"}, headers=headers)
    resp = await client.post(f"/admin/disputes/{dispute['id']}/resolve", json={"outcome": "approved"}, headers=headers)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_refund_requires_approval(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await create_profile(db_session, is_admin=True)
    dispute, _ = await _open_dispute(client, db_session)

    resp = await client.post(
        f"/admin/disputes/{dispute['id']}/resolve",
        json={"outcome": "rejected", "refund": True},
        headers=make_auth_headers(admin.id),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_review_refund_request(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await create_profile(db_session, is_admin=True)
    customer = await create_profile(db_session)
    provider = await create_eligible_provider(db_session)
    job = await create_job(
        db_session, customer, provider,
        status=JobStatus.COMPLETED, payment_status=PaymentStatus.PAID, completed_at=datetime.now(UTC),
    )
    resp = await client.post(
        f"/jobs/{job.id}/refund-request", json={"reason": "Provider no-show"}, headers=make_auth_headers(customer.id),
    )
    refund_id = resp.json()["id"]

    resp = await client.post(
        f"/admin/refunds/{refund_id}/review", json={"outcome": "rejected", "admin_notes": "Photos show work done"},
        headers=make_auth_headers(admin.id),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"

    resp = await client.post(
        f"/admin/refunds/{refund_id}/review", json={"outcome": "approved"}, headers=make_auth_headers(admin.id),
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_customer_cannot_use_admin_desk(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    resp = await client.get("/admin/disputes", headers=make_auth_headers(customer.id))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_resolution_is_audited(
    client: AsyncClient, db_session: AsyncSession, caplog: pytest.LogCaptureFixture,
) -> None:
    admin = await create_profile(db_session, is_admin=True)
    dispute, job_id = await _open_dispute(client, db_session)

    with caplog.at_level(logging.INFO, logger="lawnconnect.services.dispute"):
        resp = await client.post(
            f"/admin/disputes/{dispute['id']}/resolve",
            json={"outcome": "approved", "admin_notes": "Photos confirm damage", "refund": True},
            headers=make_auth_headers(admin.id),
        )
    assert resp.status_code == 200

    row = await db_session.get(JobDispute, uuid.UUID(dispute["id"]), populate_existing=True)
    assert row.resolved_by == admin.id
    assert (
        f"Dispute {dispute['id']} on job {job_id} approved by {admin.id} "
        "(refund=True, notes='Photos confirm damage')"
    ) in caplog.text
