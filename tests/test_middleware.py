"""Tests for application middleware (body size limit, security headers)."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import create_profile, make_auth_headers


@pytest.mark.asyncio
async def test_security_headers_present(client: AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.headers["strict-transport-security"] == "max-age=63072000; includeSubDomains"
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert resp.headers["referrer-policy"] == "strict-origin-when-cross-origin"
    assert resp.headers["cache-control"] == "no-store"


@pytest.mark.asyncio
async def test_security_headers_on_error_response(client: AsyncClient, db_session: AsyncSession) -> None:
    customer = await create_profile(db_session)
    resp = await client.get(f"/jobs/{uuid.uuid4()}", headers=make_auth_headers(customer.id))
    assert resp.status_code == 404
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"


@pytest.mark.asyncio
async def test_body_size_limit_exceeded(client: AsyncClient) -> None:
    resp = await client.post(
        "/jobs",
        content=b"x",
        headers={"Content-Length": "2000000", "Content-Type": "application/json"},
    )
    assert resp.status_code == 413


@pytest.mark.asyncio
async def test_body_size_limit_put_checked(client: AsyncClient) -> None:
    resp = await client.put(
        "/me/banking",
        content=b"x",
        headers={"Content-Length": "2000000", "Content-Type": "application/json"},
    )
    assert resp.status_code == 413


@pytest.mark.asyncio
async def test_invalid_content_length(client: AsyncClient) -> None:
    resp = await client.post(
        "/jobs",
        content=b"{}",
        headers={"Content-Length": "abc", "Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid Content-Length"
