"""Tests for rate limiting (lawnconnect/auth/rate_limit.py)."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from lawnconnect.auth.rate_limit import _bucket_owner, _get_rate_config
from lawnconnect.config import settings
from tests.conftest import create_profile, make_auth_headers


def _request(headers: dict[str, str], client: tuple[str, int] | None = ("10.0.0.1", 1234)) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    })


def test_rate_config_categories() -> None:
    assert _get_rate_config("GET", "/jobs")[2] == "read"
    assert _get_rate_config("POST", "/jobs/abc/accept")[2] == "job_lifecycle"
    assert _get_rate_config("POST", "/proposals/abc/accept")[2] == "job_lifecycle"
    assert _get_rate_config("PUT", "/me/banking")[2] == "write"


def test_bucket_owner_hashes_token() -> None:
    owner = _bucket_owner(_request({"Authorization": "Bearer secret-token"}))
    assert owner.startswith("token:")
    assert "secret-token" not in owner


def test_bucket_owner_falls_back_to_ip() -> None:
    assert _bucket_owner(_request({})) == "ip:10.0.0.1"
    assert _bucket_owner(_request({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})) == "ip:203.0.113.9"
    assert _bucket_owner(_request({}, client=None)) == "ip:unknown"


@pytest.mark.asyncio
async def test_rate_limit_headers_present(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_profile(db_session)
    resp = await client.get("/jobs/mine", headers=make_auth_headers(user.id))
    assert resp.status_code == 200
    assert resp.headers["x-ratelimit-limit"] == str(settings.rate_limit_read_capacity)
    assert "x-ratelimit-remaining" in resp.headers


@pytest.mark.asyncio
async def test_rate_limit_exceeded_returns_429(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_profile(db_session)
    object.__setattr__(settings, "rate_limit_read_capacity", 2)
    object.__setattr__(settings, "rate_limit_read_refill_per_min", 0)
    headers = make_auth_headers(user.id)

    for _ in range(5):
        resp = await client.get("/jobs/mine", headers=headers)
        if resp.status_code == 429:
            break
    assert resp.status_code == 429
    assert resp.json()["detail"] == "Rate limit exceeded"
    assert "retry-after" in resp.headers


@pytest.mark.asyncio
async def test_buckets_are_per_user(client: AsyncClient, db_session: AsyncSession) -> None:
    object.__setattr__(settings, "rate_limit_read_capacity", 1)
    object.__setattr__(settings, "rate_limit_read_refill_per_min", 0)
    first = make_auth_headers((await create_profile(db_session)).id)
    second = make_auth_headers((await create_profile(db_session)).id)

    assert (await client.get("/jobs/mine", headers=first)).status_code == 200
    assert (await client.get("/jobs/mine", headers=first)).status_code == 429
    assert (await client.get("/jobs/mine", headers=second)).status_code == 200


@pytest.mark.asyncio
async def test_anonymous_requests_limited_by_ip(client: AsyncClient) -> None:
    object.__setattr__(settings, "rate_limit_read_capacity", 2)
    object.__setattr__(settings, "rate_limit_read_refill_per_min", 0)

    for _ in range(5):
        resp = await client.get(f"/users/{uuid.uuid4()}/rating")
        if resp.status_code == 429:
            break
    assert resp.status_code == 429
