"""Test configuration and fixtures.

Supports parallel execution via pytest-xdist (pytest -n auto).
Each worker gets its own Postgres schema. Within a worker, tables are created
once per session and each test runs inside a rolled-back transaction (fast).
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from decimal import Decimal

import pytest
import pytest_asyncio
import redis.asyncio as aioredis
import sqlalchemy
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from lawnconnect.auth.identity import get_identity_provider
from lawnconnect.config import settings
from lawnconnect.database import Base, get_db
from lawnconnect.main import app
from lawnconnect.models.job import JobRequest, JobStatus, LawnSize, Parish, PaymentStatus
from lawnconnect.models.profile import Profile, UserRole
from lawnconnect.models.verification import (
    AccountType,
    BankingStatus,
    BankName,
    DocumentType,
    ProviderBankingDetails,
    ProviderVerification,
    VerificationStatus,
)
from lawnconnect.redis import get_redis
from lawnconnect.services import notifications
from lawnconnect.services.pricing import base_price_for, split_price


# ---------------------------------------------------------------------------
# Per-worker database isolation (for pytest-xdist)
# ---------------------------------------------------------------------------

def _worker_schema(worker_id: str) -> str:
    """Each xdist worker gets its own Postgres schema for isolation."""
    if worker_id == "master":
        return "public"
    return f"test_{worker_id}"


def _worker_redis_db(worker_id: str) -> int:
    if worker_id == "master":
        return 0
    return int(worker_id.replace("gw", "")) + 1


@pytest.fixture(scope="session")
def worker_id(request: pytest.FixtureRequest) -> str:
    if hasattr(request.config, "workerinput"):
        return request.config.workerinput["workerid"]
    return "master"


_DROP_ENUMS = (
    "DO $$ DECLARE r RECORD; "
    "BEGIN FOR r IN (SELECT typname FROM pg_type t JOIN pg_namespace n ON t.typnamespace = n.oid "
    "WHERE n.nspname = '{schema}' AND t.typtype = 'e') "
    "LOOP EXECUTE 'DROP TYPE IF EXISTS {schema}.' || quote_ident(r.typname) || ' CASCADE'; "
    "END LOOP; END $$;"
)


async def _setup_schema(schema: str) -> None:
    """Create per-worker schema and tables."""
    engine_auto = create_async_engine(settings.test_database_url, isolation_level="AUTOCOMMIT")
    async with engine_auto.connect() as conn:
        if schema != "public":
            await conn.execute(text(f'DROP SCHEMA IF EXISTS "{schema}" CASCADE'))
            await conn.execute(text(f'CREATE SCHEMA "{schema}"'))
    await engine_auto.dispose()

    engine = create_async_engine(
        settings.test_database_url,
        connect_args={"server_settings": {"search_path": schema}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.execute(text(_DROP_ENUMS.format(schema=schema)))
        await conn.execute(text("DROP TABLE IF EXISTS alembic_version"))
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


async def _teardown_schema(schema: str) -> None:
    engine = create_async_engine(
        settings.test_database_url,
        isolation_level="AUTOCOMMIT",
        connect_args={"server_settings": {"search_path": schema}},
    )
    async with engine.connect() as conn:
        if schema != "public":
            await conn.execute(text(f'DROP SCHEMA IF EXISTS "{schema}" CASCADE'))
        else:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.execute(text(_DROP_ENUMS.format(schema=schema)))
    await engine.dispose()


@pytest.fixture(scope="session")
def _worker_db_setup(worker_id: str) -> tuple[str, str]:
    """Create per-worker schema and tables once per session (sync wrapper).

    Returns (async_db_url, schema_name).
    """
    schema = _worker_schema(worker_id)
    asyncio.run(_setup_schema(schema))

    yield settings.test_database_url, schema

    asyncio.run(_teardown_schema(schema))


# ---------------------------------------------------------------------------
# Per-test fixtures: transaction rollback isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_settings() -> None:
    """Snapshot settings before each test and restore after to prevent mutation bleed."""
    original = settings.model_dump()
    object.__setattr__(settings, "test_payments_enabled", False)
    object.__setattr__(settings, "payment_poll_attempts", 2)
    object.__setattr__(settings, "payment_poll_delay_seconds", 0.0)
    object.__setattr__(settings, "notification_backend", "log")
    object.__setattr__(settings, "invoice_backend", "log")
    object.__setattr__(settings, "email_backend", "log")
    yield  # type: ignore[misc]
    for key, value in original.items():
        object.__setattr__(settings, key, value)


class RecordingDispatcher:
    """Collects dispatched payloads instead of delivering them."""

    def __init__(self) -> None:
        self.payloads: list[dict] = []

    async def dispatch(self, payload: dict) -> None:
        self.payloads.append(payload)

    def of_type(self, notification_type: str) -> list[dict]:
        return [p for p in self.payloads if p.get("type") == notification_type]


@pytest_asyncio.fixture
async def sent_notifications(monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[RecordingDispatcher, None]:
    """Record notifications. Call drain_background_tasks() before asserting."""
    recorder = RecordingDispatcher()
    monkeypatch.setattr(notifications, "get_notification_dispatcher", lambda: recorder)
    yield recorder
    await notifications.drain_background_tasks()


@pytest_asyncio.fixture
async def sent_invoices(monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[RecordingDispatcher, None]:
    recorder = RecordingDispatcher()
    monkeypatch.setattr(notifications, "get_invoice_dispatcher", lambda: recorder)
    yield recorder
    await notifications.drain_background_tasks()


@pytest_asyncio.fixture(autouse=True)
async def _drain_dispatch() -> AsyncGenerator[None, None]:
    """Fire-and-forget tasks must not outlive the test's event loop."""
    yield
    await notifications.drain_background_tasks()


@pytest_asyncio.fixture
async def _worker_engine(_worker_db_setup: tuple[str, str]) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine for this worker's test DB (created per-test, cheap)."""
    url, schema = _worker_db_setup
    engine = create_async_engine(
        url,
        connect_args={"server_settings": {"search_path": schema}},
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def _worker_redis(worker_id: str) -> AsyncGenerator[aioredis.Redis, None]:
    """Per-worker Redis connection using separate DB numbers."""
    base_url = settings.redis_url.rsplit("/", 1)[0]
    db_num = _worker_redis_db(worker_id)
    redis_client = aioredis.from_url(f"{base_url}/{db_num}")
    await redis_client.flushdb()
    yield redis_client
    await redis_client.flushdb()
    await redis_client.aclose()


@pytest_asyncio.fixture
async def db_session(
    _worker_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession, None]:
    """Per-test session wrapped in a transaction that rolls back after the test.

    Service code that calls session.commit() commits the inner SAVEPOINT,
    not the outer transaction, so data is still rolled back at the end.
    """
    async with _worker_engine.connect() as conn:
        txn = await conn.begin()
        await conn.begin_nested()

        session = AsyncSession(bind=conn, expire_on_commit=False)

        @sqlalchemy.event.listens_for(session.sync_session, "after_transaction_end")
        def reopen_nested(session_sync, transaction):  # type: ignore[no-untyped-def]
            if conn.closed:
                return
            if not conn.in_nested_transaction():
                conn.sync_connection.begin_nested()  # type: ignore[union-attr]

        yield session

        await session.close()
        await txn.rollback()


class StaticIdentityProvider:
    """Treats the bearer token as the user id. Stands in for Supabase."""

    async def resolve_user_id(self, token: str) -> uuid.UUID:
        try:
            return uuid.UUID(token)
        except ValueError:
            raise HTTPException(status_code=401, detail="Invalid bearer token")


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    _worker_redis: aioredis.Redis,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client with overridden DB, Redis and identity dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> AsyncGenerator[aioredis.Redis, None]:
        yield _worker_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_identity_provider] = StaticIdentityProvider

    async for key in _worker_redis.scan_iter("ratelimit:*"):
        await _worker_redis.delete(key)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_auth_headers(user_id: uuid.UUID | str) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_id}"}


def service_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {settings.service_role_key}"}


def make_job_data(**overrides) -> dict:
    """Factory for a job creation payload."""
    data = {
        "title": "Front and back lawn",
        "location": "12 Hope Road",
        "parish": "St. Andrew",
        "lawn_size": "medium",
    }
    data.update(overrides)
    return data


async def create_profile(
    db: AsyncSession,
    role: UserRole = UserRole.CUSTOMER,
    is_admin: bool = False,
    email: str | None = None,
    **kwargs,
) -> Profile:
    profile_id = uuid.uuid4()
    profile = Profile(
        id=profile_id,
        full_name=kwargs.pop("full_name", "Test User"),
        email=email or f"{profile_id.hex[:12]}@example.com",
        user_role=role,
        is_admin=is_admin,
        **kwargs,
    )
    db.add(profile)
    await db.commit()
    return profile


async def create_eligible_provider(db: AsyncSession, **kwargs) -> Profile:
    """Provider with approved ID and verified banking."""
    provider = await create_profile(
        db,
        role=UserRole.PROVIDER,
        avatar_url="https://cdn.example.com/avatar.png",
        bio="Ten years cutting grass in Kingston",
        **kwargs,
    )
    db.add(ProviderVerification(
        id=uuid.uuid4(),
        provider_id=provider.id,
        status=VerificationStatus.APPROVED,
        document_type=DocumentType.NATIONAL_ID,
        document_url="https://cdn.example.com/id.png",
    ))
    db.add(ProviderBankingDetails(
        id=uuid.uuid4(),
        provider_id=provider.id,
        status=BankingStatus.VERIFIED,
        full_legal_name="Test Provider",
        bank_name=BankName.NCB_JAMAICA,
        branch_name="Half Way Tree",
        account_number="123456789",
        account_type=AccountType.SAVINGS,
        trn="123456789",
    ))
    await db.commit()
    return provider


async def create_job(
    db: AsyncSession,
    customer: Profile,
    provider: Profile | None = None,
    status: JobStatus = JobStatus.OPEN,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    lawn_size: LawnSize = LawnSize.MEDIUM,
    final_price: Decimal | None = None,
    **kwargs,
) -> JobRequest:
    """Insert a job directly in the given state."""
    base_price = base_price_for(lawn_size)
    split = split_price(final_price or base_price)
    job = JobRequest(
        id=uuid.uuid4(),
        customer_id=customer.id,
        accepted_provider_id=provider.id if provider else None,
        title=kwargs.pop("title", "Basic Grass Cutting"),
        location=kwargs.pop("location", "12 Hope Road"),
        parish=kwargs.pop("parish", Parish.ST_ANDREW),
        lawn_size=lawn_size,
        base_price=base_price,
        final_price=split.final_price,
        platform_fee=split.platform_fee,
        provider_payout=split.provider_payout,
        status=status,
        payment_status=payment_status,
        created_at=kwargs.pop("created_at", datetime.now(UTC)),
        **kwargs,
    )
    db.add(job)
    await db.commit()
    return job
