"""Alembic environment configuration for async SQLAlchemy."""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from lawnconnect.config import settings
from lawnconnect.database import Base
from lawnconnect.models.autopay import AutopaySettings  # noqa: F401 (registers the table)
from lawnconnect.models.dispute import JobDispute, RefundRequest  # noqa: F401
from lawnconnect.models.job import JobProposal, JobRequest  # noqa: F401
from lawnconnect.models.payout import ProviderPayout, ProviderPayoutJob  # noqa: F401
from lawnconnect.models.profile import Profile  # noqa: F401
from lawnconnect.models.review import Review  # noqa: F401
from lawnconnect.models.verification import ProviderBankingDetails, ProviderVerification  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL without a live connection."""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:  # type: ignore[no-untyped-def]
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    engine = create_async_engine(settings.database_url)
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
