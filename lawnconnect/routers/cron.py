"""Batch endpoints invoked by the external scheduler.

All of them require the service-role bearer credential, checked before any
database session is opened.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.auth.service import require_service_role
from lawnconnect.database import get_db
from lawnconnect.schemas.cron import AutopayRunResult, CompletionRunResult, PayoutRunResult
from lawnconnect.services.autopay import run_autopay
from lawnconnect.services.completion import run_auto_completion
from lawnconnect.services.payouts import run_provider_payouts

router = APIRouter(prefix="/cron", tags=["cron"])


def get_now() -> datetime:
    return datetime.now(UTC)


@router.post("/autopay", response_model=AutopayRunResult, dependencies=[Depends(require_service_role)])
async def autopay(
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
) -> AutopayRunResult:
    return await run_autopay(db, today=now.date(), now=now)


@router.post(
    "/auto-complete", response_model=CompletionRunResult, dependencies=[Depends(require_service_role)],
)
async def auto_complete(
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
) -> CompletionRunResult:
    return await run_auto_completion(db, now)


@router.post(
    "/provider-payouts", response_model=PayoutRunResult, dependencies=[Depends(require_service_role)],
)
async def provider_payouts(
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
) -> PayoutRunResult:
    return await run_provider_payouts(db, now)
