"""Autopay schedule endpoints."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.auth.identity import AuthenticatedUser, verify_request
from lawnconnect.auth.rate_limit import check_rate_limit
from lawnconnect.database import get_db
from lawnconnect.schemas.autopay import AutopayCreate, AutopayResponse, AutopayUpdate
from lawnconnect.services import autopay as autopay_service
from lawnconnect.services.review import require_reviews_settled

router = APIRouter(prefix="/autopay", tags=["autopay"], dependencies=[Depends(check_rate_limit)])


@router.post("", response_model=AutopayResponse, status_code=201)
async def create_schedule(
    data: AutopayCreate,
    auth: AuthenticatedUser = Depends(require_reviews_settled),
    db: AsyncSession = Depends(get_db),
) -> AutopayResponse:
    schedule = await autopay_service.create_autopay_settings(db, auth.user_id, data)
    return AutopayResponse.model_validate(schedule)


@router.get("", response_model=list[AutopayResponse])
async def list_schedules(
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> list[AutopayResponse]:
    schedules = await autopay_service.list_autopay_settings(db, auth.user_id)
    return [AutopayResponse.model_validate(s) for s in schedules]


@router.patch("/{settings_id}", response_model=AutopayResponse)
async def update_schedule(
    settings_id: uuid.UUID,
    data: AutopayUpdate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> AutopayResponse:
    schedule = await autopay_service.update_autopay_settings(db, settings_id, auth.user_id, data)
    return AutopayResponse.model_validate(schedule)


@router.post("/{settings_id}/disable", response_model=AutopayResponse)
async def disable_schedule(
    settings_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> AutopayResponse:
    schedule = await autopay_service.set_autopay_enabled(db, settings_id, auth.user_id, False)
    return AutopayResponse.model_validate(schedule)


@router.post("/{settings_id}/enable", response_model=AutopayResponse)
async def enable_schedule(
    settings_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_reviews_settled),
    db: AsyncSession = Depends(get_db),
) -> AutopayResponse:
    schedule = await autopay_service.set_autopay_enabled(db, settings_id, auth.user_id, True)
    return AutopayResponse.model_validate(schedule)
