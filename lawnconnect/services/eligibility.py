"""Provider eligibility: identity verification, banking, profile completeness.

Hard gates (ID approved AND banking verified) block accepting or proposing
on jobs. Profile completeness is a soft prompt the client may dismiss.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.config import settings
from lawnconnect.models.profile import Profile
from lawnconnect.models.verification import (
    BankingStatus,
    ProviderBankingDetails,
    ProviderVerification,
    VerificationStatus,
)
from lawnconnect.schemas.verification import BankingSubmit, VerificationSubmit

logger = logging.getLogger(__name__)


@dataclass
class Eligibility:
    id_verified: bool
    banking_verified: bool
    profile_complete: bool

    @property
    def can_accept_jobs(self) -> bool:
        return self.id_verified and self.banking_verified

    @property
    def prompt_profile_completion(self) -> bool:
        return not self.profile_complete


def is_profile_complete(profile: Profile | None) -> bool:
    """Providers need an avatar and a bio. Customers are always complete."""
    if profile is None:
        return False
    if not profile.is_provider:
        return True
    bio = (profile.bio or "").strip()
    return bool(profile.avatar_url) and len(bio) >= max(settings.profile_bio_min_length, 1)


async def _get_verification(db: AsyncSession, provider_id: uuid.UUID) -> ProviderVerification | None:
    result = await db.execute(
        select(ProviderVerification)
        .where(ProviderVerification.provider_id == provider_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_banking(db: AsyncSession, provider_id: uuid.UUID) -> ProviderBankingDetails | None:
    result = await db.execute(
        select(ProviderBankingDetails)
        .where(ProviderBankingDetails.provider_id == provider_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_eligibility(db: AsyncSession, provider_id: uuid.UUID) -> Eligibility:
    verification = await _get_verification(db, provider_id)
    banking = await _get_banking(db, provider_id)
    profile = await db.get(Profile, provider_id)
    return Eligibility(
        id_verified=verification is not None and verification.status == VerificationStatus.APPROVED,
        banking_verified=banking is not None and banking.status == BankingStatus.VERIFIED,
        profile_complete=is_profile_complete(profile),
    )


async def assert_can_accept_jobs(db: AsyncSession, provider_id: uuid.UUID) -> Eligibility:
    """Raise 403 unless both hard gates pass."""
    eligibility = await get_eligibility(db, provider_id)
    if not eligibility.id_verified:
        raise HTTPException(
            status_code=403,
            detail="Your identity verification must be approved before you can accept jobs",
        )
    if not eligibility.banking_verified:
        raise HTTPException(
            status_code=403,
            detail="Your banking details must be verified before you can accept jobs",
        )
    return eligibility


# ---------------------------------------------------------------------------
# Provider submissions
# ---------------------------------------------------------------------------

async def submit_verification(
    db: AsyncSession, provider_id: uuid.UUID, data: VerificationSubmit
) -> ProviderVerification:
    """Submit or resubmit ID documents. Resubmission is only allowed after a rejection."""
    existing = await _get_verification(db, provider_id)
    if existing is not None:
        if existing.status != VerificationStatus.REJECTED:
            raise HTTPException(
                status_code=409,
                detail=f"Verification is already {existing.status.value}",
            )
        existing.status = VerificationStatus.PENDING
        existing.document_type = data.document_type
        existing.document_url = data.document_url
        existing.document_back_url = data.document_back_url
        existing.selfie_url = data.selfie_url
        existing.rejection_reason = None
        existing.reviewed_by = None
        existing.reviewed_at = None
        await db.commit()
        return existing

    verification = ProviderVerification(
        id=uuid.uuid4(),
        provider_id=provider_id,
        status=VerificationStatus.PENDING,
        document_type=data.document_type,
        document_url=data.document_url,
        document_back_url=data.document_back_url,
        selfie_url=data.selfie_url,
    )
    db.add(verification)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Verification already submitted")
    await db.refresh(verification)
    return verification


async def submit_banking_details(
    db: AsyncSession, provider_id: uuid.UUID, data: BankingSubmit
) -> ProviderBankingDetails:
    """Submit or replace banking details. Any change goes back to pending review."""
    existing = await _get_banking(db, provider_id)
    if existing is not None:
        existing.status = BankingStatus.PENDING
        existing.full_legal_name = data.full_legal_name
        existing.bank_name = data.bank_name
        existing.branch_name = data.branch_name
        existing.branch_number = data.branch_number
        existing.account_number = data.account_number
        existing.account_type = data.account_type
        existing.trn = data.trn
        existing.admin_notes = None
        existing.reviewed_by = None
        existing.reviewed_at = None
        await db.commit()
        return existing

    banking = ProviderBankingDetails(
        id=uuid.uuid4(),
        provider_id=provider_id,
        status=BankingStatus.PENDING,
        full_legal_name=data.full_legal_name,
        bank_name=data.bank_name,
        branch_name=data.branch_name,
        branch_number=data.branch_number,
        account_number=data.account_number,
        account_type=data.account_type,
        trn=data.trn,
    )
    db.add(banking)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Banking details already submitted")
    await db.refresh(banking)
    return banking


# ---------------------------------------------------------------------------
# Admin review
# ---------------------------------------------------------------------------

async def review_verification(
    db: AsyncSession,
    provider_id: uuid.UUID,
    admin_id: uuid.UUID,
    approved: bool,
    rejection_reason: str | None = None,
) -> ProviderVerification:
    if not approved and not rejection_reason:
        raise HTTPException(status_code=422, detail="A rejection reason is required")

    result = await db.execute(
        update(ProviderVerification)
        .where(
            ProviderVerification.provider_id == provider_id,
            ProviderVerification.status == VerificationStatus.PENDING,
        )
        .values(
            status=VerificationStatus.APPROVED if approved else VerificationStatus.REJECTED,
            rejection_reason=None if approved else rejection_reason,
            reviewed_by=admin_id,
            reviewed_at=datetime.now(UTC),
        )
        .returning(ProviderVerification.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        existing = await _get_verification(db, provider_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Verification not found")
        raise HTTPException(status_code=409, detail=f"Verification is already {existing.status.value}")
    await db.commit()
    logger.info(
        "Verification for provider %s %s by %s",
        provider_id, "approved" if approved else "rejected", admin_id,
    )
    return await get_verification(db, provider_id)


async def review_banking_details(
    db: AsyncSession,
    provider_id: uuid.UUID,
    admin_id: uuid.UUID,
    verified: bool,
    admin_notes: str | None = None,
) -> ProviderBankingDetails:
    result = await db.execute(
        update(ProviderBankingDetails)
        .where(
            ProviderBankingDetails.provider_id == provider_id,
            ProviderBankingDetails.status == BankingStatus.PENDING,
        )
        .values(
            status=BankingStatus.VERIFIED if verified else BankingStatus.REJECTED,
            admin_notes=admin_notes,
            reviewed_by=admin_id,
            reviewed_at=datetime.now(UTC),
        )
        .returning(ProviderBankingDetails.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        existing = await _get_banking(db, provider_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Banking details not found")
        raise HTTPException(status_code=409, detail=f"Banking details are already {existing.status.value}")
    await db.commit()
    logger.info(
        "Banking details for provider %s %s by %s",
        provider_id, "verified" if verified else "rejected", admin_id,
    )
    return await get_banking_details(db, provider_id)


async def get_verification(db: AsyncSession, provider_id: uuid.UUID) -> ProviderVerification:
    verification = await _get_verification(db, provider_id)
    if verification is None:
        raise HTTPException(status_code=404, detail="Verification not found")
    return verification


async def get_banking_details(db: AsyncSession, provider_id: uuid.UUID) -> ProviderBankingDetails:
    banking = await _get_banking(db, provider_id)
    if banking is None:
        raise HTTPException(status_code=404, detail="Banking details not found")
    return banking
