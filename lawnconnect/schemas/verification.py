"""Provider verification, banking and eligibility schemas.

Banking responses never carry the raw account number or TRN.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from lawnconnect.models.verification import AccountType, BankName, DocumentType


def _mask(value: str, visible: int) -> str:
    if len(value) <= visible:
        return value
    return "*" * (len(value) - visible) + value[-visible:]


class VerificationSubmit(BaseModel):
    document_type: DocumentType
    document_url: str = Field(..., min_length=1, max_length=2048)
    document_back_url: str | None = Field(None, max_length=2048)
    selfie_url: str | None = Field(None, max_length=2048)


class VerificationReview(BaseModel):
    outcome: Literal["approved", "rejected"]
    rejection_reason: str | None = Field(None, max_length=2048)


class VerificationResponse(BaseModel):
    id: uuid.UUID
    provider_id: uuid.UUID
    status: str
    document_type: str
    rejection_reason: str | None
    reviewed_at: datetime | None
    created_at: datetime

    @classmethod
    def from_model(cls, v) -> "VerificationResponse":  # type: ignore[no-untyped-def]
        return cls(
            id=v.id,
            provider_id=v.provider_id,
            status=v.status.value,
            document_type=v.document_type.value,
            rejection_reason=v.rejection_reason,
            reviewed_at=v.reviewed_at,
            created_at=v.created_at,
        )


class BankingSubmit(BaseModel):
    full_legal_name: str = Field(..., min_length=1, max_length=256)
    bank_name: BankName
    branch_name: str = Field(..., min_length=1, max_length=128)
    branch_number: str | None = Field(None, max_length=32)
    account_number: str = Field(..., pattern=r"^\d{4,20}$")
    account_type: AccountType
    trn: str = Field(..., pattern=r"^\d{9}$")

    @field_validator("trn", "account_number", mode="before")
    @classmethod
    def strip_separators(cls, v: object) -> object:
        if isinstance(v, str):
            return v.replace("-", "").replace(" ", "")
        return v


class BankingReview(BaseModel):
    outcome: Literal["verified", "rejected"]
    admin_notes: str | None = Field(None, max_length=2048)


class BankingResponse(BaseModel):
    id: uuid.UUID
    provider_id: uuid.UUID
    status: str
    full_legal_name: str
    bank_name: str
    branch_name: str
    account_type: str
    account_number_masked: str
    trn_masked: str
    admin_notes: str | None
    reviewed_at: datetime | None
    created_at: datetime

    @classmethod
    def from_model(cls, b) -> "BankingResponse":  # type: ignore[no-untyped-def]
        return cls(
            id=b.id,
            provider_id=b.provider_id,
            status=b.status.value,
            full_legal_name=b.full_legal_name,
            bank_name=b.bank_name.value,
            branch_name=b.branch_name,
            account_type=b.account_type.value,
            account_number_masked=_mask(b.account_number, 4),
            trn_masked=_mask(b.trn, 3),
            admin_notes=b.admin_notes,
            reviewed_at=b.reviewed_at,
            created_at=b.created_at,
        )


class EligibilityResponse(BaseModel):
    id_verified: bool
    banking_verified: bool
    profile_complete: bool
    can_accept_jobs: bool
    prompt_profile_completion: bool
