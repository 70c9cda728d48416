"""Provider identity verification and banking details, both admin-reviewed."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from lawnconnect.database import Base


class VerificationStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentType(enum.Enum):
    DRIVERS_LICENSE = "drivers_license"
    PASSPORT = "passport"
    NATIONAL_ID = "national_id"


class BankingStatus(enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class BankName(enum.Enum):
    SCOTIABANK_JAMAICA = "scotiabank_jamaica"
    NCB_JAMAICA = "ncb_jamaica"


class AccountType(enum.Enum):
    SAVINGS = "savings"
    CHEQUING = "chequing"


class ProviderVerification(Base):
    __tablename__ = "provider_verifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, unique=True
    )
    status: Mapped[VerificationStatus] = mapped_column(
        Enum(VerificationStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=VerificationStatus.PENDING,
    )
    document_type: Mapped[DocumentType] = mapped_column(
        Enum(DocumentType, values_callable=lambda x: [e.value for e in x]), nullable=False
    )
    document_url: Mapped[str] = mapped_column(Text, nullable=False)
    document_back_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    selfie_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


class ProviderBankingDetails(Base):
    __tablename__ = "provider_banking_details"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, unique=True
    )
    status: Mapped[BankingStatus] = mapped_column(
        Enum(BankingStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=BankingStatus.PENDING,
    )
    full_legal_name: Mapped[str] = mapped_column(String(256), nullable=False)
    bank_name: Mapped[BankName] = mapped_column(
        Enum(BankName, values_callable=lambda x: [e.value for e in x]), nullable=False
    )
    branch_name: Mapped[str] = mapped_column(String(128), nullable=False)
    branch_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    account_number: Mapped[str] = mapped_column(String(64), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        Enum(AccountType, values_callable=lambda x: [e.value for e in x]), nullable=False
    )
    trn: Mapped[str] = mapped_column(String(16), nullable=False)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
