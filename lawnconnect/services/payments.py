"""Payment status reconciliation.

Three paths can move a job's payment to ``paid``:

- **Hosted gateway**: the gateway's signed webhook is the only writer.
  The customer's browser return only polls.
- **Manual reference**: the customer submits a bank-transfer reference
  (``awaiting_confirmation``) and the receiving provider attests to it.
  The reference itself is never checked automatically.
- **Simulated**: test-only shortcut, disabled unless
  ``test_payments_enabled``.

Every write is conditional on the payment state it expects, so replays and
racing writers are no-ops. ``paid`` is terminal. An invoice is dispatched
exactly once, by whichever writer performed the transition into ``paid``.
"""

import asyncio
import hashlib
import hmac
import logging
import secrets
import uuid
from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.config import settings
from lawnconnect.models.job import JobRequest, JobStatus, PaymentStatus
from lawnconnect.models.profile import Profile
from lawnconnect.schemas.job import JobCreate
from lawnconnect.services import gateway
from lawnconnect.services.job import _assert_party, _get_job, conditional_update, create_job
from lawnconnect.services.notifications import (
    Invoice,
    Notification,
    NotificationType,
    notify,
    send_invoice,
)

logger = logging.getLogger(__name__)


def sign_payload(secret: str, timestamp: str, body: str) -> str:
    """HMAC-SHA256 signature over ``{timestamp}.{body}``."""
    message = f"{timestamp}.{body}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_webhook_signature(
    body: bytes, timestamp: str | None, signature: str | None, now: datetime | None = None
) -> None:
    """Raise 401 unless the webhook body carries a fresh, valid signature."""
    if not timestamp or not signature:
        raise HTTPException(status_code=401, detail="Missing webhook signature")
    try:
        sent_at = datetime.fromtimestamp(int(timestamp), tz=UTC)
    except (ValueError, OverflowError, OSError):
        raise HTTPException(status_code=401, detail="Invalid webhook timestamp")
    now = now or datetime.now(UTC)
    if abs((now - sent_at).total_seconds()) > settings.payment_webhook_max_age_seconds:
        raise HTTPException(status_code=401, detail="Webhook timestamp expired")

    expected = sign_payload(settings.payment_webhook_secret, timestamp, body.decode())
    if not hmac.compare_digest(expected, signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")


async def _build_invoice(db: AsyncSession, job: JobRequest) -> Invoice:
    customer = await db.get(Profile, job.customer_id)
    return Invoice(
        job_id=job.id,
        customer_id=job.customer_id,
        customer_email=customer.email if customer else None,
        customer_name=customer.full_name if customer else None,
        location=job.location,
        parish=job.parish.value,
        lawn_size=job.lawn_size.value if job.lawn_size else None,
        amount=job.final_price or job.base_price,
        platform_fee=job.platform_fee,
        payment_reference=job.payment_reference,
    )


async def _mark_paid(
    db: AsyncSession,
    job_id: uuid.UUID,
    expected: set[PaymentStatus],
    confirmed_by: uuid.UUID | None,
    now: datetime,
    reference: str | None = None,
) -> bool:
    """Move payment into paid from one of the expected states.

    An accepted job moves to in_progress in the same write. Commits and
    dispatches the invoice on success. Returns False if no row changed.
    """
    values: dict = {
        "payment_status": PaymentStatus.PAID,
        "payment_confirmed_at": now,
        "payment_confirmed_by": confirmed_by,
    }
    if reference is not None:
        values["payment_reference"] = reference
    payment_guard = JobRequest.payment_status.in_(expected)

    changed = await conditional_update(
        db,
        job_id,
        [payment_guard, JobRequest.status == JobStatus.ACCEPTED],
        {**values, "status": JobStatus.IN_PROGRESS},
    )
    if not changed:
        changed = await conditional_update(db, job_id, [payment_guard], values)
    if not changed:
        return False

    await db.commit()
    job = await _get_job(db, job_id)
    logger.info("Job %s paid (reference %s)", job_id, job.payment_reference)
    send_invoice(await _build_invoice(db, job))
    return True


# ---------------------------------------------------------------------------
# Hosted gateway
# ---------------------------------------------------------------------------

async def start_checkout(
    db: AsyncSession, customer: Profile, data: JobCreate, return_url: str | None = None
) -> tuple[JobRequest, str]:
    """Create the job and a hosted payment URL for it.

    If no URL can be produced the provisional job is deleted, provided it
    is still unpaid and unassigned.
    """
    job = await create_job(db, customer.id, data)
    try:
        payment_url = await gateway.create_payment_url(job, customer, return_url)
    except gateway.PaymentGatewayError as exc:
        logger.warning("Checkout for job %s failed: %s", job.id, exc)
        await db.execute(
            delete(JobRequest).where(
                JobRequest.id == job.id,
                JobRequest.payment_status == PaymentStatus.PENDING,
                JobRequest.accepted_provider_id.is_(None),
            )
        )
        await db.commit()
        raise HTTPException(status_code=502, detail="Unable to start payment. Please try again.")
    return job, payment_url


async def apply_gateway_result(
    db: AsyncSession,
    job_id: uuid.UUID,
    success: bool,
    reference: str | None,
    now: datetime | None = None,
) -> tuple[str, PaymentStatus]:
    """Apply a verified gateway outcome. Returns (outcome, payment_status)."""
    now = now or datetime.now(UTC)
    if success:
        changed = await _mark_paid(
            db, job_id, {PaymentStatus.PENDING}, confirmed_by=None, now=now, reference=reference,
        )
    else:
        changed = await conditional_update(
            db,
            job_id,
            [JobRequest.payment_status == PaymentStatus.PENDING],
            {"payment_status": PaymentStatus.FAILED},
        )
        if changed:
            await db.commit()
            logger.info("Job %s payment failed at gateway", job_id)

    job = await _get_job(db, job_id)
    if not changed:
        logger.info("Gateway result for job %s already processed (%s)", job_id, job.payment_status.value)
        return "already_processed", job.payment_status
    return "processed", job.payment_status


async def verify_payment_return(
    db: AsyncSession,
    job_id: uuid.UUID,
    user_id: uuid.UUID,
    attempts: int | None = None,
    delay_seconds: float | None = None,
) -> tuple[str, PaymentStatus, int]:
    """Poll the job after the customer returns from the hosted page.

    Reads only. A payment still unresolved after the last attempt reports
    ``timed_out`` and is left for the webhook to settle.
    """
    attempts = attempts if attempts is not None else settings.payment_poll_attempts
    delay_seconds = delay_seconds if delay_seconds is not None else settings.payment_poll_delay_seconds

    job = await _get_job(db, job_id)
    _assert_party(job, user_id, allowed="customer")

    for attempt in range(1, attempts + 1):
        job = await _get_job(db, job_id)
        if job.payment_status == PaymentStatus.PAID:
            return "paid", job.payment_status, attempt
        if job.payment_status == PaymentStatus.FAILED:
            return "failed", job.payment_status, attempt
        if attempt < attempts:
            await asyncio.sleep(delay_seconds)
    return "timed_out", job.payment_status, attempts


# ---------------------------------------------------------------------------
# Manual reference
# ---------------------------------------------------------------------------

async def submit_payment_reference(
    db: AsyncSession, job_id: uuid.UUID, customer_id: uuid.UUID, reference: str
) -> JobRequest:
    """Customer reports a bank-transfer reference for an accepted job."""
    job = await _get_job(db, job_id)
    _assert_party(job, customer_id, allowed="customer")
    if job.status != JobStatus.ACCEPTED or job.accepted_provider_id is None:
        raise HTTPException(status_code=409, detail="Payment can only be submitted once a provider accepts")

    changed = await conditional_update(
        db,
        job_id,
        [
            JobRequest.status == JobStatus.ACCEPTED,
            JobRequest.payment_status.in_([PaymentStatus.PENDING, PaymentStatus.FAILED]),
        ],
        {
            "payment_status": PaymentStatus.AWAITING_CONFIRMATION,
            "payment_reference": reference.strip(),
        },
    )
    if not changed:
        current = await _get_job(db, job_id)
        raise HTTPException(
            status_code=409, detail=f"Payment is already {current.payment_status.value}",
        )
    await db.commit()
    job = await _get_job(db, job_id)

    notify(Notification(
        type=NotificationType.PAYMENT_SUBMITTED,
        recipient_id=job.accepted_provider_id,
        job_id=job.id,
        job_title=job.title,
        additional_data={"paymentReference": job.payment_reference, "amount": str(job.final_price)},
    ))
    return job


async def confirm_manual_payment(
    db: AsyncSession, job_id: uuid.UUID, provider_id: uuid.UUID, now: datetime | None = None
) -> JobRequest:
    """Provider attests that the customer's transfer arrived."""
    now = now or datetime.now(UTC)
    job = await _get_job(db, job_id)
    _assert_party(job, provider_id, allowed="provider")
    if job.payment_status != PaymentStatus.AWAITING_CONFIRMATION:
        raise HTTPException(
            status_code=409, detail=f"Payment is {job.payment_status.value}, not awaiting confirmation",
        )

    if not await _mark_paid(
        db, job_id, {PaymentStatus.AWAITING_CONFIRMATION}, confirmed_by=provider_id, now=now,
    ):
        current = await _get_job(db, job_id)
        raise HTTPException(status_code=409, detail=f"Payment is already {current.payment_status.value}")
    job = await _get_job(db, job_id)

    notify(Notification(
        type=NotificationType.PAYMENT_CONFIRMED,
        recipient_id=job.customer_id,
        job_id=job.id,
        job_title=job.title,
        additional_data={"amount": str(job.final_price)},
    ))
    return job


# ---------------------------------------------------------------------------
# Simulated
# ---------------------------------------------------------------------------

async def simulate_payment(
    db: AsyncSession, job_id: uuid.UUID, customer_id: uuid.UUID, now: datetime | None = None
) -> JobRequest:
    """Mark a job paid without any gateway. Test environments only."""
    if not settings.test_payments_enabled:
        raise HTTPException(status_code=403, detail="Test payments are disabled")
    now = now or datetime.now(UTC)
    job = await _get_job(db, job_id)
    _assert_party(job, customer_id, allowed="customer")

    reference = f"TEST-{int(now.timestamp() * 1000)}-{secrets.token_hex(3)}"
    if not await _mark_paid(
        db,
        job_id,
        {PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentStatus.AWAITING_CONFIRMATION},
        confirmed_by=customer_id,
        now=now,
        reference=reference,
    ):
        raise HTTPException(status_code=409, detail="Job is already paid")
    job = await _get_job(db, job_id)

    if job.accepted_provider_id is not None:
        notify(Notification(
            type=NotificationType.PAYMENT_CONFIRMED,
            recipient_id=job.accepted_provider_id,
            job_id=job.id,
            job_title=job.title,
            additional_data={"amount": str(job.final_price)},
        ))
    return job
