"""Notification and invoice dispatch.

Dispatch is fire-and-forget: callers never await delivery, and a failed
delivery is logged and dropped. A committed state change is never rolled
back or delayed because a notification could not be sent.

Backends follow the email sender pattern:
- ``log`` (default) logs the payload
- ``http`` POSTs the JSON payload to the configured URL via httpx
"""

import asyncio
import enum
import logging
import uuid
from collections.abc import Coroutine
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

import httpx

from lawnconnect.config import settings

logger = logging.getLogger(__name__)


class NotificationType(enum.Enum):
    PROPOSAL_RECEIVED = "proposal_received"
    PROPOSAL_ACCEPTED = "proposal_accepted"
    JOB_CONFIRMED = "job_confirmed"
    PAYMENT_SUBMITTED = "payment_submitted"
    PAYMENT_CONFIRMED = "payment_confirmed"
    JOB_COMPLETED = "job_completed"
    REVIEW_RECEIVED = "review_received"
    DISPUTE_OPENED = "dispute_opened"


@dataclass
class Notification:
    type: NotificationType
    recipient_id: uuid.UUID
    job_id: uuid.UUID | None = None
    job_title: str | None = None
    additional_data: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "type": self.type.value,
            "recipientId": str(self.recipient_id),
            "jobId": str(self.job_id) if self.job_id else None,
            "jobTitle": self.job_title,
            "additionalData": self.additional_data,
        }


@dataclass
class Invoice:
    """Snapshot of a completed payment, sent to the invoice dispatcher."""
    job_id: uuid.UUID
    customer_id: uuid.UUID
    customer_email: str | None
    customer_name: str | None
    location: str
    parish: str
    lawn_size: str | None
    amount: Decimal
    platform_fee: Decimal | None
    payment_reference: str | None

    def to_payload(self) -> dict:
        return {
            "jobId": str(self.job_id),
            "customerId": str(self.customer_id),
            "customerEmail": self.customer_email,
            "customerName": self.customer_name,
            "location": self.location,
            "parish": self.parish,
            "lawnSize": self.lawn_size,
            "amount": str(self.amount),
            "platformFee": str(self.platform_fee) if self.platform_fee is not None else None,
            "paymentReference": self.payment_reference,
        }


class Dispatcher(Protocol):
    async def dispatch(self, payload: dict) -> None: ...


class LogDispatcher:
    def __init__(self, kind: str) -> None:
        self.kind = kind

    async def dispatch(self, payload: dict) -> None:
        logger.info("DISPATCH %s %s", self.kind, payload)


class HttpDispatcher:
    def __init__(self, url: str) -> None:
        self.url = url

    async def dispatch(self, payload: dict) -> None:
        headers = {"Authorization": f"Bearer {settings.service_role_key}"}
        async with httpx.AsyncClient(timeout=settings.dispatch_timeout_seconds) as client:
            response = await client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()


def get_notification_dispatcher() -> Dispatcher:
    if settings.notification_backend == "http" and settings.notification_url:
        return HttpDispatcher(settings.notification_url)
    return LogDispatcher("notification")


def get_invoice_dispatcher() -> Dispatcher:
    if settings.invoice_backend == "http" and settings.invoice_url:
        return HttpDispatcher(settings.invoice_url)
    return LogDispatcher("invoice")


# ---------------------------------------------------------------------------
# Background task tracking
# ---------------------------------------------------------------------------

_background_tasks: set[asyncio.Task] = set()


async def _run_quietly(coro: Coroutine[Any, Any, None], description: str) -> None:
    try:
        await coro
    except Exception:
        logger.exception("Background dispatch failed: %s", description)


def fire_and_forget(coro: Coroutine[Any, Any, None], description: str = "dispatch") -> asyncio.Task:
    """Schedule coro without awaiting it. Failures are logged, never raised."""
    task = asyncio.create_task(_run_quietly(coro, description))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks() -> None:
    """Wait for in-flight dispatches (application shutdown and tests)."""
    while _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


def notify(notification: Notification) -> asyncio.Task:
    dispatcher = get_notification_dispatcher()
    return fire_and_forget(
        dispatcher.dispatch(notification.to_payload()),
        f"{notification.type.value} -> {notification.recipient_id}",
    )


def send_invoice(invoice: Invoice) -> asyncio.Task:
    dispatcher = get_invoice_dispatcher()
    return fire_and_forget(
        dispatcher.dispatch(invoice.to_payload()),
        f"invoice for job {invoice.job_id}",
    )
