"""Hosted payment page client.

Only payment-URL creation lives here. The gateway reports the outcome
asynchronously through the signed webhook handled in services.payments.
"""

import logging

import httpx

from lawnconnect.config import settings
from lawnconnect.models.job import JobRequest
from lawnconnect.models.profile import Profile

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """The gateway could not produce a payment URL."""


async def create_payment_url(job: JobRequest, customer: Profile, return_url: str | None = None) -> str:
    if not settings.payment_gateway_url:
        raise PaymentGatewayError("Payment gateway is not configured")

    payload = {
        "jobId": str(job.id),
        "amount": str(job.final_price),
        "currency": "JMD",
        "description": job.title,
        "customerEmail": customer.email,
        "customerName": customer.full_name,
        "returnUrl": return_url,
    }
    headers = {"Authorization": f"Bearer {settings.payment_gateway_api_key}"}
    try:
        async with httpx.AsyncClient(timeout=settings.dispatch_timeout_seconds) as client:
            response = await client.post(settings.payment_gateway_url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise PaymentGatewayError(f"Gateway request failed: {exc}") from exc

    if response.status_code != 200:
        raise PaymentGatewayError(f"Gateway returned HTTP {response.status_code}")
    try:
        body = response.json()
    except ValueError as exc:
        raise PaymentGatewayError("Gateway returned a malformed response") from exc
    payment_url = body.get("paymentUrl") if isinstance(body, dict) else None
    if not payment_url:
        raise PaymentGatewayError("Gateway returned no payment URL")
    return payment_url
