"""Email sending service.

Supports two backends:
- SMTP via aiosmtplib (production)
- Log-only (development / testing): logs the email instead of sending

Set EMAIL_BACKEND=smtp and configure SMTP_* settings for production.
Used for payout receipts and autopay confirmations.
"""

import logging
from decimal import Decimal
from typing import Protocol

from lawnconnect.config import settings

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, body: str) -> None: ...


class LogEmailSender:
    """Development sender: logs email content instead of sending."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("EMAIL to=%s subject=%s\n%s", to, subject, body)


class SmtpEmailSender:
    """Production sender: sends via SMTP."""

    async def send(self, to: str, subject: str, body: str) -> None:
        import aiosmtplib
        from email.message import EmailMessage

        msg = EmailMessage()
        msg["From"] = settings.smtp_from_address
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)

        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            use_tls=settings.smtp_use_tls,
        )


def get_email_sender() -> EmailSender:
    if settings.email_backend == "smtp":
        return SmtpEmailSender()
    return LogEmailSender()


def format_jmd(amount: Decimal) -> str:
    return f"J${amount:,.2f}"


async def send_payout_email(
    to: str, provider_name: str | None, amount: Decimal, jobs_count: int
) -> None:
    sender = get_email_sender()
    body = (
        f"Hi {provider_name or 'there'},\n\n"
        f"Your payout of {format_jmd(amount)} for {jobs_count} completed "
        f"job{'s' if jobs_count != 1 else ''} has been processed and will be "
        "deposited to your verified bank account within 1-3 business days.\n\n"
        "Thank you for working with LawnConnect."
    )
    await sender.send(to, f"Payout Processed - {format_jmd(amount)}", body)


async def send_autopay_email(
    to: str, customer_name: str | None, location: str, scheduled_for: str, amount: Decimal
) -> None:
    sender = get_email_sender()
    body = (
        f"Hi {customer_name or 'there'},\n\n"
        f"Your recurring lawn service at {location} has been scheduled for "
        f"{scheduled_for}. {format_jmd(amount)} was charged to your saved card "
        "and the job is now open for providers.\n\n"
        "You can manage your autopay settings at any time from your dashboard."
    )
    await sender.send(to, "Your lawn service has been scheduled", body)
