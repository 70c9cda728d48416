"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lawnconnect.config import settings
from lawnconnect.errors import register_error_handlers
from lawnconnect.middleware import BodySizeLimitMiddleware, SecurityHeadersMiddleware
from lawnconnect.routers import admin, autopay, cron, jobs, payments, providers, reviews
from lawnconnect.services.notifications import drain_background_tasks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    if settings.test_payments_enabled and settings.env == "production":
        logger.warning("Test payments are enabled in production")
    if not settings.payout_percents_sum_to_one:
        logger.warning(
            "platform_fee_percent (%s) and provider_payout_percent (%s) do not sum to 1",
            settings.platform_fee_percent, settings.provider_payout_percent,
        )

    yield

    # Let in-flight notifications finish before the loop closes
    await drain_background_tasks()


app = FastAPI(
    title="LawnConnect Marketplace",
    description="Lawn-care marketplace: jobs, escrow-style payments, autopay and provider payouts",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS - restrict to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware (outermost first)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(BodySizeLimitMiddleware)

register_error_handlers(app)

# Routers
app.include_router(jobs.router)
app.include_router(jobs.proposals_router)
app.include_router(payments.router)
app.include_router(autopay.router)
app.include_router(reviews.router)
app.include_router(providers.router)
app.include_router(admin.router)
app.include_router(cron.router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
