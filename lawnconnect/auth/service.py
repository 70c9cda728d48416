"""Service-role credential check for cron endpoints.

Runs before any database dependency so an unauthenticated caller never
touches the store.
"""

import hmac

from fastapi import Header, HTTPException, status

from lawnconnect.auth.identity import bearer_token
from lawnconnect.config import settings


async def require_service_role(authorization: str | None = Header(default=None)) -> None:
    token = bearer_token(authorization)
    if not settings.service_role_key or not hmac.compare_digest(token, settings.service_role_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service credential")
