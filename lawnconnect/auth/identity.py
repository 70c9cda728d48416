"""Bearer-token authentication against the Supabase auth API."""

import uuid
from typing import Any, Protocol

import httpx
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lawnconnect.config import settings
from lawnconnect.database import get_db
from lawnconnect.models.profile import Profile


class IdentityProvider(Protocol):
    async def resolve_user_id(self, token: str) -> uuid.UUID: ...


class SupabaseIdentityProvider:
    """Resolves a bearer token by asking Supabase who it belongs to."""

    def __init__(self, supabase_url: str, anon_key: str, timeout_seconds: float) -> None:
        self.supabase_url = supabase_url
        self.anon_key = anon_key
        self.timeout_seconds = timeout_seconds

    async def resolve_user_id(self, token: str) -> uuid.UUID:
        user = await self._fetch_user(token)
        try:
            return uuid.UUID(str(user.get("id")))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid bearer token")

    async def _fetch_user(self, token: str) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {token}",
            "apikey": self.anon_key,
        }
        url = f"{self.supabase_url.rstrip('/')}/auth/v1/user"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Auth verification unavailable",
            ) from exc

        if response.status_code in {401, 403}:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid bearer token")
        if response.status_code != 200:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Auth verification failed",
            )
        return response.json()


def get_identity_provider() -> IdentityProvider:
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auth is not configured",
        )
    return SupabaseIdentityProvider(
        settings.supabase_url, settings.supabase_anon_key, settings.auth_timeout_seconds
    )


class AuthenticatedUser:
    """Container for the verified user context."""

    def __init__(self, user_id: uuid.UUID, profile: Profile) -> None:
        self.user_id = user_id
        self.profile = profile

    @property
    def is_admin(self) -> bool:
        return self.profile.is_admin


def bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.split(" ", maxsplit=1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Empty bearer token")
    return token


async def verify_request(
    authorization: str | None = Header(default=None),
    identity: IdentityProvider = Depends(get_identity_provider),
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedUser:
    """Resolve the bearer token to a user and load their profile."""
    token = bearer_token(authorization)
    user_id = await identity.resolve_user_id(token)

    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Profile not found")
    return AuthenticatedUser(user_id=user_id, profile=profile)


async def require_admin(
    auth: AuthenticatedUser = Depends(verify_request),
) -> AuthenticatedUser:
    if not auth.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return auth
