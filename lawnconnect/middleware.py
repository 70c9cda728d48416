"""Request body cap and response security headers."""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from lawnconnect.config import settings

_BODY_METHODS = frozenset({"POST", "PATCH", "PUT"})

SECURITY_HEADERS: dict[str, str] = {
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # Job, payment and banking responses are per-user
    "Cache-Control": "no-store",
}


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject writes whose declared Content-Length exceeds max_bytes."""

    def __init__(self, app, max_bytes: int | None = None) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self.max_bytes = max_bytes or settings.max_request_body_bytes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        declared = request.headers.get("content-length")
        if request.method not in _BODY_METHODS or declared is None:
            return await call_next(request)
        if not declared.isdigit():
            return JSONResponse(status_code=400, content={"detail": "Invalid Content-Length"})
        if int(declared) > self.max_bytes:
            return JSONResponse(
                status_code=413,
                content={"detail": f"Request body too large (max {self.max_bytes} bytes)"},
            )
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response
