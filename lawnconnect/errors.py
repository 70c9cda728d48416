"""Database error sanitization.

Raw driver messages leak table and constraint names, so they are logged
and replaced with a user-facing message keyed on the SQLSTATE code.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "An unexpected error occurred. Please try again."

# SQLSTATE -> (HTTP status, message)
_SQLSTATE_MESSAGES: dict[str, tuple[int, str]] = {
    "23505": (409, "This item already exists. Please try something different."),
    "23503": (409, "This action references data that doesn't exist. Please refresh and try again."),
    "23502": (422, "Please fill in all required fields."),
    "23514": (422, "Unable to complete this action. Please check your input and try again."),
    "22P02": (422, "Invalid input format. Please check your input and try again."),
    "42501": (403, "You don't have permission to perform this action."),
}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if isinstance(code, str):
            return code
    cause = getattr(orig, "__cause__", None)
    code = getattr(cause, "sqlstate", None)
    return code if isinstance(code, str) else None


def sanitize_db_error(exc: DBAPIError) -> tuple[int, str]:
    """Map a database error to (status_code, safe message)."""
    code = _sqlstate(exc)
    if code in _SQLSTATE_MESSAGES:
        return _SQLSTATE_MESSAGES[code]
    return 500, GENERIC_MESSAGE


async def db_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, DBAPIError):
        raise exc
    status_code, message = sanitize_db_error(exc)
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=status_code, content={"detail": message})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DBAPIError, db_error_handler)
