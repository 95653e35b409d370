import logging
from typing import Any, Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class ClientInputError(Exception):
    """Submission rejected before any job exists (no files, bad metadata, disallowed type, nothing parsed). Maps to HTTP 400."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


def as_http_400(e: ClientInputError) -> HTTPException:
    """Return a 400 HTTPException whose detail is the client-facing reason (plus validation details when present)."""
    if e.details:
        return HTTPException(status_code=400, detail={"error": e.message, "details": e.details})
    return HTTPException(status_code=400, detail=e.message)


def as_http_500(e: Exception) -> HTTPException:
    """Log exception and return a generic 500 HTTPException (no internal details leaked).
    Why available: Centralized error handling so API never leaks stack traces or internal state to clients."""
    logger.error("unhandled_error", exc_info=e)
    return HTTPException(status_code=500, detail="Internal server error")
