"""Global exception handlers — map engine exceptions to HTTP status codes.

The session manager raises ``ValueError`` for missing sessions and for a
full session table; the form store raises ``KeyError`` for unknown slugs.
Rather than catching these in every route, global handlers inspect the
exception and pick the status code, keeping route handlers on the happy path.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# --- Keyword patterns in ValueError messages and their HTTP status codes ---
# Checked in order; first match wins.
_VALUE_ERROR_PATTERNS: list[tuple[str, int]] = [
    ("not found", 404),
    ("limit reached", 429),
]


# --- Client-safe messages keyed by HTTP status code ---
# Session ids and form internals stay in the server log.
_SAFE_MESSAGES: dict[int, str] = {
    404: "Resource not found",
    429: "Too many active sessions",
    400: "Invalid request",
}


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map ``ValueError`` to 404 (not found), 429 (session limit) or 400.

    The raw exception message is logged server-side but never sent to the
    client.
    """
    msg = str(exc)
    status = 400
    for pattern, code in _VALUE_ERROR_PATTERNS:
        if pattern in msg.lower():
            status = code
            break

    logger.warning("ValueError [%d] at %s: %s", status, request.url, msg)
    return JSONResponse(status_code=status, content={"detail": _SAFE_MESSAGES[status]})


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Map ``KeyError`` (unknown form slug) to 404."""
    logger.warning("KeyError at %s: %s", request.url, exc)
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
