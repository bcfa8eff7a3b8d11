"""Error envelopes for dispatcher responses.

Maps HTTPError exceptions and unexpected failures to JSON responses in
the same envelope shape as successful results.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from waypoint.errors import HTTPError
from waypoint.http.response import Response, json_response

logger = logging.getLogger("waypoint.server")


def response_meta(request_id: str, version: str) -> dict[str, str]:
    """The ``meta`` block attached to every envelope."""
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "requestId": request_id,
        "version": version,
    }


def success_response(data: Any, request_id: str, version: str) -> Response:
    """Wrap a handler result in the success envelope."""
    return json_response(
        {"success": True, "data": data, "meta": response_meta(request_id, version)},
    )


def error_response(
    status: int,
    code: str,
    message: str,
    request_id: str,
    version: str,
    details: dict[str, Any] | None = None,
) -> Response:
    """Build an error envelope response."""
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return json_response(
        {"success": False, "error": error, "meta": response_meta(request_id, version)},
        status=status,
    )


def handle_http_error(
    exc: HTTPError,
    method: str,
    path: str,
    request_id: str,
    version: str,
) -> Response:
    """Map an HTTPError to its JSON envelope, keeping its headers."""
    logger.debug("%d %s %s — %s [%s]", exc.status, method, path, exc.detail, request_id)
    response = error_response(
        exc.status,
        exc.code,
        exc.detail or f"Error {exc.status}",
        request_id,
        version,
        details=exc.details(),
    )
    return response.with_headers(exc.headers)


def handle_internal_error(
    exc: Exception,
    method: str,
    path: str,
    request_id: str,
    version: str,
    *,
    debug: bool,
) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s [%s]", method, path, request_id)
    message = f"{type(exc).__name__}: {exc}" if debug else "An internal server error occurred"
    return error_response(500, "INTERNAL_ERROR", message, request_id, version)
