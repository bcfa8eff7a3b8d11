"""Waypoint exception hierarchy.

Shared across the registry, the dispatcher, and user handlers so every
module raises and catches the same types.
"""

from dataclasses import dataclass, field
from typing import Any


class WaypointError(Exception):
    """Base for all waypoint-specific errors."""


class ConfigurationError(WaypointError):
    """Raised when a route declaration is invalid.

    Always raised during start-up registration, never while serving.
    """


class DuplicateRouteError(ConfigurationError):
    """A route with the same method and path template is already registered."""

    def __init__(self, method: str, path: str) -> None:
        self.method = method
        self.path = path
        super().__init__(f"Route already registered: {method} {path}")


@dataclass(frozen=True, slots=True, eq=False)
class HTTPError(WaypointError):
    """An error that maps directly to an HTTP status code.

    Raised by the dispatcher or by handlers. The dispatcher catches these
    and renders the standard JSON error envelope.
    """

    status: int
    detail: str = ""
    code: str = "HTTP_ERROR"
    headers: tuple[tuple[str, str], ...] = ()
    errors: dict[str, list[str]] = field(default_factory=dict)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)

    def details(self) -> dict[str, Any] | None:
        """Structured details for the error body, if any."""
        if self.errors:
            return {"fields": self.errors}
        return None


class BadRequest(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """400 — request failed validation."""

    def __init__(
        self,
        detail: str = "Bad Request",
        *,
        code: str = "BAD_REQUEST",
        errors: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(status=400, detail=detail, code=code, errors=errors or {})


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "API endpoint not found", *, code: str = "NOT_FOUND") -> None:
        super().__init__(status=404, detail=detail, code=code)


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405 — the path exists but not for this HTTP method.

    Carries an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: tuple[str, ...], detail: str = "") -> None:
        allow_value = ", ".join(allowed)
        noun = "method" if len(allowed) == 1 else "methods"
        super().__init__(
            status=405,
            detail=detail or f"Only {allow_value} {noun} allowed",
            code="METHOD_NOT_ALLOWED",
            headers=(("Allow", allow_value),),
        )
