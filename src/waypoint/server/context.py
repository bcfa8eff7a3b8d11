"""Per-request context handed to route handlers."""

from dataclasses import dataclass, field
from typing import Any

from waypoint.routing.route import RouteDefinition


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Validated request data for one call of a route handler.

    ``params``, ``query`` and ``body`` hold the values produced by the
    route's schemas (coerced where the schema coerces). Without a schema
    they hold the raw strings, the raw query mapping, and the decoded
    JSON body respectively.
    """

    route: RouteDefinition
    request_id: str
    params: dict[str, Any] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    headers: tuple[tuple[str, str], ...] = ()

    def header(self, name: str) -> str | None:
        """First value of request header *name* (case-insensitive)."""
        lowered = name.lower()
        for key, value in self.headers:
            if key == lowered:
                return value
        return None
