"""Route declarations and lookup results as frozen dataclasses."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any, TypeAlias

from waypoint.errors import ConfigurationError
from waypoint.schema.base import Schema


class HttpMethod(StrEnum):
    """The closed set of methods a route may be declared with."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: str) -> HttpMethod:
        """Case-insensitive parse. Raises ``ConfigurationError`` if unknown."""
        try:
            return cls(value.upper())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            msg = f"Unsupported HTTP method {value!r}. Expected one of: {allowed}"
            raise ConfigurationError(msg) from None

    @classmethod
    def lookup(cls, value: str) -> HttpMethod | None:
        """Case-insensitive parse that returns ``None`` for unknown methods."""
        try:
            return cls(value.upper())
        except ValueError:
            return None


# Route handler — receives a RequestContext, may be sync or async
RouteHandler: TypeAlias = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class RouteDefinition:
    """A declared endpoint. Immutable once created.

    ``method`` may be given as any-case string; it is stored as an
    ``HttpMethod``. ``tags`` keep their declaration order.

    Usage::

        RouteDefinition(
            method="GET",
            path="/api/v1/sessions/:sessionId",
            description="Retrieve a stored session",
            response=schema_of(SessionResponse),
            tags=("Sessions",),
            params=schema_of(SessionParams, coerce=True),
            error_responses={404: schema_of(ErrorBody)},
            handler=get_session,
        )
    """

    method: HttpMethod
    path: str
    description: str
    response: Schema
    tags: tuple[str, ...] = ()
    params: Schema | None = None
    query: Schema | None = None
    body: Schema | None = None
    error_responses: Mapping[int, Schema] = field(default_factory=dict, compare=False)
    handler: RouteHandler | None = field(default=None, compare=False)
    summary: str | None = None

    def __post_init__(self) -> None:
        method = self.method if isinstance(self.method, HttpMethod) else HttpMethod.parse(self.method)
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "error_responses", MappingProxyType(dict(self.error_responses)))
        if not self.description or not self.description.strip():
            msg = f"Route {method} {self.path} needs a description"
            raise ConfigurationError(msg)

    @property
    def key(self) -> str:
        """Canonical ``METHOD:path`` key used for duplicate detection."""
        return route_key(self.method, self.path)


def route_key(method: HttpMethod, path: str) -> str:
    """Build the canonical key for a ``(method, path template)`` pair."""
    return f"{method.value}:{path}"


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route lookup."""

    route: RouteDefinition
    params: dict[str, str]


@dataclass(frozen=True, slots=True)
class RegistryStats:
    """Aggregate counts over the registered routes.

    ``routes_by_method`` always has one entry per ``HttpMethod``.
    """

    total_routes: int
    tags: tuple[str, ...]
    routes_by_method: Mapping[HttpMethod, int] = field(compare=False)
