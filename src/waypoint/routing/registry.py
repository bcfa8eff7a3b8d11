"""Route registry — ordered storage, lookup, and introspection.

Routes are registered during start-up and read concurrently afterwards.
Lookup scans the routes of one method in registration order and returns
the first compiled pattern that matches, so when a literal and a
parameter template overlap, whichever was registered first wins.
"""

import logging

from waypoint.errors import DuplicateRouteError
from waypoint.routing.pattern import PathPattern, compile_path
from waypoint.routing.route import (
    HttpMethod,
    RegistryStats,
    RouteDefinition,
    RouteMatch,
    route_key,
)
from waypoint.schema.base import Schema

logger = logging.getLogger("waypoint.routing")


class _CompiledRoute:
    """A definition paired with its compiled pattern."""

    __slots__ = ("definition", "pattern")

    def __init__(self, definition: RouteDefinition, pattern: PathPattern) -> None:
        self.definition = definition
        self.pattern = pattern


class RouteRegistry:
    """Registry of declared endpoints.

    Usage::

        registry = RouteRegistry()
        registry.register(RouteDefinition("GET", "/api/v1/items/:id", ...))
        match = registry.find_route("get", "/api/v1/items/42")
        match.params  # {"id": "42"}

    Mutation (``register``/``clear``) belongs to start-up and test setup.
    Lookups never lock and never raise for a missing route.
    """

    __slots__ = ("_by_method", "_routes")

    def __init__(self) -> None:
        # Insertion-ordered: key -> compiled route
        self._routes: dict[str, _CompiledRoute] = {}
        # Per-method scan lists, also in registration order
        self._by_method: dict[HttpMethod, list[_CompiledRoute]] = {m: [] for m in HttpMethod}

    def __len__(self) -> int:
        return len(self._routes)

    # -- Registration --

    def register(self, definition: RouteDefinition) -> None:
        """Add a route.

        Raises ``DuplicateRouteError`` if the method and path template are
        already registered; the registry is left unchanged. Raises
        ``ConfigurationError`` if the template is malformed.
        """
        key = definition.key
        if key in self._routes:
            raise DuplicateRouteError(definition.method.value, definition.path)

        pattern = compile_path(definition.path)
        compiled = _CompiledRoute(definition, pattern)
        self._routes[key] = compiled
        self._by_method[definition.method].append(compiled)

        logger.debug(
            "Route registered: %s %s tags=%s params=%s",
            definition.method.value,
            definition.path,
            list(definition.tags),
            list(pattern.param_names),
        )

    def clear(self) -> None:
        """Remove every route. Intended for test isolation."""
        self._routes.clear()
        for routes in self._by_method.values():
            routes.clear()
        logger.debug("Route registry cleared")

    # -- Lookup --

    def find_route(self, method: str, path: str) -> RouteMatch | None:
        """Return the first route of *method* whose template matches *path*.

        *method* is case-insensitive. Returns ``None`` when nothing matches,
        including for methods outside ``HttpMethod``.
        """
        canonical = HttpMethod.lookup(method)
        if canonical is None:
            return None

        for compiled in self._by_method[canonical]:
            params = compiled.pattern.match(path)
            if params is not None:
                return RouteMatch(route=compiled.definition, params=params)
        return None

    def find_allowed_methods(self, path: str) -> tuple[HttpMethod, ...]:
        """Methods that have at least one route matching *path*.

        Empty when the path matches nothing. Used to answer 405 with an
        ``Allow`` header instead of 404.
        """
        return tuple(
            method
            for method, routes in self._by_method.items()
            if any(c.pattern.match(path) is not None for c in routes)
        )

    def has_route(self, method: str, path: str) -> bool:
        """Exact ``(method, path template)`` check. No pattern matching."""
        return self._get(method, path) is not None

    def _get(self, method: str, path: str) -> RouteDefinition | None:
        canonical = HttpMethod.lookup(method)
        if canonical is None:
            return None
        compiled = self._routes.get(route_key(canonical, path))
        return compiled.definition if compiled is not None else None

    # -- Introspection --

    def get_all_routes(self) -> list[RouteDefinition]:
        """All definitions in registration order. A fresh list on each call."""
        return [c.definition for c in self._routes.values()]

    def get_routes_by_tag(self, tag: str) -> list[RouteDefinition]:
        """Definitions carrying *tag*. Empty for unknown tags."""
        return [r for r in self.get_all_routes() if tag in r.tags]

    def get_tags(self) -> list[str]:
        """Every tag in use, sorted, without duplicates."""
        return sorted({tag for c in self._routes.values() for tag in c.definition.tags})

    def get_response_schema(self, method: str, path: str) -> Schema | None:
        """Success schema for an exact route, or ``None``."""
        route = self._get(method, path)
        return route.response if route is not None else None

    def get_error_response_schema(self, method: str, path: str, status: int) -> Schema | None:
        """Error schema for an exact route and status, or ``None``."""
        route = self._get(method, path)
        if route is None:
            return None
        return route.error_responses.get(status)

    def get_route_count(self) -> int:
        return len(self._routes)

    def get_stats(self) -> RegistryStats:
        """Totals, tags, and a count for every method (zero included)."""
        return RegistryStats(
            total_routes=len(self._routes),
            tags=tuple(self.get_tags()),
            routes_by_method={method: len(routes) for method, routes in self._by_method.items()},
        )
