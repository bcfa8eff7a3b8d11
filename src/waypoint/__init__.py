"""Waypoint — a typed route registry and request dispatcher.

Declare endpoints once, with their schemas and metadata, then use the
same registry to dispatch requests and to generate OpenAPI documentation.

Basic usage::

    from waypoint import ApiConfig, Dispatcher, RouteDefinition, RouteRegistry
    from waypoint.schema import schema_of

    registry = RouteRegistry()
    registry.register(
        RouteDefinition(
            method="GET",
            path="/api/v1/items/:id",
            description="Fetch one item",
            response=schema_of(Item),
            tags=("Items",),
            handler=get_item,
        )
    )

    match = registry.find_route("GET", "/api/v1/items/42")
    app = Dispatcher(registry, ApiConfig())
"""

__version__ = "0.1.0"
__all__ = [
    "ApiConfig",
    "BadRequest",
    "ConfigurationError",
    "Dispatcher",
    "DuplicateRouteError",
    "HTTPError",
    "HttpMethod",
    "MethodNotAllowed",
    "NotFound",
    "OpenAPIGenerator",
    "RequestContext",
    "RouteDefinition",
    "RouteMatch",
    "RouteRegistry",
    "WaypointError",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import waypoint`` fast while providing a clean top-level API.
    """
    if name == "ApiConfig":
        from waypoint.config import ApiConfig

        return ApiConfig

    if name in ("HttpMethod", "RouteDefinition", "RouteMatch"):
        from waypoint.routing import route as _route

        return getattr(_route, name)

    if name == "RouteRegistry":
        from waypoint.routing.registry import RouteRegistry

        return RouteRegistry

    if name == "OpenAPIGenerator":
        from waypoint.openapi import OpenAPIGenerator

        return OpenAPIGenerator

    if name in ("Dispatcher", "RequestContext"):
        from waypoint import server as _server

        return getattr(_server, name)

    if name in (
        "BadRequest",
        "ConfigurationError",
        "DuplicateRouteError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "WaypointError",
    ):
        from waypoint import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
