"""Routing — path templates, route declarations, and the registry.

Routes are registered during start-up and read without locking for the
rest of the process lifetime.
"""

from waypoint.routing.pattern import PathPattern, PathSegment, compile_path
from waypoint.routing.registry import RouteRegistry
from waypoint.routing.route import HttpMethod, RegistryStats, RouteDefinition, RouteMatch

__all__ = [
    "HttpMethod",
    "PathPattern",
    "PathSegment",
    "RegistryStats",
    "RouteDefinition",
    "RouteMatch",
    "RouteRegistry",
    "compile_path",
]
