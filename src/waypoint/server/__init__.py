"""Request dispatch — an ASGI application over a route registry."""

from waypoint.server.context import RequestContext
from waypoint.server.dispatch import Dispatcher

__all__ = ["Dispatcher", "RequestContext"]
