"""ASGI dispatcher — resolves requests against a route registry.

The only component that touches raw ASGI for serving. Each request is
looked up in the registry, its path/query/body are validated against
the route's schemas, and the handler result is sent back as JSON.

Outcome mapping:

- no route for the path: 404 ``NOT_FOUND``
- path exists under other methods: 405 ``METHOD_NOT_ALLOWED`` + ``Allow``
- schema validation failure: 400 ``VALIDATION_ERROR``
- unparseable JSON body: 400 ``INVALID_JSON``
- route without handler: 501 ``NOT_IMPLEMENTED``
- handler slower than ``request_timeout``: 504 ``REQUEST_TIMEOUT``
- handler raised ``HTTPError``: its status and code
- anything else: 500 ``INTERNAL_ERROR`` (logged)
"""

import json
import logging
import uuid
from typing import Any
from urllib.parse import parse_qs

import anyio

from waypoint._internal.asgi import Receive, Scope, Send, read_body
from waypoint._internal.invoke import invoke
from waypoint.config import ApiConfig
from waypoint.errors import BadRequest, HTTPError, MethodNotAllowed, NotFound
from waypoint.http.response import Response, json_response
from waypoint.openapi import OpenAPIGenerator
from waypoint.routing.registry import RouteRegistry
from waypoint.routing.route import RouteDefinition
from waypoint.schema.base import AnySchema, Schema
from waypoint.server.context import RequestContext
from waypoint.server.errors import handle_http_error, handle_internal_error, success_response

logger = logging.getLogger("waypoint.server")


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex}"


def parse_query(query_string: bytes) -> dict[str, str | list[str]]:
    """Decode a query string. Repeated keys become lists."""
    parsed = parse_qs(query_string.decode("utf-8", errors="replace"), keep_blank_values=True)
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


class Dispatcher:
    """ASGI application serving the routes of a ``RouteRegistry``.

    Usage::

        registry = RouteRegistry()
        register_routes(registry)
        app = Dispatcher(registry, ApiConfig(version="v1"))
        # serve ``app`` with any ASGI server

    When ``config.serve_openapi`` is set, ``GET {prefix}/openapi`` is
    registered on the registry and serves the generated document.
    """

    __slots__ = ("config", "openapi", "registry")

    def __init__(
        self,
        registry: RouteRegistry,
        config: ApiConfig | None = None,
        *,
        openapi: OpenAPIGenerator | None = None,
    ) -> None:
        self.registry = registry
        self.config = config or ApiConfig()
        self.openapi = openapi or OpenAPIGenerator(registry, self.config)
        if self.config.serve_openapi and not registry.has_route("GET", self.config.openapi_path):
            registry.register(self._openapi_route())

    def _openapi_route(self) -> RouteDefinition:
        generator = self.openapi

        def serve_openapi(ctx: RequestContext) -> Response:
            logger.debug("Serving OpenAPI document [%s]", ctx.request_id)
            return json_response(generator.generate())

        return RouteDefinition(
            method="GET",
            path=self.config.openapi_path,
            description="Returns the complete OpenAPI 3.0 specification for this API",
            summary="Get OpenAPI specification",
            tags=("Documentation",),
            response=AnySchema("OpenAPI 3.0 specification"),
            handler=serve_openapi,
        )

    # -- ASGI entry point --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        response = await self.handle(scope, receive)
        await _send(response, send)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Acknowledge the ASGI lifespan protocol. Routes are already registered."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                logger.info(
                    "Dispatcher ready: %d routes, tags=%s",
                    self.registry.get_route_count(),
                    self.registry.get_tags(),
                )
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def handle(self, scope: Scope, receive: Receive) -> Response:
        """Process one HTTP request into a Response. Never raises."""
        request_id = new_request_id()
        method: str = scope["method"]
        path: str = scope["path"]
        version = self.config.version
        logger.debug("Request received: %s %s [%s]", method, path, request_id)

        try:
            if self.config.enable_cors and method.upper() == "OPTIONS":
                response = Response(status=200)
            else:
                response = await self._dispatch(scope, receive, method, path, request_id)
        except HTTPError as exc:
            response = handle_http_error(exc, method, path, request_id, version)
        except Exception as exc:
            response = handle_internal_error(
                exc, method, path, request_id, version, debug=self.config.debug
            )

        if self.config.enable_cors:
            response = response.with_headers(self._cors_headers())
        return response

    def _cors_headers(self) -> tuple[tuple[str, str], ...]:
        return (
            ("Access-Control-Allow-Origin", self.config.cors_origin),
            ("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS"),
            ("Access-Control-Allow-Headers", "Content-Type, Authorization"),
        )

    async def _dispatch(
        self,
        scope: Scope,
        receive: Receive,
        method: str,
        path: str,
        request_id: str,
    ) -> Response:
        match = self.registry.find_route(method, path)
        if match is None:
            allowed = self.registry.find_allowed_methods(path)
            if allowed:
                raise MethodNotAllowed(tuple(m.value for m in allowed))
            raise NotFound()

        route = match.route
        logger.debug(
            "Route matched: %s %s params=%s [%s]",
            route.method.value,
            route.path,
            match.params,
            request_id,
        )

        errors: dict[str, list[str]] = {}
        params = _validate(route.params, match.params, "params", errors)
        query = _validate(route.query, parse_query(scope.get("query_string", b"")), "query", errors)

        raw_body = await read_body(receive)
        body: Any = None
        if raw_body:
            try:
                body = json.loads(raw_body)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise BadRequest(f"Request body is not valid JSON: {exc}", code="INVALID_JSON") from exc
        if route.body is not None:
            body = _validate(route.body, body if body is not None else {}, "body", errors)

        if errors:
            raise BadRequest("Request validation failed", code="VALIDATION_ERROR", errors=errors)

        if route.handler is None:
            raise HTTPError(
                status=501,
                detail=f"No handler registered for {route.method.value} {route.path}",
                code="NOT_IMPLEMENTED",
            )

        ctx = RequestContext(
            route=route,
            request_id=request_id,
            params=params,
            query=query,
            body=body,
            headers=tuple(
                (name.decode("latin-1").lower(), value.decode("latin-1"))
                for name, value in scope.get("headers", ())
            ),
        )
        try:
            with anyio.fail_after(self.config.request_timeout) as deadline:
                result = await invoke(route.handler, ctx, threaded=self.config.threaded_handlers)
        except TimeoutError as exc:
            # A TimeoutError from the handler itself is an ordinary failure
            if not deadline.cancelled_caught:
                raise
            raise HTTPError(
                status=504,
                detail=f"Handler exceeded {self.config.request_timeout}s",
                code="REQUEST_TIMEOUT",
            ) from exc
        if isinstance(result, Response):
            return result
        return success_response(result, request_id, self.config.version)


_BODYLESS_STATUSES = frozenset({204, 304})


async def _send(response: Response, send: Send) -> None:
    """Emit *response* as ASGI start and body messages.

    1xx, 204 and 304 responses go out with an empty body and
    ``content-length: 0`` whatever the handler attached.
    """
    body = b"" if response.status < 200 or response.status in _BODYLESS_STATUSES else response.body
    headers = [
        (b"content-type", response.content_type.encode("latin-1")),
        *((name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in response.headers),
        (b"content-length", str(len(body)).encode("latin-1")),
    ]
    await send({"type": "http.response.start", "status": response.status, "headers": headers})
    await send({"type": "http.response.body", "body": body})


def _validate(
    schema: Schema | None,
    value: Any,
    part: str,
    errors: dict[str, list[str]],
) -> Any:
    """Run *schema* over one request part, collecting errors under *part*."""
    if schema is None:
        return value
    result = schema.validate(value)
    for field_path, messages in result.errors.items():
        key = f"{part}.{field_path}" if field_path else part
        errors.setdefault(key, []).extend(messages)
    return result.data
