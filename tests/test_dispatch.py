"""Tests for waypoint.server — ASGI dispatch over a route registry."""

import logging
from dataclasses import dataclass, field

import anyio
import pytest

from waypoint.config import ApiConfig
from waypoint.errors import HTTPError, NotFound
from waypoint.http.response import Response
from waypoint.routing.registry import RouteRegistry
from waypoint.routing.route import RouteDefinition
from waypoint.schema import AnySchema, schema_of
from waypoint.server import Dispatcher, RequestContext
from waypoint.server.dispatch import new_request_id, parse_query
from waypoint.testing import TestClient


@dataclass(frozen=True)
class ItemParams:
    id: int


@dataclass(frozen=True)
class ListQuery:
    limit: int = 10
    search: str | None = None


@dataclass(frozen=True)
class ItemBody:
    name: str
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Item:
    id: int
    name: str


def get_item(ctx: RequestContext) -> Item:
    if ctx.params["id"] == 404:
        raise NotFound(f"Item {ctx.params['id']} not found", code="ITEM_NOT_FOUND")
    return Item(id=ctx.params["id"], name="widget")


async def list_items(ctx: RequestContext) -> dict[str, object]:
    return {"limit": ctx.query["limit"], "search": ctx.query["search"]}


def create_item(ctx: RequestContext) -> dict[str, object]:
    return {"created": ctx.body, "requestId": ctx.request_id}


def explode(ctx: RequestContext) -> None:
    msg = "database is on fire"
    raise RuntimeError(msg)


def _registry() -> RouteRegistry:
    registry = RouteRegistry()
    registry.register(
        RouteDefinition(
            method="GET",
            path="/api/v1/items",
            description="List items",
            tags=("Items",),
            query=schema_of(ListQuery, coerce=True),
            response=AnySchema(),
            handler=list_items,
        )
    )
    registry.register(
        RouteDefinition(
            method="GET",
            path="/api/v1/items/:id",
            description="Get one item",
            tags=("Items",),
            params=schema_of(ItemParams, coerce=True),
            response=schema_of(Item),
            handler=get_item,
        )
    )
    registry.register(
        RouteDefinition(
            method="POST",
            path="/api/v1/items",
            description="Create an item",
            tags=("Items",),
            body=schema_of(ItemBody),
            response=AnySchema(),
            handler=create_item,
        )
    )
    registry.register(
        RouteDefinition(
            method="DELETE",
            path="/api/v1/items/:id",
            description="Delete an item (not built yet)",
            tags=("Items",),
            response=AnySchema(),
        )
    )
    registry.register(
        RouteDefinition(
            method="GET",
            path="/api/v1/boom",
            description="Always fails",
            response=AnySchema(),
            handler=explode,
        )
    )
    return registry


def _app(**config: object) -> Dispatcher:
    return Dispatcher(_registry(), ApiConfig(**config))  # type: ignore[arg-type]


class TestRequestId:
    def test_prefixed_and_unique(self) -> None:
        first, second = new_request_id(), new_request_id()
        assert first.startswith("req_")
        assert first != second


class TestParseQuery:
    def test_single_values(self) -> None:
        assert parse_query(b"a=1&b=two") == {"a": "1", "b": "two"}

    def test_repeated_values(self) -> None:
        assert parse_query(b"tag=a&tag=b") == {"tag": ["a", "b"]}

    def test_blank_values_kept(self) -> None:
        assert parse_query(b"q=") == {"q": ""}

    def test_empty(self) -> None:
        assert parse_query(b"") == {}

    def test_raw_utf8_bytes(self) -> None:
        assert parse_query("q=caf\u00e9".encode()) == {"q": "caf\u00e9"}

    def test_percent_encoded_utf8(self) -> None:
        assert parse_query(b"q=caf%C3%A9") == {"q": "caf\u00e9"}


class TestSuccess:
    @pytest.mark.anyio
    async def test_envelope(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/v1/items/7")
        assert response.status == 200
        assert response.content_type.startswith("application/json")
        payload = response.json()
        assert payload["success"] is True
        assert payload["data"] == {"id": 7, "name": "widget"}
        assert payload["meta"]["version"] == "v1"
        assert payload["meta"]["requestId"].startswith("req_")
        assert "timestamp" in payload["meta"]

    @pytest.mark.anyio
    async def test_lowercase_method_matches(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.request("get", "/api/v1/items/7")
        assert response.status == 200

    @pytest.mark.anyio
    async def test_query_coerced(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/v1/items?limit=5&search=pods")
        assert response.json()["data"] == {"limit": 5, "search": "pods"}

    @pytest.mark.anyio
    async def test_query_defaults(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/v1/items")
        assert response.json()["data"] == {"limit": 10, "search": None}

    @pytest.mark.anyio
    async def test_json_body(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.post("/api/v1/items", json={"name": "gizmo"})
        data = response.json()["data"]
        assert data["created"] == {"name": "gizmo", "tags": []}
        assert data["requestId"].startswith("req_")

    @pytest.mark.anyio
    async def test_handler_may_return_response(self) -> None:
        registry = RouteRegistry()
        registry.register(
            RouteDefinition(
                method="PUT",
                path="/raw",
                description="Raw response",
                response=AnySchema(),
                handler=lambda ctx: Response(body=b"{}", status=202),
            )
        )
        async with TestClient(Dispatcher(registry)) as client:
            response = await client.put("/raw")
        assert response.status == 202
        assert response.body == b"{}"

    @pytest.mark.anyio
    async def test_unthreaded_sync_handler(self) -> None:
        async with TestClient(_app(threaded_handlers=False)) as client:
            response = await client.get("/api/v1/items/3")
        assert response.json()["data"]["id"] == 3

    @pytest.mark.anyio
    async def test_handler_sees_headers(self) -> None:
        registry = RouteRegistry()
        registry.register(
            RouteDefinition(
                method="GET",
                path="/whoami",
                description="Echo a header",
                response=AnySchema(),
                handler=lambda ctx: {"agent": ctx.header("User-Agent")},
            )
        )
        async with TestClient(Dispatcher(registry)) as client:
            response = await client.get("/whoami", headers={"User-Agent": "pytest"})
        assert response.json()["data"] == {"agent": "pytest"}


class TestNotFound:
    @pytest.mark.anyio
    async def test_unknown_path(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/v1/nothing")
        assert response.status == 404
        payload = response.json()
        assert payload["success"] is False
        assert payload["error"]["code"] == "NOT_FOUND"
        assert payload["error"]["message"] == "API endpoint not found"

    @pytest.mark.anyio
    async def test_extra_segment(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/v1/items/1/extra")
        assert response.status == 404

    @pytest.mark.anyio
    async def test_handler_raised_not_found(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/v1/items/404")
        assert response.status == 404
        assert response.json()["error"] == {
            "code": "ITEM_NOT_FOUND",
            "message": "Item 404 not found",
        }


class TestMethodNotAllowed:
    @pytest.mark.anyio
    async def test_allow_header(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.put("/api/v1/items/1")
        assert response.status == 405
        assert response.header("allow") == "GET, DELETE"
        assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"
        assert response.json()["error"]["message"] == "Only GET, DELETE methods allowed"

    @pytest.mark.anyio
    async def test_unsupported_method(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.request("PATCH", "/api/v1/items")
        assert response.status == 405
        assert response.header("allow") == "GET, POST"


class TestValidation:
    @pytest.mark.anyio
    async def test_bad_path_param(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/v1/items/abc")
        assert response.status == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"] == {"fields": {"params.id": ["Must be a whole number"]}}

    @pytest.mark.anyio
    async def test_bad_query(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/api/v1/items?limit=lots")
        assert response.status == 400
        assert response.json()["error"]["details"]["fields"] == {
            "query.limit": ["Must be a whole number"]
        }

    @pytest.mark.anyio
    async def test_missing_body(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.post("/api/v1/items")
        assert response.status == 400
        assert response.json()["error"]["details"]["fields"] == {
            "body.name": ["This field is required"]
        }

    @pytest.mark.anyio
    async def test_body_not_an_object(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.post("/api/v1/items", json=["gizmo"])
        assert response.json()["error"]["details"]["fields"] == {
            "body": ["Expected object, got array"]
        }

    @pytest.mark.anyio
    async def test_malformed_json(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.post(
                "/api/v1/items",
                body=b"{not json",
                headers={"content-type": "application/json"},
            )
        assert response.status == 400
        assert response.json()["error"]["code"] == "INVALID_JSON"


class TestServerErrors:
    @pytest.mark.anyio
    async def test_missing_handler(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.delete("/api/v1/items/1")
        assert response.status == 501
        assert response.json()["error"]["code"] == "NOT_IMPLEMENTED"

    @pytest.mark.anyio
    async def test_handler_exception(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="waypoint.server"):
            async with TestClient(_app()) as client:
                response = await client.get("/api/v1/boom")
        assert response.status == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert "fire" not in error["message"]
        assert "500 GET /api/v1/boom" in caplog.text

    @pytest.mark.anyio
    async def test_debug_exposes_exception(self) -> None:
        async with TestClient(_app(debug=True)) as client:
            response = await client.get("/api/v1/boom")
        assert response.json()["error"]["message"] == "RuntimeError: database is on fire"

    @pytest.mark.anyio
    async def test_custom_http_error(self) -> None:
        def teapot(ctx: RequestContext) -> None:
            raise HTTPError(status=418, detail="short and stout", code="TEAPOT")

        registry = RouteRegistry()
        registry.register(
            RouteDefinition(
                method="GET", path="/tea", description="Tea", response=AnySchema(), handler=teapot
            )
        )
        async with TestClient(Dispatcher(registry)) as client:
            response = await client.get("/tea")
        assert response.status == 418
        assert response.json()["error"]["code"] == "TEAPOT"

    @pytest.mark.anyio
    async def test_timeout(self) -> None:
        async def slow(ctx: RequestContext) -> None:
            await anyio.sleep(1)

        registry = RouteRegistry()
        registry.register(
            RouteDefinition(
                method="GET", path="/slow", description="Slow", response=AnySchema(), handler=slow
            )
        )
        async with TestClient(Dispatcher(registry, ApiConfig(request_timeout=0.01))) as client:
            response = await client.get("/slow")
        assert response.status == 504
        assert response.json()["error"]["code"] == "REQUEST_TIMEOUT"

    @pytest.mark.anyio
    async def test_timeout_raised_by_handler_is_internal_error(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        def upstream(ctx: RequestContext) -> None:
            msg = "upstream took too long"
            raise TimeoutError(msg)

        registry = RouteRegistry()
        registry.register(
            RouteDefinition(
                method="GET",
                path="/upstream",
                description="Calls upstream",
                response=AnySchema(),
                handler=upstream,
            )
        )
        with caplog.at_level(logging.ERROR, logger="waypoint.server"):
            async with TestClient(Dispatcher(registry)) as client:
                response = await client.get("/upstream")
        assert response.status == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        assert "500 GET /upstream" in caplog.text


class TestCors:
    @pytest.mark.anyio
    async def test_preflight(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.request("OPTIONS", "/api/v1/items")
        assert response.status == 200
        assert response.header("access-control-allow-origin") == "*"

    @pytest.mark.anyio
    async def test_headers_on_errors(self) -> None:
        async with TestClient(_app(cors_origin="https://ui.test")) as client:
            response = await client.get("/api/v1/nothing")
        assert response.header("access-control-allow-origin") == "https://ui.test"

    @pytest.mark.anyio
    async def test_disabled(self) -> None:
        async with TestClient(_app(enable_cors=False)) as client:
            preflight = await client.request("OPTIONS", "/api/v1/items")
            response = await client.get("/api/v1/items")
        assert preflight.status == 405
        assert response.header("access-control-allow-origin") is None


class TestOpenAPIRoute:
    @pytest.mark.anyio
    async def test_serves_document(self) -> None:
        app = _app()
        async with TestClient(app) as client:
            response = await client.get("/api/v1/openapi")
        assert response.status == 200
        document = response.json()
        assert document["openapi"] == "3.0.0"
        assert "/api/v1/items/{id}" in document["paths"]
        assert "/api/v1/openapi" in document["paths"]
        assert {"name": "Documentation"} in document["tags"]

    def test_registered_on_registry(self) -> None:
        app = _app()
        assert app.registry.has_route("GET", "/api/v1/openapi")

    def test_versioned_path(self) -> None:
        app = _app(base_path="/rest/", version="v2")
        assert app.registry.has_route("GET", "/rest/v2/openapi")

    def test_disabled(self) -> None:
        app = _app(serve_openapi=False)
        assert not app.registry.has_route("GET", "/api/v1/openapi")

    def test_second_dispatcher_reuses_route(self) -> None:
        registry = _registry()
        Dispatcher(registry)
        Dispatcher(registry)
        assert registry.has_route("GET", "/api/v1/openapi")


class TestLifespan:
    @pytest.mark.anyio
    async def test_startup_and_shutdown(self) -> None:
        app = _app()
        incoming = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent: list[str] = []

        async def receive() -> dict[str, str]:
            return next(incoming)

        async def send(message: dict[str, str]) -> None:
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]


async def _raw_messages(app: Dispatcher, method: str, path: str) -> list[dict]:
    messages: list[dict] = []

    async def receive() -> dict:
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message: dict) -> None:
        messages.append(message)

    await app({"type": "http", "method": method, "path": path, "headers": []}, receive, send)
    return messages


class TestSendResponse:
    @pytest.mark.anyio
    async def test_json_body_and_length(self) -> None:
        messages = await _raw_messages(_app(), "GET", "/api/v1/items/7")

        assert messages[0]["type"] == "http.response.start"
        assert messages[0]["status"] == 200
        headers = dict(messages[0]["headers"])
        assert headers[b"content-type"] == b"application/json; charset=utf-8"
        assert headers[b"content-length"] == str(len(messages[1]["body"])).encode()
        assert messages[1]["type"] == "http.response.body"

    @pytest.mark.anyio
    async def test_header_names_lowercased(self) -> None:
        messages = await _raw_messages(_app(), "PUT", "/api/v1/items/7")

        assert (b"allow", b"GET, DELETE") in messages[0]["headers"]

    @pytest.mark.anyio
    async def test_204_drops_body(self) -> None:
        registry = RouteRegistry()
        registry.register(
            RouteDefinition(
                method="DELETE",
                path="/things/:id",
                description="Delete a thing",
                response=AnySchema(),
                handler=lambda ctx: Response(body=b"unexpected", status=204),
            )
        )
        messages = await _raw_messages(Dispatcher(registry), "DELETE", "/things/1")

        assert messages[0]["status"] == 204
        assert dict(messages[0]["headers"])[b"content-length"] == b"0"
        assert messages[1]["body"] == b""
