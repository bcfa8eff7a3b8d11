"""OpenAPI 3.0 document generation from a route registry.

Reads the registry only through its public accessors, so the document
always reflects exactly what is registered. The generated document is
cached until the registered definitions change.
"""

import copy
import logging
import re
from http import HTTPStatus
from typing import Any

from waypoint.config import ApiConfig
from waypoint.routing.pattern import compile_path
from waypoint.routing.registry import RouteRegistry
from waypoint.routing.route import RouteDefinition
from waypoint.schema.base import Schema

logger = logging.getLogger("waypoint.openapi")

_OPENAPI_VERSION = "3.0.0"
_JSON = "application/json"
_NON_WORD_RE = re.compile(r"[^A-Za-z0-9]+")


class OpenAPIGenerator:
    """Builds an OpenAPI document describing every registered route.

    Usage::

        generator = OpenAPIGenerator(registry, ApiConfig(title="My API"))
        document = generator.generate()
    """

    __slots__ = ("_cache", "config", "registry")

    def __init__(self, registry: RouteRegistry, config: ApiConfig | None = None) -> None:
        self.registry = registry
        self.config = config or ApiConfig()
        self._cache: tuple[tuple[RouteDefinition, ...], dict[str, Any]] | None = None

    def generate(self) -> dict[str, Any]:
        """Return the OpenAPI document as a JSON-serializable dict."""
        routes = tuple(self.registry.get_all_routes())
        if self._cache is not None and _same_routes(self._cache[0], routes):
            logger.debug("Returning cached OpenAPI document")
            return copy.deepcopy(self._cache[1])

        document: dict[str, Any] = {
            "openapi": _OPENAPI_VERSION,
            "info": {
                "title": self.config.title,
                "description": self.config.description,
                "version": self.config.api_version,
            },
            "servers": [{"url": self.config.server_url, "description": self.config.title}],
            "paths": self._paths(),
            "tags": [{"name": tag} for tag in self.registry.get_tags()],
        }
        self._cache = (routes, document)
        logger.info(
            "OpenAPI document generated: %d paths, %d tags",
            len(document["paths"]),
            len(document["tags"]),
        )
        return copy.deepcopy(document)

    def invalidate(self) -> None:
        """Drop the cached document."""
        self._cache = None

    def _paths(self) -> dict[str, Any]:
        paths: dict[str, Any] = {}
        for route in self.registry.get_all_routes():
            openapi_path = compile_path(route.path).openapi_path
            paths.setdefault(openapi_path, {})[route.method.value.lower()] = self._operation(route)
        return paths

    def _operation(self, route: RouteDefinition) -> dict[str, Any]:
        operation: dict[str, Any] = {
            "summary": route.summary or route.description,
            "description": route.description,
            "operationId": operation_id(route),
        }
        if route.tags:
            operation["tags"] = list(route.tags)

        parameters = _path_parameters(route) + _query_parameters(route.query)
        if parameters:
            operation["parameters"] = parameters

        if route.body is not None:
            operation["requestBody"] = {
                "required": True,
                "content": {_JSON: {"schema": route.body.json_schema()}},
            }

        responses: dict[str, Any] = {
            "200": {
                "description": "Successful response",
                "content": {_JSON: {"schema": route.response.json_schema()}},
            },
        }
        for status in sorted(route.error_responses):
            responses[str(status)] = {
                "description": _status_phrase(status),
                "content": {_JSON: {"schema": route.error_responses[status].json_schema()}},
            }
        operation["responses"] = responses
        return operation


def _same_routes(cached: tuple[RouteDefinition, ...], current: tuple[RouteDefinition, ...]) -> bool:
    # Compared by identity; a re-registered route is a new definition
    return len(cached) == len(current) and all(a is b for a, b in zip(cached, current, strict=True))


def operation_id(route: RouteDefinition) -> str:
    """Stable identifier like ``get_api_v1_items_id``."""
    slug = _NON_WORD_RE.sub("_", route.path).strip("_")
    return f"{route.method.value.lower()}_{slug}" if slug else route.method.value.lower()


def _properties(schema: Schema | None) -> tuple[dict[str, Any], set[str]]:
    if schema is None:
        return {}, set()
    described = schema.json_schema()
    return described.get("properties", {}), set(described.get("required", ()))


def _path_parameters(route: RouteDefinition) -> list[dict[str, Any]]:
    properties, _ = _properties(route.params)
    parameters: list[dict[str, Any]] = []
    for name in compile_path(route.path).param_names:
        prop = dict(properties.get(name) or {"type": "string"})
        param: dict[str, Any] = {"name": name, "in": "path", "required": True}
        description = prop.pop("description", None)
        if description:
            param["description"] = description
        param["schema"] = prop
        parameters.append(param)
    return parameters


def _query_parameters(schema: Schema | None) -> list[dict[str, Any]]:
    properties, required = _properties(schema)
    parameters: list[dict[str, Any]] = []
    for name, prop in properties.items():
        prop = dict(prop)
        param: dict[str, Any] = {"name": name, "in": "query", "required": name in required}
        description = prop.pop("description", None)
        if description:
            param["description"] = description
        param["schema"] = prop
        parameters.append(param)
    return parameters


def _status_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error response"
