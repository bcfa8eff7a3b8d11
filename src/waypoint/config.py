"""API configuration.

ApiConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ApiConfig:
    """Dispatcher and documentation configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = ApiConfig(version="v2", enable_cors=False)
    """

    # Routing
    base_path: str = "/api"
    version: str = "v1"

    # CORS
    enable_cors: bool = True
    cors_origin: str = "*"

    # Documentation
    serve_openapi: bool = True
    title: str = "Waypoint REST API"
    description: str = "REST API described by a typed route registry"
    api_version: str = "1.0.0"
    server_url: str = "http://localhost:3456"

    # Handlers
    threaded_handlers: bool = True  # Run plain def handlers in a worker thread
    request_timeout: float | None = 1800.0  # Seconds; None disables the limit

    # Error bodies include exception text for 500s when True
    debug: bool = False

    @property
    def prefix(self) -> str:
        """Versioned path prefix, e.g. ``/api/v1``."""
        return f"{self.base_path.rstrip('/')}/{self.version}"

    @property
    def openapi_path(self) -> str:
        """Path of the built-in OpenAPI document route."""
        return f"{self.prefix}/openapi"
