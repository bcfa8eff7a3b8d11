"""The structural schema capability.

The registry never inspects schemas itself. Consumers need exactly two
things from one: validate a value, and describe it as JSON Schema for
documentation. Anything with those two methods works.
"""

from typing import Any, Protocol, runtime_checkable

from waypoint.schema.result import ValidationResult


@runtime_checkable
class Schema(Protocol):
    """A validator that can also describe itself."""

    def validate(self, value: Any) -> ValidationResult:
        """Validate *value*, returning cleaned data or per-field errors."""
        ...

    def json_schema(self) -> dict[str, Any]:
        """Describe the accepted shape as a JSON Schema fragment."""
        ...


class AnySchema:
    """Accepts every value unchanged. Describes as the empty schema."""

    __slots__ = ("description",)

    def __init__(self, description: str | None = None) -> None:
        self.description = description

    def validate(self, value: Any) -> ValidationResult:
        return ValidationResult(data=value, errors={})

    def json_schema(self) -> dict[str, Any]:
        if self.description:
            return {"description": self.description}
        return {}

    def __repr__(self) -> str:
        return "AnySchema()"
