"""Structural schemas — validate a value and describe it for documentation.

Usage::

    from waypoint.schema import schema_of

    @dataclass(frozen=True)
    class SessionParams:
        sessionId: str

    params = schema_of(SessionParams, coerce=True)
    result = params.validate({"sessionId": "abc"})
    if not result:
        ...  # result.errors maps field paths to messages
"""

from waypoint.schema.base import AnySchema, Schema
from waypoint.schema.result import ValidationResult
from waypoint.schema.structured import DataclassSchema, schema_of

__all__ = [
    "AnySchema",
    "DataclassSchema",
    "Schema",
    "ValidationResult",
    "schema_of",
]
