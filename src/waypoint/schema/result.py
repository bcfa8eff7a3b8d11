"""Validation result — immutable container for validated data or errors."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """The outcome of validating a value against a schema.

    ``is_valid`` is True when there are no errors.
    The result is falsy when invalid, so you can write::

        result = schema.validate(body)
        if not result:
            raise BadRequest(errors=result.errors)

    ``data`` holds the cleaned (and possibly coerced) value. ``errors``
    maps dotted field paths to lists of messages::

        {"limit": ["Must be a whole number"],
         "owner.name": ["This field is required"]}
    """

    data: Any
    errors: dict[str, list[str]]

    @property
    def is_valid(self) -> bool:
        """True if validation passed with no errors."""
        return not self.errors

    def __bool__(self) -> bool:
        """Falsy when invalid — enables ``if not result:`` pattern."""
        return self.is_valid
