"""Dataclass-backed schemas.

A frozen dataclass declares the shape; ``DataclassSchema`` validates
incoming values against it and generates the JSON Schema used in the
OpenAPI document. Same idea as typed extraction — the dataclass is the
single source of truth for both checking and describing.

Usage::

    @dataclass(frozen=True)
    class SearchQuery:
        q: str = field(metadata={"description": "Search query"})
        limit: int = 20

    schema = schema_of(SearchQuery, coerce=True)
    schema.validate({"q": "pods", "limit": "5"}).data   # {"q": "pods", "limit": 5}

Supported annotations: ``str``, ``int``, ``float``, ``bool``, ``Any``,
``list[X]``, ``dict[str, X]``, ``X | None``, unions, ``Literal[...]``,
``Enum`` subclasses, and nested dataclasses.
"""

import dataclasses
import enum
import types
from collections.abc import Mapping
from typing import Any, Generic, Literal, TypeVar, Union, get_args, get_origin, get_type_hints

from waypoint.schema.result import ValidationResult

T = TypeVar("T")

# Python type → JSON schema type
_TYPE_MAP: dict[type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
}

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


class _Invalid(Exception):
    """Internal signal for a single failed value check."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    for py_type, json_type in _TYPE_MAP.items():
        if isinstance(value, py_type):
            return json_type
    if isinstance(value, list):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _is_union(origin: Any) -> bool:
    return origin is Union or origin is types.UnionType


class DataclassSchema(Generic[T]):
    """A ``Schema`` whose shape is a dataclass.

    Args:
        cls: The dataclass describing the object.
        coerce: Convert string input to ``int``/``float``/``bool`` fields.
            Use for path and query parameters, which arrive as strings.
        description: Optional description emitted at the top level.
    """

    __slots__ = ("_hints", "cls", "coerce", "description")

    def __init__(self, cls: type[T], *, coerce: bool = False, description: str | None = None) -> None:
        if not dataclasses.is_dataclass(cls):
            msg = f"{getattr(cls, '__name__', cls)!r} is not a dataclass"
            raise TypeError(msg)
        self.cls = cls
        self.coerce = coerce
        self.description = description
        self._hints = get_type_hints(cls)

    def __repr__(self) -> str:
        return f"DataclassSchema({self.cls.__name__}, coerce={self.coerce})"

    # -- Validation --

    def validate(self, value: Any) -> ValidationResult:
        """Validate *value* (a mapping) against the dataclass fields.

        Unknown keys are dropped. Missing fields with defaults are filled
        in; missing fields without defaults are errors.
        """
        errors: dict[str, list[str]] = {}
        data = self._check_object(self.cls, value, "", errors)
        return ValidationResult(data=data if not errors else {}, errors=errors)

    def load(self, value: Any) -> T:
        """Validate and build a ``cls`` instance.

        Raises ``ValueError`` listing the field errors when invalid.
        """
        result = self.validate(value)
        if not result:
            problems = "; ".join(
                f"{path or '<root>'}: {', '.join(msgs)}" for path, msgs in result.errors.items()
            )
            msg = f"Invalid {self.cls.__name__}: {problems}"
            raise ValueError(msg)
        return _build(self.cls, result.data)

    def _check_object(
        self,
        cls: type,
        value: Any,
        prefix: str,
        errors: dict[str, list[str]],
    ) -> dict[str, Any]:
        if not isinstance(value, Mapping):
            errors.setdefault(prefix, []).append(f"Expected object, got {_type_name(value)}")
            return {}

        hints = self._hints if cls is self.cls else get_type_hints(cls)
        cleaned: dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            path = f"{prefix}.{f.name}" if prefix else f.name
            if f.name not in value:
                if f.default is not dataclasses.MISSING:
                    cleaned[f.name] = f.default
                elif f.default_factory is not dataclasses.MISSING:
                    cleaned[f.name] = f.default_factory()
                else:
                    errors.setdefault(path, []).append("This field is required")
                continue
            try:
                cleaned[f.name] = self._check(value[f.name], hints[f.name], path, errors)
            except _Invalid as exc:
                errors.setdefault(path, []).append(exc.message)
        return cleaned

    def _check(self, value: Any, annotation: Any, path: str, errors: dict[str, list[str]]) -> Any:
        """Return the cleaned *value* or raise ``_Invalid``."""
        if annotation is Any:
            return value

        origin = get_origin(annotation)

        if _is_union(origin):
            args = get_args(annotation)
            if value is None:
                if type(None) in args:
                    return None
                msg = "Must not be null"
                raise _Invalid(msg)
            arms = [a for a in args if a is not type(None)]
            if len(arms) == 1:
                return self._check(value, arms[0], path, errors)
            for arm in arms:
                attempt: dict[str, list[str]] = {}
                try:
                    cleaned = self._check(value, arm, path, attempt)
                except _Invalid:
                    continue
                if not attempt:
                    return cleaned
            names = " | ".join(_annotation_name(a) for a in arms)
            msg = f"Must be {names}"
            raise _Invalid(msg)

        if value is None:
            msg = "Must not be null"
            raise _Invalid(msg)

        if origin is Literal:
            choices = get_args(annotation)
            for choice in choices:
                if value == choice or (self.coerce and isinstance(value, str) and value == str(choice)):
                    return choice
            options = ", ".join(str(c) for c in choices)
            msg = f"Must be one of: {options}"
            raise _Invalid(msg)

        if origin is list or annotation is list:
            if not isinstance(value, list):
                msg = f"Expected array, got {_type_name(value)}"
                raise _Invalid(msg)
            item_args = get_args(annotation)
            if not item_args:
                return list(value)
            items: list[Any] = []
            for i, item in enumerate(value):
                item_path = f"{path}[{i}]"
                try:
                    items.append(self._check(item, item_args[0], item_path, errors))
                except _Invalid as exc:
                    errors.setdefault(item_path, []).append(exc.message)
            return items

        if origin is dict or annotation is dict:
            if not isinstance(value, Mapping):
                msg = f"Expected object, got {_type_name(value)}"
                raise _Invalid(msg)
            dict_args = get_args(annotation)
            if len(dict_args) != 2:
                return dict(value)
            out: dict[str, Any] = {}
            for key, item in value.items():
                item_path = f"{path}.{key}"
                try:
                    out[key] = self._check(item, dict_args[1], item_path, errors)
                except _Invalid as exc:
                    errors.setdefault(item_path, []).append(exc.message)
            return out

        if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
            return self._check_object(annotation, value, path, errors)

        if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
            for member in annotation:
                if value == member.value or value is member:
                    return member.value
            options = ", ".join(str(m.value) for m in annotation)
            msg = f"Must be one of: {options}"
            raise _Invalid(msg)

        if annotation is bool:
            return self._check_bool(value)
        if annotation is int:
            return self._check_int(value)
        if annotation is float:
            return self._check_float(value)
        if annotation is str:
            if not isinstance(value, str):
                msg = f"Expected string, got {_type_name(value)}"
                raise _Invalid(msg)
            return value

        # Unknown annotation — accept the raw value
        return value

    def _check_bool(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if self.coerce and isinstance(value, str):
            lowered = value.lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        msg = "Must be true or false"
        raise _Invalid(msg)

    def _check_int(self, value: Any) -> int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if self.coerce and isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                pass
        msg = "Must be a whole number"
        raise _Invalid(msg)

    def _check_float(self, value: Any) -> float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if self.coerce and isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                pass
        msg = "Must be a number"
        raise _Invalid(msg)

    # -- Description --

    def json_schema(self) -> dict[str, Any]:
        """Generate a JSON Schema (OpenAPI 3.0 dialect) for the dataclass."""
        schema = _dataclass_to_schema(self.cls)
        if self.description:
            schema["description"] = self.description
        return schema


def schema_of(cls: type[T], *, coerce: bool = False, description: str | None = None) -> DataclassSchema[T]:
    """Shorthand for ``DataclassSchema(cls, ...)``."""
    return DataclassSchema(cls, coerce=coerce, description=description)


def _annotation_name(annotation: Any) -> str:
    if annotation in _TYPE_MAP:
        return _TYPE_MAP[annotation]
    return getattr(annotation, "__name__", str(annotation))


def _dataclass_to_schema(cls: type) -> dict[str, Any]:
    hints = get_type_hints(cls)
    properties: dict[str, Any] = {}
    required: list[str] = []

    for f in dataclasses.fields(cls):
        prop = _type_to_schema(hints[f.name])
        description = f.metadata.get("description")
        if description:
            prop["description"] = description
        if isinstance(f.default, (str, int, float, bool, enum.Enum)):
            prop.setdefault("default", _json_default(f.default))
        properties[f.name] = prop
        # All fields are required unless they have a default
        if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            required.append(f.name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _json_default(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _type_to_schema(annotation: Any) -> dict[str, Any]:
    """Convert a Python type annotation to a JSON schema fragment."""
    if annotation is Any:
        return {}

    if annotation in _TYPE_MAP:
        return {"type": _TYPE_MAP[annotation]}

    origin = get_origin(annotation)

    if _is_union(origin):
        args = [a for a in get_args(annotation) if a is not type(None)]
        nullable = len(args) != len(get_args(annotation))
        if len(args) == 1:
            schema = _type_to_schema(args[0])
        else:
            schema = {"anyOf": [_type_to_schema(a) for a in args]}
        if nullable:
            schema["nullable"] = True
        return schema

    if origin is Literal:
        choices = list(get_args(annotation))
        schema = {"enum": choices}
        if all(isinstance(c, str) for c in choices):
            schema["type"] = "string"
        return schema

    if origin is list or annotation is list:
        args = get_args(annotation)
        if args:
            return {"type": "array", "items": _type_to_schema(args[0])}
        return {"type": "array"}

    if origin is dict or annotation is dict:
        args = get_args(annotation)
        if len(args) == 2:
            return {"type": "object", "additionalProperties": _type_to_schema(args[1])}
        return {"type": "object"}

    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return _dataclass_to_schema(annotation)

    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return {"enum": [m.value for m in annotation]}

    # Fallback
    return {"type": "string"}


def _build(cls: type, data: Mapping[str, Any]) -> Any:
    """Instantiate *cls* from validated data, recursing into nested dataclasses."""
    hints = get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if f.name in data:
            kwargs[f.name] = _build_value(data[f.name], hints[f.name])
    return cls(**kwargs)


def _build_value(value: Any, annotation: Any) -> Any:
    if value is None:
        return None
    origin = get_origin(annotation)
    if _is_union(origin):
        candidates = [a for a in get_args(annotation) if a is not type(None)]
        if len(candidates) == 1:
            return _build_value(value, candidates[0])
        return value
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return _build(annotation, value)
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return annotation(value)
    if origin is list:
        args = get_args(annotation)
        return [_build_value(v, args[0]) for v in value] if args else value
    return value

