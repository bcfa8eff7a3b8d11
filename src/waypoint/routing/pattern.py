"""Path template compilation.

Turns ``/api/v1/items/:id`` into a reusable matcher. Each segment is
either a literal compared character-for-character or a ``:name``
parameter that captures one non-empty segment, so matching is a single
left-to-right scan with no backtracking.
"""

import re
from dataclasses import dataclass

from waypoint.errors import ConfigurationError

# A segment is a parameter only when it is entirely ``:`` + word characters
_PARAM_RE = re.compile(r":([A-Za-z0-9_]+)")


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a path template.

    Literal:  ``users``  (is_param=False)
    Param:    ``:id``    (is_param=True, param_name="id")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None


def parse_template(template: str) -> tuple[PathSegment, ...]:
    """Parse a path template into segments.

    Examples::

        "/users"              -> (PathSegment("users"),)
        "/users/:id"          -> (PathSegment("users"), PathSegment(":id", True, "id"))
        "/files/report.json"  -> (PathSegment("report.json"),)
        "/"                   -> (PathSegment(""),)

    Raises ``ConfigurationError`` if the template does not start with
    ``/`` or repeats a parameter name.
    """
    if not template.startswith("/"):
        msg = f"Path template must start with '/': {template!r}"
        raise ConfigurationError(msg)

    segments: list[PathSegment] = []
    seen: set[str] = set()
    for part in template[1:].split("/"):
        param = _PARAM_RE.fullmatch(part)
        if param is None:
            segments.append(PathSegment(value=part))
            continue

        name = param.group(1)
        if name in seen:
            msg = f"Duplicate parameter {name!r} in path template {template!r}"
            raise ConfigurationError(msg)
        seen.add(name)
        segments.append(PathSegment(value=part, is_param=True, param_name=name))
    return tuple(segments)


@dataclass(frozen=True, slots=True)
class PathPattern:
    """A compiled path template.

    Usage::

        pattern = compile_path("/api/v1/visualize/:sessionId")
        pattern.match("/api/v1/visualize/a+b")   # {"sessionId": "a+b"}
        pattern.match("/api/v1/visualize/a/b")   # None
    """

    template: str
    segments: tuple[PathSegment, ...]

    @property
    def param_names(self) -> tuple[str, ...]:
        """Parameter names in declaration order."""
        return tuple(s.param_name for s in self.segments if s.param_name is not None)

    @property
    def openapi_path(self) -> str:
        """The template rewritten with ``{name}`` placeholders."""
        parts = [f"{{{s.param_name}}}" if s.is_param else s.value for s in self.segments]
        return "/" + "/".join(parts)

    def match(self, path: str) -> dict[str, str] | None:
        """Return captured parameters if *path* matches, else ``None``.

        Segment counts must be equal. Parameters never accept an empty
        segment, so a trailing slash is significant.
        """
        if not path.startswith("/"):
            return None

        parts = path[1:].split("/")
        if len(parts) != len(self.segments):
            return None

        params: dict[str, str] = {}
        for segment, part in zip(self.segments, parts, strict=True):
            if segment.is_param:
                if not part:
                    return None
                params[segment.param_name] = part  # type: ignore[index]
            elif segment.value != part:
                return None
        return params


def compile_path(template: str) -> PathPattern:
    """Compile a path template into a ``PathPattern``."""
    return PathPattern(template=template, segments=parse_template(template))
