"""Route patterns and parameter resolution.

A route pattern looks like ``/hello/:name?age=``: the first path segment is
the command name, ``:name`` segments are required parameters (optionally
constrained with an inline regex, ``:n(\\d+)``) and query keys are optional
parameters whose values act as defaults.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Union
from urllib.parse import parse_qsl, quote, urlencode

import httpx

from .types import ConnInfo

Handler = Callable[
    [httpx.Request, Union[ConnInfo, None], dict[str, str]],
    Union[httpx.Response, Awaitable[httpx.Response]],
]

# Letters, digits, underscore and hyphen in any script, plus the Devanagari
# and Thai blocks (their vowel signs are combining marks, not letters). The
# danda marks U+0964 and U+0965 are punctuation and stay excluded.
NAME_REGEX = re.compile(r"[-\w\u0900-\u0963\u0966-\u097F\u0E00-\u0E7F]{1,32}")

_PARAM_SEGMENT = re.compile(r":(?P<name>[^(]+)(?:\((?P<regex>.*)\))?")


def is_valid_name(name: str) -> bool:
    return NAME_REGEX.fullmatch(name) is not None


@dataclass(frozen=True, slots=True)
class Segment:
    raw: str
    name: str | None = None
    regex: str | None = None

    @property
    def is_param(self) -> bool:
        return self.name is not None


@dataclass(frozen=True, slots=True)
class RoutePattern:
    pattern: str
    segments: tuple[Segment, ...]
    query: tuple[tuple[str, str], ...]
    _compiled: re.Pattern[str] = field(repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.segments[0].raw if self.segments else ""

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.segments if s.name is not None)

    @property
    def optional(self) -> tuple[str, ...]:
        return tuple(key for key, _ in self.query)

    def match(self, url: httpx.URL) -> dict[str, str] | None:
        """Match a plain HTTP request URL, binding path and query values."""
        found = self._compiled.fullmatch(url.path)
        if found is None:
            return None
        params: dict[str, str] = {}
        for index, segment in enumerate(self.segments):
            if segment.name is not None:
                params[segment.name] = found.group(f"p{index}")
        for key in self.optional:
            value = url.params.get(key)
            if value is not None:
                params[key] = value
        return params

    def resolve(
        self, options: Sequence[tuple[str, str]], base_url: httpx.URL | str
    ) -> tuple[httpx.URL, dict[str, str]]:
        """Bind interaction options onto this pattern.

        Options naming a query slot are consumed first, walking from the end
        of the list. Everything left is treated as a path parameter; names
        without a matching slot still land in the returned params but leave
        the URL untouched.
        """
        remaining = list(options)
        query = dict(self.query)
        params: dict[str, str] = {}
        for index in range(len(remaining) - 1, -1, -1):
            name, value = remaining[index]
            if name in query:
                query[name] = value
                params[name] = value
                del remaining[index]

        supplied: dict[str, str] = {}
        for name, value in remaining:
            params[name] = value
            supplied.setdefault(name, value)

        parts = []
        for segment in self.segments:
            if segment.name is not None and segment.name in supplied:
                parts.append(quote(supplied[segment.name], safe=""))
            else:
                parts.append(segment.raw)
        target = "/" + "/".join(parts)
        if query:
            target = f"{target}?{urlencode(list(query.items()))}"
        return httpx.URL(base_url).join(target), params


def _segment_regex(index: int, segment: Segment) -> str:
    if segment.name is None:
        return re.escape(segment.raw)
    return f"(?P<p{index}>{segment.regex or '[^/]+'})"


def parse_pattern(pattern: str) -> RoutePattern:
    path, _, query_string = pattern.partition("?")
    if not path.startswith("/"):
        raise ValueError(f"route pattern must start with '/': {pattern!r}")
    segments: list[Segment] = []
    raw_segments = path[1:].split("/") if path != "/" else []
    for position, raw in enumerate(raw_segments):
        found = _PARAM_SEGMENT.fullmatch(raw) if position > 0 else None
        if found is None:
            segments.append(Segment(raw=raw))
        else:
            segments.append(
                Segment(raw=raw, name=found.group("name"), regex=found.group("regex"))
            )
    query = tuple(parse_qsl(query_string, keep_blank_values=True))
    expression = "/" + "/".join(
        _segment_regex(index, segment) for index, segment in enumerate(segments)
    )
    compiled = re.compile(expression + ("" if expression.endswith("/") else "/?"))
    return RoutePattern(
        pattern=pattern,
        segments=tuple(segments),
        query=query,
        _compiled=compiled,
    )


@dataclass(frozen=True, slots=True)
class Route:
    """A route pattern bound to the handler serving it."""

    pattern: RoutePattern
    handler: Handler
    description: str | None = None

    @classmethod
    def create(
        cls, pattern: str, handler: Handler, *, description: str | None = None
    ) -> Route:
        return cls(
            pattern=parse_pattern(pattern), handler=handler, description=description
        )


def normalize_routes(routes: Mapping[str, Handler] | Iterable[Route]) -> list[Route]:
    if isinstance(routes, Mapping):
        return [Route.create(pattern, handler) for pattern, handler in routes.items()]
    return list(routes)
