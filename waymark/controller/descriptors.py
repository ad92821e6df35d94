"""
Controller Descriptors

Plain records written by the annotation surface (or the explicit builder
API) and read by the route compiler. The metadata registry owns every
instance; nothing else keeps a reference across the bootstrap phase.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple


class HttpMethod(str, Enum):
    """HTTP verbs a route may be mounted with."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def coerce(cls, value: Any) -> Optional["HttpMethod"]:
        """Return the matching member, or None for unknown values."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.upper())
            except ValueError:
                return None
        return None


class ParameterSource(str, Enum):
    """Where a handler argument is taken from."""
    BODY = "body"
    ROUTE_PARAM = "param"
    QUERY = "query"
    HEADER = "header"
    RAW_REQUEST = "request"
    RAW_RESPONSE = "response"


class ValidationTarget(str, Enum):
    """Which validation decorator attached a schema."""
    BODY = "body"
    PARAMS = "params"
    QUERY = "query"


@dataclass
class ControllerDescriptor:
    """
    Class-level routing metadata.

    Attributes:
        base_path: Prefix for every route of the controller. May be empty;
                   normalized at compile time, not here.
        controller_type: The decorated class (registry key)
    """
    base_path: str
    controller_type: type


@dataclass
class ParameterDescriptor:
    """
    Binding of one handler argument.

    Attributes:
        index: Position in the handler signature, ``self`` excluded
        source: Where the value comes from
        key: Field to pick from the source; None means the whole object
        transform: Optional callable applied to the extracted value
        name: Set for keyword-only parameters, which are passed by name
              instead of by position
    """
    index: int
    source: ParameterSource
    key: Optional[str] = None
    transform: Optional[Callable[[Any], Any]] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"Parameter index must be >= 0, got {self.index}")


@dataclass
class ValidationDescriptor:
    schema: Any
    target: ValidationTarget = ValidationTarget.BODY


@dataclass
class ResponseDescriptor:
    """Declared success status, plus documentation-only description and schema."""
    status_code: int
    description: Optional[str] = None
    schema: Any = None


@dataclass
class RouteOptions:
    """
    Auxiliary per-route intents.

    Recorded for a caller to act on; the compiler only reads
    ``middleware``. Authorization, caching and rate limits are never
    enforced here.
    """
    middleware: List[Callable] = field(default_factory=list)
    roles: Optional[Tuple[str, ...]] = None
    cache_ttl: Optional[int] = None
    cache_key: Optional[str] = None
    rate_limit_max: Optional[int] = None
    rate_limit_window_ms: Optional[int] = None
    transform: Optional[Callable[[Any], Any]] = None
    timeout_ms: Optional[int] = None
    deprecated: bool = False
    deprecated_message: Optional[str] = None
    deprecated_version: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    version: Optional[str] = None
    summary: Optional[str] = None

    def merge(self, other: "RouteOptions") -> "RouteOptions":
        """
        Combine two option sets.

        Middleware and tags accumulate; every other field is taken from
        ``other`` when it is set there.
        """
        merged = replace(self)
        merged.middleware = [*self.middleware, *other.middleware]
        merged.tags = [*self.tags, *[t for t in other.tags if t not in self.tags]]
        for f in fields(self):
            if f.name in ("middleware", "tags"):
                continue
            value = getattr(other, f.name)
            if value is not None and value is not False:
                setattr(merged, f.name, value)
        return merged


@dataclass
class RouteDescriptor:
    """
    Routing metadata for one controller method.

    Keyed in the registry by ``(controller_type, method_name)``.

    Attributes:
        method_name: Attribute name of the handler on the controller
        path: Route path relative to the controller base path
        http_method: Verb; None until a verb decorator ran
        parameters: Accumulated parameter bindings (append only)
        validation: Body/params/query schema, last write wins
        response: Declared success status
        options: Recorded auxiliary intents
    """
    method_name: str
    path: Optional[str] = None
    http_method: Optional[HttpMethod] = None
    parameters: List[ParameterDescriptor] = field(default_factory=list)
    validation: Optional[ValidationDescriptor] = None
    response: Optional[ResponseDescriptor] = None
    options: RouteOptions = field(default_factory=RouteOptions)

    def merge(self, fragment: "RouteDescriptor") -> "RouteDescriptor":
        """
        Merge a newer fragment into this descriptor.

        A field defined in ``fragment`` overwrites; ``parameters`` is only
        replaced by a non-empty list; options are combined.
        """
        return RouteDescriptor(
            method_name=self.method_name,
            path=fragment.path if fragment.path is not None else self.path,
            http_method=fragment.http_method if fragment.http_method is not None else self.http_method,
            parameters=list(fragment.parameters) if fragment.parameters else list(self.parameters),
            validation=fragment.validation if fragment.validation is not None else self.validation,
            response=fragment.response if fragment.response is not None else self.response,
            options=self.options.merge(fragment.options),
        )

    def sorted_parameters(self) -> List[ParameterDescriptor]:
        return sorted(self.parameters, key=lambda p: p.index)
