"""
Parameter Markers

Mark where a handler argument comes from. A marker is used either as
``typing.Annotated`` metadata or as the parameter's default value:

    @Get("/:id")
    async def get_item(self, id: Annotated[str, Param("id", transform=int)]):
        ...

    @Post("")
    async def create(self, payload=Body(), user_agent=Headers("user-agent")):
        ...

Markers are discovered from the signature when the owning class is
decorated with ``@Controller``; the argument index is the position in the
signature with ``self`` excluded.
"""

from __future__ import annotations

import inspect
import logging
import typing
from typing import Any, Callable, List, Optional

from .descriptors import ParameterDescriptor, ParameterSource

logger = logging.getLogger("waymark.controller")


class ParamMarker:
    """Base marker. Subclasses pin ``source``."""

    source: ParameterSource

    def __init__(self, key: Optional[str] = None, *, transform: Optional[Callable[[Any], Any]] = None):
        self.key = key
        self.transform = transform

    def to_descriptor(self, index: int, name: Optional[str] = None) -> ParameterDescriptor:
        return ParameterDescriptor(
            index=index,
            source=self.source,
            key=self.key,
            transform=self.transform,
            name=name,
        )

    def __repr__(self) -> str:
        if self.key is None:
            return f"{type(self).__name__}()"
        return f"{type(self).__name__}({self.key!r})"


class Body(ParamMarker):
    """Request body, or one field of it."""
    source = ParameterSource.BODY


class Param(ParamMarker):
    """Route parameter; without a key, the whole route-params mapping."""
    source = ParameterSource.ROUTE_PARAM


class Query(ParamMarker):
    """Query-string value, or the whole query mapping."""
    source = ParameterSource.QUERY


class Headers(ParamMarker):
    """Request header (case-insensitive), or the whole header mapping."""
    source = ParameterSource.HEADER


class Req(ParamMarker):
    """The raw Request object."""
    source = ParameterSource.RAW_REQUEST

    def __init__(self, *, transform: Optional[Callable[[Any], Any]] = None):
        super().__init__(None, transform=transform)


class Res(ParamMarker):
    """The raw Response object; the handler may write to it directly."""
    source = ParameterSource.RAW_RESPONSE

    def __init__(self, *, transform: Optional[Callable[[Any], Any]] = None):
        super().__init__(None, transform=transform)


def _resolve_hints(func: Callable) -> dict:
    try:
        return typing.get_type_hints(func, include_extras=True)
    except Exception as e:
        # Unresolvable forward refs: fall back to raw annotations; string
        # annotations cannot carry markers.
        logger.warning("Could not resolve annotations of %s: %s", func.__qualname__, e)
        return dict(getattr(func, "__annotations__", {}))


def _marker_from(annotation: Any, default: Any) -> Optional[ParamMarker]:
    if typing.get_origin(annotation) is typing.Union:
        # Optional[Annotated[...]] when the default is None
        for arg in typing.get_args(annotation):
            if typing.get_origin(arg) is typing.Annotated:
                annotation = arg
                break
    if typing.get_origin(annotation) is typing.Annotated:
        for extra in reversed(typing.get_args(annotation)[1:]):
            if isinstance(extra, ParamMarker):
                return extra
    if isinstance(default, ParamMarker):
        return default
    return None


def collect_parameters(func: Callable) -> List[ParameterDescriptor]:
    """
    Build parameter descriptors from the markers found on ``func``.

    ``func`` is the plain function defined in the class body, so its first
    positional parameter is ``self`` and is skipped.

    Positional parameters get their position as index. Keyword-only
    parameters (including those after ``*args``) are bound by name; their
    index only orders them after the positional ones.
    """
    signature = inspect.signature(func)
    hints = _resolve_hints(func)

    params = list(signature.parameters.values())
    if params and params[0].name in ("self", "cls"):
        params = params[1:]

    descriptors = []
    for index, param in enumerate(params):
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        marker = _marker_from(hints.get(param.name, param.annotation), param.default)
        if marker is None:
            continue
        if param.kind is inspect.Parameter.KEYWORD_ONLY:
            descriptors.append(marker.to_descriptor(index, name=param.name))
        else:
            descriptors.append(marker.to_descriptor(index))
    return descriptors
