"""
Controller Decorators

Class-, method- and intent-level decorators for controller classes.

Method decorators cannot see the class they end up in, so they only stage
route *fragments* on the function (in application order, bottom to top).
``@Controller`` runs last, registers the class and flushes every method's
fragments into the metadata registry with merge semantics; parameter
markers are read from each signature at the same time.

    @Controller("/items")
    class ItemsController:

        @Get("")
        async def list_items(self, q: Annotated[str, Query("q")]):
            ...

        @Post("")
        @ValidateBody(CreateItem)
        @ApiCreatedResponse("Item created")
        async def create(self, payload=Body()):
            ...
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Optional, TypeVar, Union

from .descriptors import (
    ControllerDescriptor,
    HttpMethod,
    ResponseDescriptor,
    RouteDescriptor,
    RouteOptions,
    ValidationDescriptor,
    ValidationTarget,
)
from .params import collect_parameters
from .registry import MetadataRegistry, default_registry

logger = logging.getLogger("waymark.controller")

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)

FRAGMENTS_ATTR = "__waymark_fragments__"


def _stage(func: F, **fields: Any) -> F:
    """Attach one route fragment to ``func``."""
    if not callable(func):
        raise TypeError(f"Route decorators apply to functions, got {func!r}")
    fragments = func.__dict__.setdefault(FRAGMENTS_ATTR, [])
    fragments.append(RouteDescriptor(method_name=func.__name__, **fields))
    return func


def _stage_options(func: F, **options: Any) -> F:
    return _stage(func, options=RouteOptions(**options))


def get_fragments(func: Callable) -> list:
    return list(getattr(func, FRAGMENTS_ATTR, []))


# ============================================================================
# Controller
# ============================================================================

def Controller(
    base_path: Union[str, type] = "",
    *,
    registry: Optional[MetadataRegistry] = None,
) -> Any:
    """
    Register a controller class and all of its routes.

    Args:
        base_path: Prefix for every route of the class (may be empty)
        registry: Target registry; ``default_registry`` when omitted

    Usable bare (``@Controller``) or called (``@Controller("/items")``).
    """
    if isinstance(base_path, type):
        return Controller("", registry=registry)(base_path)

    target = registry if registry is not None else default_registry

    def decorator(cls: C) -> C:
        target.set_controller_descriptor(cls, ControllerDescriptor(base_path=base_path, controller_type=cls))

        for name, attr in cls.__dict__.items():
            if not callable(attr):
                continue
            fragments = get_fragments(attr)
            # Markers alone still record the route; compiling it then fails
            # for the missing verb.
            parameters = collect_parameters(attr) if fragments or inspect.isfunction(attr) else []
            if not fragments and not parameters:
                continue

            # Re-decorating a class must not accumulate middleware twice
            if target.get_route_descriptor(cls, name) is None:
                for fragment in fragments:
                    target.set_route_descriptor(cls, name, fragment)

            stored = target.get_route_descriptor(cls, name)
            taken = {p.index for p in stored.parameters} if stored is not None else set()
            for parameter in parameters:
                if parameter.index not in taken:
                    target.add_parameter(cls, name, parameter)

        logger.debug(
            "Registered controller %s at %r with %d route(s)",
            cls.__name__,
            base_path,
            len(target.get_route_descriptors(cls)),
        )
        return cls

    return decorator


# ============================================================================
# HTTP verbs
# ============================================================================

class RouteDecorator:
    """
    Base verb decorator.

    Sets ``http_method`` and ``path`` on the route; the path is relative to
    the controller base path and defaults to the base path itself.
    """

    method: Optional[Union[HttpMethod, str]] = None

    def __init__(self, path: str = ""):
        self.path = path

    def __call__(self, func: F) -> F:
        return _stage(func, path=self.path, http_method=self.method)


class Get(RouteDecorator):
    method = HttpMethod.GET


class Post(RouteDecorator):
    method = HttpMethod.POST


class Put(RouteDecorator):
    method = HttpMethod.PUT


class Delete(RouteDecorator):
    method = HttpMethod.DELETE


class Patch(RouteDecorator):
    method = HttpMethod.PATCH


class Head(RouteDecorator):
    method = HttpMethod.HEAD


class Options(RouteDecorator):
    method = HttpMethod.OPTIONS


class Route(RouteDecorator):
    """
    Generic verb decorator.

    Unknown verbs are accepted here and rejected when routes are compiled.

    Example:
        @Route("PATCH", "/:id")
        async def touch(self, id=Param("id")):
            ...
    """

    def __init__(self, method: Union[HttpMethod, str], path: str = ""):
        super().__init__(path)
        self.method = HttpMethod.coerce(method) or method


# ============================================================================
# Validation
# ============================================================================

def _validate(schema: Any, target: ValidationTarget) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage(func, validation=ValidationDescriptor(schema=schema, target=target))
    return decorator


def ValidateBody(schema: Any) -> Callable[[F], F]:
    """Validate the request body with ``schema`` before the handler runs."""
    return _validate(schema, ValidationTarget.BODY)


def ValidateParams(schema: Any) -> Callable[[F], F]:
    """
    Record a schema for the route parameters.

    Shares the single validation slot with ValidateBody/ValidateQuery; only
    body schemas are executed.
    """
    return _validate(schema, ValidationTarget.PARAMS)


def ValidateQuery(schema: Any) -> Callable[[F], F]:
    """
    Record a schema for the query string.

    Shares the single validation slot with ValidateBody/ValidateParams; only
    body schemas are executed.
    """
    return _validate(schema, ValidationTarget.QUERY)


# ============================================================================
# Responses
# ============================================================================

def ApiResponse(status_code: int, description: Optional[str] = None, schema: Any = None) -> Callable[[F], F]:
    """Declare the success status of a route (and document it)."""
    def decorator(func: F) -> F:
        return _stage(
            func,
            response=ResponseDescriptor(status_code=status_code, description=description, schema=schema),
        )
    return decorator


def ApiOkResponse(description: Optional[str] = None, schema: Any = None) -> Callable[[F], F]:
    return ApiResponse(200, description, schema)


def ApiCreatedResponse(description: Optional[str] = None, schema: Any = None) -> Callable[[F], F]:
    return ApiResponse(201, description, schema)


def ApiBadRequestResponse(description: Optional[str] = None, schema: Any = None) -> Callable[[F], F]:
    return ApiResponse(400, description, schema)


def ApiNotFoundResponse(description: Optional[str] = None, schema: Any = None) -> Callable[[F], F]:
    return ApiResponse(404, description, schema)


def ApiInternalServerErrorResponse(description: Optional[str] = None, schema: Any = None) -> Callable[[F], F]:
    return ApiResponse(500, description, schema)


# ============================================================================
# Intents
#
# Recorded on RouteOptions only. UseMiddleware is applied by the host;
# everything else is left for a caller to act on.
# ============================================================================

def UseMiddleware(*middleware: Callable) -> Callable[[F], F]:
    """Attach route-scoped middleware; repeated use accumulates."""
    def decorator(func: F) -> F:
        return _stage_options(func, middleware=list(middleware))
    return decorator


def Authorize(*roles: str) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(func, roles=tuple(roles))
    return decorator


def Cache(ttl_seconds: int, key: Optional[str] = None) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(func, cache_ttl=ttl_seconds, cache_key=key)
    return decorator


def RateLimit(max_requests: int, window_ms: int) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(func, rate_limit_max=max_requests, rate_limit_window_ms=window_ms)
    return decorator


def Transform(fn: Callable[[Any], Any]) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(func, transform=fn)
    return decorator


def Timeout(ms: int) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(func, timeout_ms=ms)
    return decorator


def Deprecated(message: Optional[str] = None, version: Optional[str] = None) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(
            func,
            deprecated=True,
            deprecated_message=message,
            deprecated_version=version,
        )
    return decorator


def ApiTags(*tags: str) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(func, tags=list(tags))
    return decorator


def Version(version: str) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(func, version=version)
    return decorator


def Summary(text: str) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        return _stage_options(func, summary=text)
    return decorator
