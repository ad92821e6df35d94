"""
Route Compiler - Turns a registered controller instance into a Router.

For every route descriptor of the controller's class the compiler mounts
one *binding*, an ``async (request, response)`` callable that:

1. extracts the handler arguments (sorted by index, one extractor per
   ParameterSource),
2. validates the request body when a body schema is attached,
3. invokes the controller method, awaiting it when needed,
4. normalizes the return value into the response envelope.

Anything raised in those steps goes to the configured error handler
exactly once, or propagates to the host when none is configured.

All configuration problems (unregistered controller, missing verb,
non-callable handler, bindings that do not fit the signature, unusable
schema) are raised here, at bootstrap, never while serving.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..envelope import Envelope
from ..faults import (
    ControllerConfigFault,
    ControllerNotRegisteredFault,
    InvalidSchemaFault,
    UnsupportedMethodFault,
    ValidationFault,
)
from ..request import Request
from ..response import Response
from .descriptors import (
    HttpMethod,
    ParameterDescriptor,
    ParameterSource,
    RouteDescriptor,
    ValidationTarget,
)
from .params import ParamMarker
from .registry import MetadataRegistry, default_registry
from .router import Router, join_paths

logger = logging.getLogger("waymark.compiler")

ErrorHandlerFn = Callable[[BaseException, Request, Response], Union[None, Awaitable[None]]]
Validator = Callable[[Any], Any]


# ============================================================================
# Parameter extraction
# ============================================================================

def _from_body(request: Request, response: Response, key: Optional[str]) -> Any:
    body = request.body
    if key is None:
        return body
    return body.get(key) if isinstance(body, Mapping) else None


def _from_route_params(request: Request, response: Response, key: Optional[str]) -> Any:
    if key is None:
        return dict(request.path_params)
    return request.path_params.get(key)


def _from_query(request: Request, response: Response, key: Optional[str]) -> Any:
    query = request.query
    if key is None:
        return query
    return query.get(key)


def _from_headers(request: Request, response: Response, key: Optional[str]) -> Any:
    if key is None:
        return request.headers.to_dict()
    return request.header(key)


EXTRACTORS: Dict[ParameterSource, Callable[[Request, Response, Optional[str]], Any]] = {
    ParameterSource.BODY: _from_body,
    ParameterSource.ROUTE_PARAM: _from_route_params,
    ParameterSource.QUERY: _from_query,
    ParameterSource.HEADER: _from_headers,
    ParameterSource.RAW_REQUEST: lambda request, response, key: request,
    ParameterSource.RAW_RESPONSE: lambda request, response, key: response,
}


def extract_arguments(
    parameters: List[ParameterDescriptor],
    request: Request,
    response: Response,
    defaults: Sequence[Any] = (),
) -> Tuple[List[Any], Dict[str, Any]]:
    """
    Build the positional and keyword arguments for a handler.

    ``parameters`` must already be sorted by index. A position without a
    descriptor takes the handler's own default from ``defaults`` (one
    entry per positional parameter), or None past its end. Descriptors
    carrying a ``name`` go into the keyword mapping.
    """
    args: List[Any] = []
    kwargs: Dict[str, Any] = {}
    positional = [p for p in parameters if p.name is None]
    if positional:
        size = positional[-1].index + 1
        args = [defaults[i] if i < len(defaults) else None for i in range(size)]

    for param in parameters:
        value = EXTRACTORS[param.source](request, response, param.key)
        if param.transform is not None:
            value = param.transform(value)
        if param.name is None:
            args[param.index] = value
        else:
            kwargs[param.name] = value
    return args, kwargs


_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def _positional_defaults(signature: inspect.Signature) -> List[Any]:
    """Default of every positional parameter; None where there is none."""
    defaults = []
    for param in signature.parameters.values():
        if param.kind not in _POSITIONAL:
            break
        default = param.default
        if default is inspect.Parameter.empty or isinstance(default, ParamMarker):
            default = None
        defaults.append(default)
    return defaults


def _check_signature(
    signature: inspect.Signature,
    parameters: List[ParameterDescriptor],
    controller_name: str,
    method_name: str,
) -> None:
    """Reject bindings that cannot line up with the handler signature."""
    kinds = [p.kind for p in signature.parameters.values()]
    positional = sum(1 for kind in kinds if kind in _POSITIONAL)
    takes_var_positional = inspect.Parameter.VAR_POSITIONAL in kinds
    takes_var_keyword = inspect.Parameter.VAR_KEYWORD in kinds

    for param in parameters:
        if param.name is None:
            if param.index >= positional and not takes_var_positional:
                raise ControllerConfigFault(
                    controller_name,
                    f"'{method_name}' has no positional parameter at index {param.index}",
                )
        elif param.name not in signature.parameters and not takes_var_keyword:
            raise ControllerConfigFault(
                controller_name,
                f"'{method_name}' has no keyword parameter '{param.name}'",
            )


# ============================================================================
# Validation
# ============================================================================

def _check_validate_result(result: Any) -> None:
    """Raise for ``validate()`` results that report errors instead of raising."""
    if isinstance(result, Mapping):
        error = result.get("error") if "error" in result else (dict(result) or None)
    else:
        error = getattr(result, "error", None)
    if not error:
        return
    if isinstance(error, BaseException):
        raise error
    raise ValidationFault(details=error)


def build_validator(schema: Any, route: str) -> Validator:
    """
    Adapt ``schema`` to a one-argument validator.

    Supported, in order: objects with ``parse(data)``, pydantic models
    (``model_validate``), objects with ``validate(data)`` that either raise
    or return their errors, and plain callables.

    Raises:
        InvalidSchemaFault: If ``schema`` matches none of them
    """
    parse = getattr(schema, "parse", None)
    if callable(parse):
        return parse

    model_validate = getattr(schema, "model_validate", None)
    if callable(model_validate):
        return model_validate

    validate = getattr(schema, "validate", None)
    if callable(validate):
        def run_validate(data: Any) -> Any:
            result = validate(data)
            _check_validate_result(result)
            return result
        return run_validate

    if callable(schema):
        return schema

    raise InvalidSchemaFault(schema, route)


# ============================================================================
# Compiler
# ============================================================================

class RouteCompiler:
    """
    Compiles registered controllers into routers.

    Args:
        registry: Metadata registry to read; ``default_registry`` when omitted
        error_handler: ``(exc, request, response)`` callable (sync or async)
                       receiving every exception raised by a binding. When
                       None, exceptions propagate to the caller.
    """

    def __init__(
        self,
        registry: Optional[MetadataRegistry] = None,
        *,
        error_handler: Optional[ErrorHandlerFn] = None,
    ):
        self.registry = registry if registry is not None else default_registry
        self.error_handler = error_handler

    def create_routes(self, controller: Any) -> Router:
        """
        Compile ``controller`` (an instance of a registered class).

        Raises:
            ControllerNotRegisteredFault: If the class was never registered
            UnsupportedMethodFault: If a route has no (or an unknown) verb
            ControllerConfigFault: If a route names a non-callable attribute or
                binds a parameter its signature does not have
            InvalidSchemaFault: If a body schema cannot be used
        """
        controller_type = type(controller)
        controller_descriptor = self.registry.get_controller_descriptor(controller_type)
        if controller_descriptor is None:
            raise ControllerNotRegisteredFault(controller_type.__name__)

        router = Router()
        for route in self.registry.get_route_descriptors(controller_type):
            full_path = join_paths(controller_descriptor.base_path, route.path)
            verb = HttpMethod.coerce(route.http_method)
            if verb is None:
                raise UnsupportedMethodFault(
                    route.http_method,
                    f"{controller_type.__name__}.{route.method_name}",
                )

            binding = self._bind(controller, route)
            router.add_route(
                verb.value,
                full_path,
                binding,
                name=f"{controller_type.__name__}.{route.method_name}",
                middleware=route.options.middleware,
                metadata=route,
            )
            logger.debug(
                "%s %s -> %s.%s",
                verb.value, full_path, controller_type.__name__, route.method_name,
            )

        logger.info(
            "Compiled %s: %d route(s) under %s",
            controller_type.__name__,
            len(router),
            join_paths(controller_descriptor.base_path),
        )
        return router

    def _bind(self, controller: Any, route: RouteDescriptor) -> Callable[[Request, Response], Awaitable[None]]:
        route_name = f"{type(controller).__name__}.{route.method_name}"

        method = getattr(controller, route.method_name, None)
        if method is None or not callable(method):
            raise ControllerConfigFault(
                type(controller).__name__,
                f"route '{route.method_name}' is not a callable attribute",
            )

        parameters = route.sorted_parameters()

        defaults: List[Any] = []
        try:
            signature = inspect.signature(method)
        except (TypeError, ValueError):
            signature = None
        if signature is not None:
            _check_signature(signature, parameters, type(controller).__name__, route.method_name)
            defaults = _positional_defaults(signature)

        validator: Optional[Validator] = None
        if route.validation is not None and route.validation.target == ValidationTarget.BODY:
            validator = build_validator(route.validation.schema, route_name)

        declared_status = route.response.status_code if route.response is not None else None
        default_status = 201 if HttpMethod.coerce(route.http_method) is HttpMethod.POST else 200
        error_handler = self.error_handler

        async def binding(request: Request, response: Response) -> None:
            try:
                args, kwargs = extract_arguments(parameters, request, response, defaults)

                if validator is not None:
                    validator(request.body)

                result = method(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result

                _normalize(result, response, declared_status or default_status)
            except Exception as exc:
                if error_handler is None:
                    raise
                outcome = error_handler(exc, request, response)
                if inspect.isawaitable(outcome):
                    await outcome

        binding.__name__ = route.method_name
        binding.__qualname__ = route_name
        return binding


def _normalize(result: Any, response: Response, status: int) -> None:
    """Write a handler's return value unless the handler already answered."""
    if result is None:
        return
    if response.committed:
        logger.debug("Handler returned a value after writing the response; ignoring it")
        return
    if isinstance(result, Response):
        response.adopt(result)
    elif isinstance(result, Envelope):
        response.send_json(result.to_dict(), status if result.success else 400)
    else:
        response.send_json({"success": True, "data": result}, status)


def create_routes(
    controller: Any,
    registry: Optional[MetadataRegistry] = None,
    *,
    error_handler: Optional[ErrorHandlerFn] = None,
) -> Router:
    """Shortcut for ``RouteCompiler(registry, error_handler=...).create_routes(controller)``."""
    return RouteCompiler(registry, error_handler=error_handler).create_routes(controller)
