"""
Waymark - Decorator-driven controllers for async Python web services.

Controller classes annotated with class-, method- and parameter-level
decorators are compiled at startup into a router with:
- Parameter binding (body, route params, query, headers, raw request/response)
- Request-body validation (pydantic models or any parse/validate schema)
- One JSON response envelope for every route
- Structured faults routed to a single error handler
"""

__version__ = "0.1.0"

# ============================================================================
# Core
# ============================================================================

from .app import Waymark
from .config import WaymarkConfig, ConfigLoader
from .request import Request
from .response import Response
from .errors import ErrorHandler
from .middleware import MiddlewareStack, RequestIdMiddleware, RequestLoggerMiddleware

# ============================================================================
# Envelope
# ============================================================================

from .envelope import (
    Envelope,
    ResponseHelper,
    success_data,
    success_message,
    error_envelope,
)

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigurationFault,
    ControllerNotRegisteredFault,
    UnsupportedMethodFault,
    ControllerConfigFault,
    InvalidSchemaFault,
    ConfigInvalidFault,
    RegistrySealedFault,
    ValidationFault,
    HTTPFault,
    BadRequestFault,
    InvalidJSONFault,
    PayloadTooLargeFault,
    NotFoundFault,
    MethodNotAllowedFault,
)

# ============================================================================
# Controller System
# ============================================================================

from .controller import (
    MetadataRegistry,
    default_registry,
    RouteCompiler,
    create_routes,
    Router,
    HttpMethod,
    ParameterSource,
    Controller,
    Get, Post, Put, Delete, Patch, Head, Options, Route,
    Body, Param, Query, Headers, Req, Res,
    ValidateBody, ValidateParams, ValidateQuery,
    ApiResponse,
    ApiOkResponse,
    ApiCreatedResponse,
    ApiBadRequestResponse,
    ApiNotFoundResponse,
    ApiInternalServerErrorResponse,
    UseMiddleware,
    Authorize,
    Cache,
    RateLimit,
    Transform,
    Timeout,
    Deprecated,
    ApiTags,
    Version,
    Summary,
)

__all__ = [
    # Core
    "Waymark",
    "WaymarkConfig",
    "ConfigLoader",
    "Request",
    "Response",
    "ErrorHandler",
    "MiddlewareStack",
    "RequestIdMiddleware",
    "RequestLoggerMiddleware",

    # Envelope
    "Envelope",
    "ResponseHelper",
    "success_data",
    "success_message",
    "error_envelope",

    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigurationFault",
    "ControllerNotRegisteredFault",
    "UnsupportedMethodFault",
    "ControllerConfigFault",
    "InvalidSchemaFault",
    "ConfigInvalidFault",
    "RegistrySealedFault",
    "ValidationFault",
    "HTTPFault",
    "BadRequestFault",
    "InvalidJSONFault",
    "PayloadTooLargeFault",
    "NotFoundFault",
    "MethodNotAllowedFault",

    # Controllers
    "MetadataRegistry",
    "default_registry",
    "RouteCompiler",
    "create_routes",
    "Router",
    "HttpMethod",
    "ParameterSource",
    "Controller",
    "Get", "Post", "Put", "Delete", "Patch", "Head", "Options", "Route",
    "Body", "Param", "Query", "Headers", "Req", "Res",
    "ValidateBody", "ValidateParams", "ValidateQuery",
    "ApiResponse",
    "ApiOkResponse",
    "ApiCreatedResponse",
    "ApiBadRequestResponse",
    "ApiNotFoundResponse",
    "ApiInternalServerErrorResponse",
    "UseMiddleware",
    "Authorize",
    "Cache",
    "RateLimit",
    "Transform",
    "Timeout",
    "Deprecated",
    "ApiTags",
    "Version",
    "Summary",
]
