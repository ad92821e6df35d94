"""
Waymark Controller System

Decorator-driven controllers compiled into routers at bootstrap.

Key Features:
- Explicit metadata registry, sealed before serving
- Decorators only record metadata; nothing runs at import time
- Parameter binding from body, route params, query, headers
- Body validation with pydantic models or any parse/validate schema
- One response envelope for every route

Example:
    from typing import Annotated
    from waymark.controller import Controller, Get, Post, Param, Body, RouteCompiler

    @Controller("/items")
    class ItemsController:

        @Get("/:id")
        async def get_item(self, id: Annotated[str, Param("id")]):
            return {"id": id}

        @Post("")
        async def create(self, payload=Body()):
            return payload

    router = RouteCompiler().create_routes(ItemsController())
"""

from .descriptors import (
    HttpMethod,
    ParameterSource,
    ValidationTarget,
    ControllerDescriptor,
    RouteDescriptor,
    ParameterDescriptor,
    ValidationDescriptor,
    ResponseDescriptor,
    RouteOptions,
)
from .registry import MetadataRegistry, default_registry
from .params import Body, Param, Query, Headers, Req, Res, collect_parameters
from .decorators import (
    Controller,
    Get, Post, Put, Delete, Patch, Head, Options, Route,
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
from .router import Router, Route as MountedRoute, RouteMatch, join_paths
from .compiler import RouteCompiler, create_routes, build_validator, extract_arguments

__all__ = [
    # Descriptors
    "HttpMethod",
    "ParameterSource",
    "ValidationTarget",
    "ControllerDescriptor",
    "RouteDescriptor",
    "ParameterDescriptor",
    "ValidationDescriptor",
    "ResponseDescriptor",
    "RouteOptions",

    # Registry
    "MetadataRegistry",
    "default_registry",

    # Parameters
    "Body", "Param", "Query", "Headers", "Req", "Res",
    "collect_parameters",

    # Decorators
    "Controller",
    "Get", "Post", "Put", "Delete", "Patch", "Head", "Options", "Route",
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

    # Routing
    "Router",
    "MountedRoute",
    "RouteMatch",
    "join_paths",

    # Compilation
    "RouteCompiler",
    "create_routes",
    "build_validator",
    "extract_arguments",
]
