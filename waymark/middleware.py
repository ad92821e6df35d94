"""
Middleware system - Composable async middleware around route bindings.

A middleware is ``async (request, response, call_next)``; it may act
before and after ``await call_next(request, response)`` or answer on its
own by writing to the response and not calling ``call_next``.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from .request import Request
from .response import Response

Handler = Callable[[Request, Response], Awaitable[None]]
Middleware = Callable[[Request, Response, Handler], Awaitable[None]]


@dataclass
class MiddlewareDescriptor:
    """Descriptor for middleware registration."""
    middleware: Middleware
    scope: str  # "global", "controller:name", "route:name"
    priority: int
    name: str


class MiddlewareStack:
    """
    Manages middleware stack with deterministic ordering.
    Order: Global < Controller < Route, then by priority, then by insertion.
    """

    def __init__(self):
        self.middlewares: List[MiddlewareDescriptor] = []
        self._sorted = True

    def add(
        self,
        middleware: Middleware,
        scope: str = "global",
        priority: int = 50,
        name: Optional[str] = None,
    ) -> None:
        """Add middleware to stack."""
        if name is None:
            name = getattr(middleware, "__name__", type(middleware).__name__)

        self.middlewares.append(MiddlewareDescriptor(
            middleware=middleware,
            scope=scope,
            priority=priority,
            name=name,
        ))
        self._sorted = False

    def _sort_middlewares(self) -> None:
        scope_order = {"global": 0, "controller": 1, "route": 2}

        def sort_key(desc: MiddlewareDescriptor):
            scope_type = desc.scope.split(":")[0]
            return (scope_order.get(scope_type, 99), desc.priority)

        # list.sort is stable: equal keys keep insertion order
        self.middlewares.sort(key=sort_key)

    def build_handler(self, final_handler: Handler) -> Handler:
        """Build middleware chain wrapping the final handler."""
        if not self._sorted:
            self._sort_middlewares()
            self._sorted = True

        handler = final_handler
        # Wrap in reverse order so first middleware is outermost
        for desc in reversed(self.middlewares):
            handler = self._wrap_middleware(desc.middleware, handler)
        return handler

    def _wrap_middleware(self, middleware: Middleware, next_handler: Handler) -> Handler:
        async def wrapped(request: Request, response: Response) -> None:
            await middleware(request, response, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self.middlewares)


# Default middleware implementations

class RequestIdMiddleware:
    """
    Tags each request with an ID.

    Reuses the incoming header when present, otherwise generates 16 random
    bytes as hex. The ID is stored in ``request.state["request_id"]`` and
    echoed in the response headers.
    """

    def __init__(self, header_name: str = "X-Request-ID"):
        self.header_name = header_name

    async def __call__(self, request: Request, response: Response, call_next: Handler) -> None:
        request_id = request.header(self.header_name) or os.urandom(16).hex()
        request.state["request_id"] = request_id

        await call_next(request, response)
        response.set_header(self.header_name, request_id)


class RequestLoggerMiddleware:
    """Logs each request line, then status and timing."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.logger = log or logging.getLogger("waymark.middleware")

    async def __call__(self, request: Request, response: Response, call_next: Handler) -> None:
        self.logger.info("Request: %s %s", request.method, request.path)
        if not self.logger.isEnabledFor(logging.DEBUG):
            await call_next(request, response)
            return

        start = time.monotonic()
        await call_next(request, response)
        elapsed_ms = (time.monotonic() - start) * 1000.0
        self.logger.debug(
            "%s %s - %d (%.1fms)",
            request.method, request.path, response.status, elapsed_ms,
        )
