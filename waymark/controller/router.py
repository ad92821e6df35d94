"""
Router - Method + path dispatch table.

The route compiler produces one Router per controller; the host mounts
those into its root router with ``include_router``.

Matching:
- Static routes use an O(1) dict lookup per method.
- Parameterized routes (``/items/:id`` or ``/items/{id}``) use compiled
  regexes, tried in registration order.
- HEAD falls back to the GET route when no HEAD route exists.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Tuple

logger = logging.getLogger("waymark.router")

Handler = Callable[..., Awaitable[None]]

_PARAM_SEGMENT = re.compile(r"^(?::(?P<colon>[A-Za-z_][A-Za-z0-9_]*)|\{(?P<brace>[A-Za-z_][A-Za-z0-9_]*)\})$")


def join_paths(*parts: Optional[str]) -> str:
    """
    Join path fragments into one mount path.

    Leading and trailing slashes of every part are stripped, empty parts
    are dropped and the rest is joined with single slashes behind a
    leading ``/``.

        join_paths("/items/", "/:id")  -> "/items/:id"
        join_paths("", "")            -> "/"
    """
    segments = [p.strip("/") for p in parts if p]
    return "/" + "/".join(s for s in segments if s)


def _normalize(path: str) -> str:
    return path.rstrip("/") or "/"


def compile_path(path: str) -> Tuple[Optional[Pattern[str]], List[str]]:
    """
    Compile a route path.

    Returns:
        ``(None, [])`` for static paths, otherwise the anchored regex and
        the parameter names in order.
    """
    names: List[str] = []
    pieces: List[str] = []
    for segment in _normalize(path).split("/"):
        m = _PARAM_SEGMENT.match(segment)
        if m:
            name = m.group("colon") or m.group("brace")
            names.append(name)
            pieces.append(f"(?P<{name}>[^/]+)")
        else:
            pieces.append(re.escape(segment))
    if not names:
        return None, []
    return re.compile("^" + "/".join(pieces) + "$"), names


@dataclass
class Route:
    """
    One mounted handler.

    Attributes:
        method: Upper-case HTTP verb
        path: Mount path (normalized, parameters in ``:name``/``{name}`` form)
        handler: ``async (request, response)`` binding
        name: Optional name (``Controller.method`` for compiled routes)
        middleware: Route-scoped middleware run by the host
        metadata: Free-form data, e.g. the RouteDescriptor it came from
    """
    method: str
    path: str
    handler: Handler
    name: Optional[str] = None
    middleware: List[Callable] = field(default_factory=list)
    metadata: Any = None
    pattern: Optional[Pattern[str]] = field(default=None, init=False, repr=False)
    param_names: List[str] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        self.method = self.method.upper()
        self.path = _normalize(self.path)
        self.pattern, self.param_names = compile_path(self.path)

    def match(self, path: str) -> Optional[Dict[str, str]]:
        if self.pattern is None:
            return {} if _normalize(path) == self.path else None
        m = self.pattern.match(_normalize(path))
        return m.groupdict() if m else None


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    Route table.

    Handlers are registered directly or via the decorator form:

        router = Router()
        router.get("/health", health)

        @router.post("/items/:id")
        async def update(request, response):
            ...
    """

    def __init__(self):
        self.routes: List[Route] = []
        self._static: Dict[str, Dict[str, Route]] = {}
        self._dynamic: Dict[str, List[Route]] = {}

    def add_route(
        self,
        method: str,
        path: str,
        handler: Handler,
        *,
        name: Optional[str] = None,
        middleware: Optional[List[Callable]] = None,
        metadata: Any = None,
    ) -> Route:
        route = Route(
            method=method,
            path=path,
            handler=handler,
            name=name,
            middleware=list(middleware or []),
            metadata=metadata,
        )
        self._index(route)
        return route

    def _index(self, route: Route) -> None:
        if route.pattern is None:
            table = self._static.setdefault(route.method, {})
            if route.path in table:
                logger.warning(
                    "Route %s %s registered twice; keeping the first (%s)",
                    route.method, route.path, table[route.path].name,
                )
            else:
                table[route.path] = route
        else:
            self._dynamic.setdefault(route.method, []).append(route)
        self.routes.append(route)
        logger.debug("Mounted %s %s", route.method, route.path)

    def _verb(self, method: str, path: str, handler: Optional[Handler], **kwargs) -> Any:
        if handler is not None:
            return self.add_route(method, path, handler, **kwargs)

        def decorator(func: Handler) -> Handler:
            self.add_route(method, path, func, **kwargs)
            return func
        return decorator

    def get(self, path: str, handler: Optional[Handler] = None, **kwargs):
        return self._verb("GET", path, handler, **kwargs)

    def post(self, path: str, handler: Optional[Handler] = None, **kwargs):
        return self._verb("POST", path, handler, **kwargs)

    def put(self, path: str, handler: Optional[Handler] = None, **kwargs):
        return self._verb("PUT", path, handler, **kwargs)

    def delete(self, path: str, handler: Optional[Handler] = None, **kwargs):
        return self._verb("DELETE", path, handler, **kwargs)

    def patch(self, path: str, handler: Optional[Handler] = None, **kwargs):
        return self._verb("PATCH", path, handler, **kwargs)

    def head(self, path: str, handler: Optional[Handler] = None, **kwargs):
        return self._verb("HEAD", path, handler, **kwargs)

    def options(self, path: str, handler: Optional[Handler] = None, **kwargs):
        return self._verb("OPTIONS", path, handler, **kwargs)

    def include_router(self, router: "Router", prefix: str = "") -> None:
        """Mount every route of ``router`` under ``prefix``."""
        for route in router.routes:
            mounted = replace(route, path=join_paths(prefix, route.path))
            self._index(mounted)

    # ========================================================================
    # Matching
    # ========================================================================

    def _match_method(self, method: str, path: str) -> Optional[RouteMatch]:
        static = self._static.get(method)
        if static:
            hit = static.get(_normalize(path))
            if hit is not None:
                return RouteMatch(route=hit, params={})

        for route in self._dynamic.get(method, ()):
            params = route.match(path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """Find the route for ``method`` and ``path``, or None."""
        method = method.upper()
        found = self._match_method(method, path)
        if found is None and method == "HEAD":
            found = self._match_method("GET", path)
        return found

    def allowed_methods(self, path: str) -> List[str]:
        """Methods with a route matching ``path`` (for 405 answers)."""
        allowed = []
        for route in self.routes:
            if route.method not in allowed and route.match(path) is not None:
                allowed.append(route.method)
        return allowed

    def get_routes(self) -> List[Dict[str, Any]]:
        """Route table, in registration order."""
        return [
            {
                "method": route.method,
                "path": route.path,
                "name": route.name,
                "middleware": [getattr(m, "__name__", type(m).__name__) for m in route.middleware],
            }
            for route in self.routes
        ]

    def __len__(self) -> int:
        return len(self.routes)

    def __repr__(self) -> str:
        return f"Router(routes={len(self.routes)})"
