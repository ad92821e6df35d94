"""
Waymark - ASGI host for compiled controllers.

Owns the root router, the global middleware stack and the single error
handler. Controllers are compiled and mounted with
:meth:`Waymark.register_controller`; the metadata registry is sealed when
the lifespan starts.

    app = Waymark()
    app.register_controller(ItemsController(), prefix="/api")

    if __name__ == "__main__":
        app.run()
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from .config import WaymarkConfig
from .controller.compiler import RouteCompiler
from .controller.registry import MetadataRegistry, default_registry
from .controller.router import Route, Router
from .errors import ErrorHandler
from .faults import MethodNotAllowedFault
from .middleware import (
    Handler,
    Middleware,
    MiddlewareStack,
    RequestIdMiddleware,
    RequestLoggerMiddleware,
)
from .request import Request
from .response import Response

Hook = Callable[[], Any]


class Waymark:
    """
    ASGI application.

    Args:
        config: Host configuration (defaults when omitted)
        registry: Metadata registry the controllers were registered in
        error_handler: ``(exc, request, response)`` callable; an
                       ErrorHandler honouring ``config.debug`` by default
        default_middleware: Install RequestIdMiddleware and
                            RequestLoggerMiddleware
    """

    def __init__(
        self,
        config: Optional[WaymarkConfig] = None,
        *,
        registry: Optional[MetadataRegistry] = None,
        error_handler: Optional[Callable] = None,
        default_middleware: bool = True,
    ):
        self.config = config or WaymarkConfig()
        self.registry = registry if registry is not None else default_registry
        self.error_handler = error_handler or ErrorHandler(debug=self.config.debug)
        self.router = Router()
        self.middleware = MiddlewareStack()
        self.compiler = RouteCompiler(self.registry, error_handler=self.error_handler)
        self.logger = logging.getLogger("waymark.app")

        self._startup_hooks: List[Hook] = []
        self._shutdown_hooks: List[Hook] = []
        self._started = False
        self._chain: Optional[Handler] = None
        self._route_chains: Dict[int, Handler] = {}

        if default_middleware:
            self.use(RequestIdMiddleware(self.config.request_id_header), priority=10)
            self.use(RequestLoggerMiddleware(), priority=20)

    # ========================================================================
    # Wiring
    # ========================================================================

    def register_controller(self, controller: Any, prefix: str = "") -> Router:
        """
        Compile ``controller`` and mount its routes under ``prefix``.

        Raises:
            ConfigurationFault: Any compile-time problem with the controller
        """
        router = self.compiler.create_routes(controller)
        self.include_router(router, prefix)
        return router

    def include_router(self, router: Router, prefix: str = "") -> None:
        self.router.include_router(router, prefix)
        self._route_chains.clear()

    def use(self, middleware: Middleware, priority: int = 50, name: Optional[str] = None) -> None:
        """Add global middleware, run around every request."""
        self.middleware.add(middleware, scope="global", priority=priority, name=name)
        self._chain = None
        self._route_chains.clear()

    def on_startup(self, hook: Hook) -> Hook:
        self._startup_hooks.append(hook)
        return hook

    def on_shutdown(self, hook: Hook) -> Hook:
        self._shutdown_hooks.append(hook)
        return hook

    def routes(self) -> List[Dict[str, Any]]:
        return self.router.get_routes()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def startup(self) -> None:
        """Run startup hooks and seal the registry (when configured)."""
        if self._started:
            return
        for hook in self._startup_hooks:
            await _maybe_await(hook())
        if self.config.seal_registry:
            self.registry.seal()
        self._started = True
        self.logger.info("Waymark started with %d route(s)", len(self.router))

    async def shutdown(self) -> None:
        if not self._started:
            return
        for hook in reversed(self._shutdown_hooks):
            await _maybe_await(hook())
        self._started = False
        self.logger.info("Waymark stopped")

    # ========================================================================
    # ASGI
    # ========================================================================

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning("Unsupported ASGI scope type: %s", scope_type)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        request = Request(scope, receive, max_body_size=self.config.max_body_size)
        response = Response()

        if self._chain is None:
            self._chain = self.middleware.build_handler(self._dispatch)

        try:
            await self._chain(request, response)
        except Exception as exc:
            await _maybe_await(self.error_handler(exc, request, response))

        await response.send_asgi(send, head=request.method == "HEAD")

    async def _dispatch(self, request: Request, response: Response) -> None:
        await request.load()

        match = self.router.match(request.method, request.path)
        if match is None:
            allowed = self.router.allowed_methods(request.path)
            if allowed:
                raise MethodNotAllowedFault(request.method, request.path, allowed)
            not_found = getattr(self.error_handler, "not_found", None) or ErrorHandler().not_found
            await _maybe_await(not_found(request, response))
            return

        request.path_params = match.params
        request.state["route"] = match.route.name
        await self._route_chain(match.route)(request, response)

    def _route_chain(self, route: Route) -> Handler:
        chain = self._route_chains.get(id(route))
        if chain is None:
            if route.middleware:
                stack = MiddlewareStack()
                for mw in route.middleware:
                    stack.add(mw, scope=f"route:{route.name or route.path}")
                chain = stack.build_handler(route.handler)
            else:
                chain = route.handler
            self._route_chains[id(route)] = chain
        return chain

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error("Startup error: %s", e, exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    await self.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error("Shutdown error: %s", e, exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break

    # ========================================================================
    # Serving
    # ========================================================================

    def run(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        log_level: Optional[str] = None,
    ) -> None:
        """
        Serve the app with uvicorn.

        Values left as None come from the configuration.
        """
        import uvicorn

        level = (log_level or self.config.log_level).upper()
        logging.basicConfig(
            level=getattr(logging, level),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        )

        host = host or self.config.host
        port = port or self.config.port
        self.logger.info("Starting uvicorn server on %s:%s", host, port)
        uvicorn.run(self, host=host, port=port, log_level=level.lower())


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
