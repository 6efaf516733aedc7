"""
WebServer - ASGI application for a Cairn project.

Wires the route table, the middleware chain (access log, fault mapping,
sessions, static files) and ASGI lifespan hooks.

    >>> server = WebServer(cairn, config, admin=AdminUI(cairn))
    >>> @server.get("/api/hello")
    ... async def hello(request):
    ...     return Response.json({"hello": "world"})
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Tuple, TYPE_CHECKING

from .config import CairnConfig
from .faults import MethodNotAllowedFault, RouteNotFoundFault
from .middleware import AccessLogMiddleware, ExceptionMiddleware, Handler, MiddlewareStack
from .request import Request
from .response import Response
from .static import StaticMiddleware

if TYPE_CHECKING:
    from .admin import AdminUI
    from .core import Cairn

logger = logging.getLogger("cairn.server")

LifecycleHook = Callable[[], Awaitable[Any]]

_PARAM_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


# ============================================================================
# Router
# ============================================================================

@dataclass
class Route:
    method: str
    path: str
    handler: Handler
    regex: Pattern = field(init=False)

    def __post_init__(self):
        parts = []
        last = 0
        for m in _PARAM_RE.finditer(self.path):
            parts.append(re.escape(self.path[last:m.start()]))
            parts.append(f"(?P<{m.group(1)}>[^/]+)")
            last = m.end()
        parts.append(re.escape(self.path[last:]))
        self.regex = re.compile("^" + "".join(parts) + "$")


class Router:
    """
    Method + path route table. ``{name}`` segments become path params.
    """

    def __init__(self):
        self.routes: List[Route] = []

    def add(self, method: str, path: str, handler: Handler) -> Route:
        route = Route(method.upper(), path, handler)
        self.routes.append(route)
        return route

    def match(self, method: str, path: str) -> Tuple[Handler, Dict[str, str]]:
        """
        Raises:
            RouteNotFoundFault: No route matches the path
            MethodNotAllowedFault: The path matches under other methods only
        """
        allowed = []
        for route in self.routes:
            m = route.regex.match(path)
            if m is None:
                continue
            if route.method == method or (method == "HEAD" and route.method == "GET"):
                return route.handler, m.groupdict()
            allowed.append(route.method)
        if allowed:
            raise MethodNotAllowedFault(allowed)
        raise RouteNotFoundFault()


# ============================================================================
# WebServer
# ============================================================================

class WebServer:
    """
    ASGI application.

    Args:
        cairn: Project registry
        config: Loaded configuration
        admin: Admin UI to mount under its admin path
        session: Resolve the session on every request
    """

    def __init__(
        self,
        cairn: "Cairn",
        config: CairnConfig,
        *,
        admin: Optional["AdminUI"] = None,
        session: bool = True,
    ):
        self.cairn = cairn
        self.config = config
        self.admin = admin
        self.router = Router()
        self.middleware = MiddlewareStack()
        self.static = StaticMiddleware({config.static_route: config.static_path})

        self._startup_hooks: List[LifecycleHook] = []
        self._shutdown_hooks: List[LifecycleHook] = []
        self._handler: Optional[Handler] = None
        self._started = False

        self.middleware.add(AccessLogMiddleware(), priority=0, name="access_log")
        self.middleware.add(ExceptionMiddleware(), priority=10, name="exceptions")
        if session:
            self.middleware.add(cairn.session.validate, priority=20, name="session")
        self.middleware.add(self.static, priority=30, name="static")

        if admin is not None:
            admin.mount(self)

    # ========================================================================
    # Routes
    # ========================================================================

    def route(self, method: str, path: str) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.router.add(method, path, handler)
            self._handler = None
            return handler
        return decorator

    def get(self, path: str):
        return self.route("GET", path)

    def post(self, path: str):
        return self.route("POST", path)

    def patch(self, path: str):
        return self.route("PATCH", path)

    def delete(self, path: str):
        return self.route("DELETE", path)

    async def _dispatch(self, request: Request) -> Response:
        handler, params = self.router.match(request.method, request.path)
        request.path_params = params
        return await handler(request)

    async def handle(self, request: Request) -> Response:
        if self._handler is None:
            self._handler = self.middleware.build_handler(self._dispatch)
        return await self._handler(request)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def on_startup(self, hook: LifecycleHook) -> LifecycleHook:
        self._startup_hooks.append(hook)
        return hook

    def on_shutdown(self, hook: LifecycleHook) -> LifecycleHook:
        self._shutdown_hooks.append(hook)
        return hook

    async def startup(self) -> None:
        if self._started:
            return
        for hook in self._startup_hooks:
            await hook()
        self._started = True
        logger.info("%s started on port %s", self.cairn.name, self.config.port)

    async def shutdown(self) -> None:
        for hook in self._shutdown_hooks:
            await hook()
        await self.cairn.disconnect()
        self._started = False
        logger.info("%s stopped", self.cairn.name)

    # ========================================================================
    # ASGI
    # ========================================================================

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            request = Request(scope, receive)
            response = await self.handle(request)
            await response.send_asgi(send, head=request.method == "HEAD")
        elif scope_type == "lifespan":
            await self.handle_lifespan(receive, send)

    async def handle_lifespan(self, receive: Callable, send: Callable) -> None:
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    logger.error("Startup error: %s", e, exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    await self.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    logger.error("Shutdown error: %s", e, exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break
