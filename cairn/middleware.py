"""
Middleware system - composable async middleware.

Signature shared by every middleware:

    async def __call__(self, request, next) -> Response
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from .faults import Fault, Severity
from .request import Request
from .response import Response

Handler = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Request, Handler], Awaitable[Response]]


@dataclass
class MiddlewareDescriptor:
    middleware: Middleware
    priority: int
    name: str


class MiddlewareStack:
    """
    Ordered middleware chain. Lower priority runs first (outermost); ties
    keep registration order.
    """

    def __init__(self):
        self.middlewares: List[MiddlewareDescriptor] = []

    def add(self, middleware: Middleware, priority: int = 50, name: Optional[str] = None) -> None:
        if name is None:
            name = getattr(middleware, "__name__", type(middleware).__name__)
        self.middlewares.append(MiddlewareDescriptor(middleware=middleware, priority=priority, name=name))

    def build_handler(self, final_handler: Handler) -> Handler:
        handler = final_handler
        ordered = sorted(self.middlewares, key=lambda d: d.priority)
        # Wrap in reverse so the first middleware is outermost
        for desc in reversed(ordered):
            handler = self._wrap_middleware(desc.middleware, handler)
        return handler

    @staticmethod
    def _wrap_middleware(middleware: Middleware, next_handler: Handler) -> Handler:
        async def wrapped(request: Request) -> Response:
            return await middleware(request, next_handler)
        return wrapped


class ExceptionMiddleware:
    """
    Converts faults to JSON responses via ``Response.from_fault`` and any
    other exception to a 500 ``{"error": "INTERNAL_ERROR"}``.
    """

    def __init__(self):
        self.logger = logging.getLogger("cairn.server")

    async def __call__(self, request: Request, next: Handler) -> Response:
        try:
            return await next(request)
        except Fault as e:
            response = Response.from_fault(e)
            if response.status >= 500 or e.severity in (Severity.ERROR, Severity.FATAL):
                self.logger.error("Fault %s on %s %s: %s", e.code, request.method, request.path, e.metadata or e.message)
            else:
                self.logger.info("Fault %s on %s %s", e.code, request.method, request.path)
            return response
        except Exception:
            self.logger.exception("Unhandled exception on %s %s", request.method, request.path)
            return Response.json({"error": "INTERNAL_ERROR"}, status=500)


class AccessLogMiddleware:
    """
    One log line per request: method, path, status, duration.

    Args:
        logger_name: Logger name
        slow_threshold_ms: Requests slower than this log at WARNING
    """

    def __init__(self, logger_name: str = "cairn.access", slow_threshold_ms: float = 1000.0):
        self.logger = logging.getLogger(logger_name)
        self._slow_threshold = slow_threshold_ms

    async def __call__(self, request: Request, next: Handler) -> Response:
        start = time.perf_counter()
        response = await next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        line = f"{request.method} {request.path} {response.status} {duration_ms:.1f}ms"
        if response.status >= 500:
            self.logger.error(line)
        elif duration_ms > self._slow_threshold:
            self.logger.warning(f"SLOW {line}")
        else:
            self.logger.info(line)
        return response
