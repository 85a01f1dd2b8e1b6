"""
=============================================================================
REQUEST ROUTING
=============================================================================

    Incoming request
          │
          ├── OPTIONS ...............................► empty 200
          │
          ├── /api/<name> ──► exact-match table ──┬──► handler(request)
          │                                       └──► 404 envelope
          │
          └── anything else ─────────────────────────► static lookup

Routes are matched on the exact path and ignore the method: /api/ls
answers GET and POST alike. There are no path parameters; everything a
handler needs arrives in the query string or the form body.

=============================================================================
ERROR MAPPING
=============================================================================

Handlers return responses for everything they can check themselves
(missing parameters become a 400). Anything they raise is mapped here:

    NotFoundError / other SandboxServerError  → envelope with its status
    any other Exception (OSError, ...)        → 500 with str(exc)

Nothing a handler does can escape to the connection loop.

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..errors import SandboxServerError
from .request import HTTPRequest
from .response import HTTPResponse, empty, envelope, internal_error, not_found


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass(frozen=True)
class Route:
    """An exact API path bound to its handler."""
    path: str
    handler: Handler
    name: str = ""


class Router:
    """
    Dispatches requests to API handlers or the static fallback.

    Usage:
        router = Router(api_prefix="/api", fallback=static_handler)

        @router.route("/api/ls")
        def list_directory(request):
            ...

        response = router.handle(request)
    """

    def __init__(self, api_prefix: str = "/api", fallback: Optional[Handler] = None):
        self.api_prefix = api_prefix.rstrip("/")
        self.fallback = fallback
        self._routes: Dict[str, Route] = {}

    def add_route(self, path: str, handler: Handler, name: Optional[str] = None) -> Route:
        if path in self._routes:
            raise ValueError(f"Route already registered: {path}")
        route = Route(path=path, handler=handler, name=name or getattr(handler, "__name__", ""))
        self._routes[path] = route
        return route

    def route(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorator form of add_route()."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, name)
            return handler
        return decorator

    @property
    def routes(self) -> List[Route]:
        return list(self._routes.values())

    def match(self, path: str) -> Optional[Route]:
        return self._routes.get(path)

    def is_api_path(self, path: str) -> bool:
        return path == self.api_prefix or path.startswith(self.api_prefix + "/")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Route ``request`` and always return a response."""
        if request.method == "OPTIONS":
            return empty()

        if self.is_api_path(request.path):
            route = self.match(request.path)
            if route is None:
                return not_found(f"No API route for {request.path}")
            return self._call(route.handler, request)

        if self.fallback is None:
            return not_found(f"Not Found: {request.path}")
        return self._call(self.fallback, request)

    def _call(self, handler: Handler, request: HTTPRequest) -> HTTPResponse:
        try:
            return handler(request)
        except SandboxServerError as e:
            if e.status_code >= 500:
                logger.error(f"{request.method} {request.path} failed: {e}")
            return envelope(e.status_code, message=e.message)
        except Exception as e:
            logger.exception(f"Unhandled error in {request.method} {request.path}")
            return internal_error(str(e) or e.__class__.__name__)
