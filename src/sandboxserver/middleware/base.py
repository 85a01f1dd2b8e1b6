"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Middleware wraps the router the way layers wrap an onion:

    ┌─────────────────────────────────────────────┐
    │  AccessLogMiddleware                        │
    │  ┌───────────────────────────────────────┐  │
    │  │            router.handle              │  │
    │  └───────────────────────────────────────┘  │
    └─────────────────────────────────────────────┘

The request flows inward through each layer and the response flows back
out. The first middleware added is the outermost.

    pipeline = MiddlewarePipeline().add(AccessLogMiddleware())
    handler = pipeline.wrap(router.handle)

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)

NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

    Subclasses implement ``__call__(request, next)`` and must call
    ``next(request)`` unless they answer the request themselves.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """Ordered chain of middleware around a final handler."""

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def __len__(self) -> int:
        return len(self._middleware)

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain. Wrapping runs in reverse so the first middleware
        added ends up outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped
