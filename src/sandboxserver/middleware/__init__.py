"""
Cross-cutting request processing that wraps the router.

    MiddlewarePipeline   chains middleware around a handler
    AccessLogMiddleware  one access-log line per request
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import AccessLogMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "AccessLogMiddleware",
    "RequestLog",
]
