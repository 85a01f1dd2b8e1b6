"""
Request handlers.

    ApiHandler         the /api/* JSON endpoints
    StaticFileHandler  files from the static root (the browser UI, staged previews)
"""

from .api import ApiHandler
from .static import StaticFileHandler

__all__ = ["ApiHandler", "StaticFileHandler"]
