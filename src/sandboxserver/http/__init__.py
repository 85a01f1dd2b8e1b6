"""
=============================================================================
HTTP LAYER
=============================================================================

Turns assembled request bytes into HTTPRequest objects and HTTPResponse
objects back into bytes. Only the subset the file browser needs is
implemented:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       request line, headers, query, url-encoded form     │
    │ multipart.py     multipart/form-data for /api/upload                │
    │ response.py      status line + three headers + body, JSON envelope  │
    │ router.py        exact API table, static fallback, OPTIONS          │
    │ status_codes.py  200 / 400 / 404 / 500 and their reason phrases     │
    │ mime_types.py    extension → MIME type, text/image/sqlite checks    │
    └─────────────────────────────────────────────────────────────────────┘

    REQUEST:                          RESPONSE:
    ─────────                         ──────────
    POST /api/ls HTTP/1.1\\r\\n         HTTP/1.1 200 OK\\r\\n
    Content-Length: 9\\r\\n             Content-Type: application/json; charset=utf-8\\r\\n
    \\r\\n                              Content-Length: 27\\r\\n
    path=%2F                          Connection: close\\r\\n
                                      \\r\\n
                                      {"code":200,"data":[...]}

=============================================================================
"""

from .request import HTTPRequest, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    envelope,
    ok,
    validation_error,
    not_found,
    internal_error,
    empty,
    file_response,
    static_not_found,
)
from .router import Router, Route
from .status_codes import HTTPStatus, reason_phrase
from .multipart import MultipartParser, parse_boundary
from .mime_types import get_mime_type, is_text_file, is_sqlite_file, sniff_image, media_kind

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "parse_request",
    "HTTPResponse",
    "ResponseBuilder",
    "envelope",
    "ok",
    "validation_error",
    "not_found",
    "internal_error",
    "empty",
    "file_response",
    "static_not_found",
    "Router",
    "Route",
    "HTTPStatus",
    "reason_phrase",
    "MultipartParser",
    "parse_boundary",
    "get_mime_type",
    "is_text_file",
    "is_sqlite_file",
    "sniff_image",
    "media_kind",
]
