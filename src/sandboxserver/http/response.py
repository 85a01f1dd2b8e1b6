"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Every response the server writes has the same shape:

    HTTP/1.1 200 OK\\r\\n
    Content-Type: application/json; charset=utf-8\\r\\n
    Content-Length: 42\\r\\n
    Connection: close\\r\\n
    \\r\\n
    {"code": 200, "data": [...]}

- Content-Length is always computed from the encoded body, never trusted
  from the caller.
- Connection is always "close": one request per TCP connection.
- The charset parameter is attached to every MIME type, binary included;
  browsers ignore it for images and video.

=============================================================================
THE API ENVELOPE
=============================================================================

Everything under /api answers with JSON:

    {"code": 200, "data": ...}              success
    {"code": 400, "message": "..."}         failure

``code`` repeats the HTTP status so the browser UI can branch on the body
alone. Raw file bytes (static assets, staged previews) are not wrapped.

=============================================================================
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from .status_codes import HTTPStatus, reason_phrase


JSON_MIME = "application/json"
TEXT_MIME = "text/plain"


@dataclass
class HTTPResponse:
    """
    Status, MIME type and body. Handlers build one; the server serializes
    it exactly once with to_bytes().
    """

    status: int = HTTPStatus.OK
    mime_type: str = TEXT_MIME
    body: Union[str, bytes] = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {reason_phrase(self.status)}"

    @property
    def body_bytes(self) -> bytes:
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    def to_bytes(self) -> bytes:
        body = self.body_bytes
        head = (
            f"{self.status_line}\r\n"
            f"Content-Type: {self.mime_type}; charset=utf-8\r\n"
            f"Content-Length: {len(body)}\r\n"
            f"Connection: close\r\n"
            f"\r\n"
        )
        return head.encode("latin-1") + body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .json({"code": 404, "message": "no such file"})
            .build())
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._mime_type = TEXT_MIME
        self._body: Union[str, bytes] = b""

    def status(self, status: int) -> "ResponseBuilder":
        self._status = status
        return self

    def mime_type(self, mime_type: str) -> "ResponseBuilder":
        self._mime_type = mime_type
        return self

    def text(self, text: str) -> "ResponseBuilder":
        self._body = text
        self._mime_type = TEXT_MIME
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        self._body = json.dumps(data, ensure_ascii=False)
        self._mime_type = JSON_MIME
        return self

    def file(self, content: bytes, mime_type: str) -> "ResponseBuilder":
        self._body = content
        self._mime_type = mime_type
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(status=self._status, mime_type=self._mime_type, body=self._body)

    def to_bytes(self) -> bytes:
        return self.build().to_bytes()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def envelope(status: int, data: Any = None, message: Optional[str] = None) -> HTTPResponse:
    """Wrap ``data``/``message`` in the ``{code, message?, data?}`` envelope."""
    payload = {"code": int(status)}
    if message is not None:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    return ResponseBuilder().status(status).json(payload).build()


def ok(data: Any = None) -> HTTPResponse:
    """200 with ``data`` in the envelope."""
    return envelope(HTTPStatus.OK, data=data)


def validation_error(message: str) -> HTTPResponse:
    """400 for a missing or unusable parameter."""
    return envelope(HTTPStatus.BAD_REQUEST, message=message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return envelope(HTTPStatus.NOT_FOUND, message=message)


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    return envelope(HTTPStatus.INTERNAL_SERVER_ERROR, message=message)


def empty() -> HTTPResponse:
    """Bare 200 with no body (the OPTIONS reply)."""
    return ResponseBuilder().build()


def file_response(content: bytes, mime_type: str) -> HTTPResponse:
    """Raw file bytes, not wrapped in the envelope."""
    return ResponseBuilder().file(content, mime_type).build()


def static_not_found(path: str) -> HTTPResponse:
    """Plain-text 404 for a missing static asset."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).text(f"Not Found: {path}").build()
