"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes a Connection assembled into an immutable HTTPRequest.

    "POST /api/mv?src=%2Fa.txt HTTP/1.1\\r\\n"     ◄── request line
    "Host: 192.168.1.20:8080\\r\\n"                 ◄── headers
    "Content-Type: application/x-www-form-urlencoded\\r\\n"
    "Content-Length: 22\\r\\n"
    "\\r\\n"                                         ◄── header terminator
    "dest=%2Fb.txt&rename=1"                       ◄── body

=============================================================================
DECODING RULES
=============================================================================

1. The path, every query value and every urlencoded form value go through
   the same decoder: "+" becomes a space first, then %XX sequences are
   decoded as UTF-8. Non-ASCII file names survive the round trip.

2. Header names are lower-cased. A repeated header keeps its LAST value.

3. The body is parsed as a form only when it is POSTed as
   application/x-www-form-urlencoded. A multipart/form-data body is
   decoded only on the upload endpoint; everywhere else it stays raw.

4. The parser is handed the whole buffer the assembler collected and
   finds the header/body split again on its own, so parsing the same
   bytes twice gives the same request.

=============================================================================
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union
from urllib.parse import unquote_plus

from ..errors import ProtocolError
from .multipart import MultipartParser, parse_boundary


logger = logging.getLogger(__name__)

FormValue = Union[str, bytes]

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART_FORM_DATA = "multipart/form-data"


def decode_component(value: str) -> str:
    """Decode a path, query or form component ("+" is a space)."""
    return unquote_plus(value, encoding="utf-8", errors="replace")


def parse_pairs(text: str) -> Dict[str, str]:
    """
    Split ``a=1&b=2`` into a dict. The last occurrence of a key wins and a
    key without "=" maps to "".
    """
    pairs: Dict[str, str] = {}
    for item in text.split("&"):
        if not item:
            continue
        key, _, value = item.partition("=")
        pairs[decode_component(key)] = decode_component(value)
    return pairs


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed request. Built once by RequestParser, never modified.

    Attributes:
        method:         "GET", "POST", "OPTIONS", ...
        path:           Decoded path without the query string.
        query:          Decoded query parameters.
        headers:        Lower-cased header name → value.
        body:           Raw body bytes (exactly Content-Length when given).
        form:           Decoded form fields; bytes for binary multipart
                        parts. Empty when the body is not a form.
        client_address: (ip, port) of the peer.
    """

    method: str
    path: str
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    form: Dict[str, FormValue] = field(default_factory=dict)
    version: str = "HTTP/1.1"
    client_address: Tuple[str, int] = ("", 0)

    @property
    def content_type(self) -> str:
        """Media type without parameters, lower-cased ("" if absent)."""
        return self.headers.get("content-type", "").split(";", 1)[0].strip().lower()

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    def param(self, name: str) -> Optional[FormValue]:
        """
        Look a parameter up in the form body first, then the query string.
        Returns None when it is absent from both.
        """
        if name in self.form:
            return self.form[name]
        return self.query.get(name)

    def text_param(self, name: str) -> Optional[str]:
        """Like param(), but binary values are decoded as UTF-8."""
        value = self.param(name)
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value


class RequestParser:
    """
    Parses assembled request bytes into HTTPRequest objects.

    Args:
        upload_path: The only path whose multipart bodies are decoded.
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Za-z]+) +(\S+)(?: +(HTTP/\d\.\d))? *$")

    def __init__(self, upload_path: str = "/api/upload"):
        self.upload_path = upload_path

    def parse(self, data: bytes, client_address: Tuple[str, int] = ("", 0)) -> HTTPRequest:
        """
        Raises:
            ProtocolError: No header terminator, or an unreadable request line.
        """
        header_end = data.find(b"\r\n\r\n")
        if header_end < 0:
            raise ProtocolError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        declared = headers.get("content-length")
        if declared is not None:
            try:
                body = body[:max(0, int(declared.strip()))]
            except ValueError:
                pass  # keep everything that arrived

        form = self._parse_form(method, path, headers, body)

        return HTTPRequest(
            method=method,
            path=path,
            query=query,
            headers=headers,
            body=body,
            form=form,
            version=version,
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, Dict[str, str], str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise ProtocolError(f"Invalid request line: {line[:200]!r}")

        method, target, version = match.groups()
        raw_path, _, raw_query = target.partition("?")
        raw_path = raw_path.split("#", 1)[0]

        path = decode_component(raw_path) or "/"
        query = parse_pairs(raw_query.split("#", 1)[0])
        return method.upper(), path, query, version or "HTTP/1.1"

    def _parse_headers(self, lines) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for line in lines:
            name, sep, value = line.partition(":")
            if not sep or not name.strip():
                continue  # lenient: skip malformed lines
            headers[name.strip().lower()] = value.strip()
        return headers

    def _parse_form(self, method: str, path: str, headers: Dict[str, str], body: bytes) -> Dict[str, FormValue]:
        content_type_header = headers.get("content-type", "")
        media_type = content_type_header.split(";", 1)[0].strip().lower()

        if media_type == MULTIPART_FORM_DATA and path == self.upload_path:
            boundary = parse_boundary(content_type_header)
            if boundary is None:
                logger.warning(f"Multipart upload without a boundary on {path}")
                return {}
            return MultipartParser(boundary).parse(body)

        if method == "POST" and media_type == FORM_URLENCODED:
            return parse_pairs(body.decode("utf-8", errors="replace"))

        return {}


def parse_request(data: bytes, client_address: Tuple[str, int] = ("", 0), upload_path: str = "/api/upload") -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(upload_path=upload_path).parse(data, client_address)
