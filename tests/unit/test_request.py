"""
Unit tests for HTTP request parsing.
"""

import pytest

from sandboxserver.errors import ProtocolError
from sandboxserver.http.request import (
    HTTPRequest,
    RequestParser,
    parse_pairs,
    parse_request,
)


def form_post(path: str, body: bytes, content_type: str = "application/x-www-form-urlencoded") -> bytes:
    return (
        f"POST {path} HTTP/1.1\r\n"
        f"Host: 192.168.1.20:8080\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"\r\n"
    ).encode() + body


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(b"GET /index.html HTTP/1.1\r\nHost: x\r\n\r\n", ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/index.html"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_headers_lower_cased(self):
        """Test that header names are case-insensitive."""
        request = parse_request(b"GET / HTTP/1.1\r\nX-Custom-Header: Value\r\n\r\n")

        assert request.headers["x-custom-header"] == "Value"
        assert request.get_header("X-CUSTOM-HEADER") == "Value"

    def test_repeated_header_last_wins(self):
        """Test that a repeated header keeps its last value."""
        request = parse_request(b"GET / HTTP/1.1\r\nX-A: 1\r\nX-A: 2\r\n\r\n")

        assert request.headers["x-a"] == "2"

    def test_query_params_decoded(self):
        """Test percent and plus decoding of the query string."""
        request = parse_request(b"GET /api/ls?path=%2Fdata%2Fstorage&q=a+b HTTP/1.1\r\n\r\n")

        assert request.path == "/api/ls"
        assert request.query == {"path": "/data/storage", "q": "a b"}

    def test_path_decoded(self):
        """Test that the path itself is percent-decoded."""
        request = parse_request(b"GET /my%20photo.png HTTP/1.1\r\n\r\n")

        assert request.path == "/my photo.png"

    def test_missing_version_defaults(self):
        """Test a request line without HTTP version."""
        request = parse_request(b"GET /\r\n\r\n")

        assert request.version == "HTTP/1.1"

    def test_urlencoded_form(self):
        """Test that a POST form body is decoded into fields."""
        request = parse_request(form_post("/api/mv", b"src=%2Fa%2Fb.txt&dest=c.txt&rename=1"))

        assert request.form == {"src": "/a/b.txt", "dest": "c.txt", "rename": "1"}

    def test_body_truncated_to_content_length(self):
        """Test that bytes past Content-Length are not part of the body."""
        raw = b"POST /api/ls HTTP/1.1\r\nContent-Length: 3\r\n\r\nabcdef"

        assert parse_request(raw).body == b"abc"

    def test_multipart_only_on_upload_path(self):
        """Test that multipart bodies are only decoded for the upload endpoint."""
        body = (
            b"--XyZ\r\n"
            b'Content-Disposition: form-data; name="path"\r\n\r\n'
            b"/data\r\n"
            b"--XyZ--\r\n"
        )
        content_type = "multipart/form-data; boundary=XyZ"

        upload = parse_request(form_post("/api/upload", body, content_type))
        other = parse_request(form_post("/api/ls", body, content_type))

        assert upload.form == {"path": "/data"}
        assert other.form == {}

    def test_multipart_non_latin_boundary(self):
        """Test that a boundary outside Latin-1 is matched as UTF-8 bytes."""
        boundary = "€boundary"
        body = (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="path"\r\n\r\n'
            f"/data\r\n"
            f"--{boundary}--\r\n"
        ).encode("utf-8")

        request = parse_request(form_post("/api/upload", body, f"multipart/form-data; boundary={boundary}"))

        assert request.form == {"path": "/data"}

    def test_no_terminator_raises(self):
        """Test that a request without a header terminator is rejected."""
        with pytest.raises(ProtocolError):
            parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n")

    @pytest.mark.parametrize("line", [b"", b"GET", b"GET / HTTP/1.1 extra", b"123 / HTTP/1.1"])
    def test_invalid_request_line(self, line: bytes):
        """Test that malformed request lines are rejected."""
        with pytest.raises(ProtocolError) as exc_info:
            parse_request(line + b"\r\n\r\n")

        assert exc_info.value.status_code == 400


class TestHTTPRequest:
    """Tests for HTTPRequest accessors."""

    def test_param_prefers_form(self):
        """Test that form fields shadow query parameters."""
        request = HTTPRequest(method="POST", path="/api/read", query={"path": "/q"}, form={"path": "/f"})

        assert request.param("path") == "/f"

    def test_param_falls_back_to_query(self):
        """Test that the query string is used when the form lacks a field."""
        request = HTTPRequest(method="GET", path="/api/read", query={"path": "/q"})

        assert request.param("path") == "/q"
        assert request.param("missing") is None

    def test_text_param_decodes_bytes(self):
        """Test that binary fields are decoded as UTF-8."""
        request = HTTPRequest(method="POST", path="/api/upload", form={"filename": "é.txt".encode()})

        assert request.text_param("filename") == "é.txt"

    def test_content_type_without_params(self):
        """Test that content_type drops parameters."""
        request = HTTPRequest(method="POST", path="/", headers={"content-type": "Multipart/Form-Data; boundary=x"})

        assert request.content_type == "multipart/form-data"


class TestParsePairs:
    """Tests for key=value parsing."""

    def test_last_wins_and_bare_keys(self):
        """Test duplicates and keys without a value."""
        assert parse_pairs("a=1&a=2&flag&&b=") == {"a": "2", "flag": "", "b": ""}
