"""
Unit tests for multipart/form-data parsing.
"""

import pytest

from sandboxserver.http.multipart import (
    MultipartParser,
    parse_boundary,
    parse_disposition,
)


BOUNDARY = "----WebKitFormBoundary7MA4YWxkTrZu0gW"


def build_body(*parts, boundary: str = BOUNDARY) -> bytes:
    """Assemble a multipart body from (headers, payload) pairs."""
    body = b""
    for headers, payload in parts:
        body += b"--" + boundary.encode() + b"\r\n" + headers + b"\r\n\r\n" + payload + b"\r\n"
    return body + b"--" + boundary.encode() + b"--\r\n"


class TestParseBoundary:
    """Tests for boundary extraction."""

    def test_plain(self):
        """Test an unquoted boundary."""
        assert parse_boundary(f"multipart/form-data; boundary={BOUNDARY}") == BOUNDARY

    def test_quoted_with_trailing_params(self):
        """Test that quotes and later parameters are dropped."""
        assert parse_boundary('multipart/form-data; boundary="abc"; charset=utf-8') == "abc"

    def test_missing(self):
        """Test that a Content-Type without boundary yields None."""
        assert parse_boundary("multipart/form-data") is None


class TestParseDisposition:
    """Tests for Content-Disposition parameters."""

    def test_name_and_filename(self):
        """Test quoted parameters."""
        params = parse_disposition(' form-data; name="file"; filename="photo 1.png"')

        assert params["name"] == "file"
        assert params["filename"] == "photo 1.png"


class TestMultipartParser:
    """Tests for MultipartParser."""

    def test_text_and_binary_fields(self):
        """Test that parts with a Content-Type stay bytes and others are text."""
        payload = bytes(range(256))
        body = build_body(
            (b'Content-Disposition: form-data; name="path"', b"/data/storage/el2/base/files"),
            (b'Content-Disposition: form-data; name="file"; filename="blob.bin"\r\n'
             b"Content-Type: application/octet-stream", payload),
        )

        fields = MultipartParser(BOUNDARY).parse(body)

        assert fields["path"] == "/data/storage/el2/base/files"
        assert fields["file"] == payload

    def test_non_latin_boundary(self):
        """Test that any decoded boundary can be turned into a delimiter."""
        body = build_body((b'Content-Disposition: form-data; name="path"', b"/data"), boundary="�€")

        assert MultipartParser("�€").parse(body) == {"path": "/data"}

    def test_binary_payload_containing_crlf(self):
        """Test that CRLF inside a payload is preserved."""
        payload = b"line1\r\nline2\r\n\r\nline3"
        body = build_body(
            (b'Content-Disposition: form-data; name="file"\r\nContent-Type: text/plain', payload),
        )

        assert MultipartParser(BOUNDARY).parse(body)["file"] == payload

    def test_part_without_name_is_dropped(self):
        """Test that unnamed parts are skipped."""
        body = build_body(
            (b"Content-Disposition: form-data", b"orphan"),
            (b'Content-Disposition: form-data; name="isFirst"', b"true"),
        )

        assert MultipartParser(BOUNDARY).parse(body) == {"isFirst": "true"}

    def test_preamble_is_ignored(self):
        """Test that text before the first delimiter is skipped."""
        body = b"This is the preamble.\r\n" + build_body(
            (b'Content-Disposition: form-data; name="filename"', b"notes.txt"),
        )

        assert MultipartParser(BOUNDARY).parse(body) == {"filename": "notes.txt"}

    def test_last_duplicate_wins(self):
        """Test that a repeated field name keeps the last value."""
        body = build_body(
            (b'Content-Disposition: form-data; name="path"', b"/first"),
            (b'Content-Disposition: form-data; name="path"', b"/second"),
        )

        assert MultipartParser(BOUNDARY).parse(body)["path"] == "/second"

    def test_no_delimiter(self):
        """Test that a body without the boundary yields nothing."""
        assert MultipartParser(BOUNDARY).parse(b"just some bytes") == {}

    def test_empty_boundary_rejected(self):
        """Test that an empty boundary is refused."""
        with pytest.raises(ValueError):
            MultipartParser("")
