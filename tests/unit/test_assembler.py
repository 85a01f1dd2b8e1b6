"""
Unit tests for request assembly.
"""

import pytest

from sandboxserver.core.assembler import (
    AssemblyState,
    RequestAssembler,
    parse_content_length,
)


class TestRequestAssembler:
    """Tests for the header/body state machine."""

    def test_waits_for_header_terminator(self):
        """Test that a partial header block is not complete."""
        assembler = RequestAssembler()

        assert assembler.feed(b"GET / HTTP/1.1\r\nHost: x\r\n") is False
        assert assembler.state is AssemblyState.AWAITING_HEADERS
        assert assembler.header_end == -1

    def test_no_body_completes_at_terminator(self):
        """Test that a request without Content-Length completes at once."""
        assembler = RequestAssembler()

        assert assembler.feed(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n") is True
        assert assembler.is_complete
        assert assembler.content_length is None

    def test_waits_for_declared_body(self):
        """Test that the body is accumulated up to Content-Length."""
        assembler = RequestAssembler()

        assert assembler.feed(b"POST /api/ls HTTP/1.1\r\nContent-Length: 10\r\n\r\npath") is False
        assert assembler.state is AssemblyState.AWAITING_BODY
        assert assembler.body_received == 4

        assert assembler.feed(b"=%2Fda") is True
        assert assembler.buffer.endswith(b"path=%2Fda")

    def test_terminator_split_across_chunks(self):
        """Test that a terminator spanning two reads is found."""
        assembler = RequestAssembler()

        assert assembler.feed(b"GET / HTTP/1.1\r\nHost: x\r\n\r") is False
        assert assembler.feed(b"\n") is True
        assert assembler.header_end == len(b"GET / HTTP/1.1\r\nHost: x")

    def test_byte_at_a_time(self):
        """Test feeding a request one byte per call."""
        raw = b"POST /a HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc"
        assembler = RequestAssembler()

        results = [assembler.feed(raw[i:i + 1]) for i in range(len(raw))]

        assert results[-1] is True
        assert not any(results[:-1])
        assert assembler.buffer == raw

    def test_zero_content_length(self):
        """Test that Content-Length: 0 needs no body."""
        assembler = RequestAssembler()

        assert assembler.feed(b"POST /a HTTP/1.1\r\nContent-Length: 0\r\n\r\n") is True

    def test_feed_after_complete_is_ignored(self):
        """Test that extra bytes after completion are not buffered."""
        assembler = RequestAssembler()
        assembler.feed(b"GET / HTTP/1.1\r\n\r\n")
        size = assembler.size

        assert assembler.feed(b"garbage") is True
        assert assembler.size == size


class TestParseContentLength:
    """Tests for Content-Length extraction."""

    @pytest.mark.parametrize("header", [
        b"Content-Length: 42",
        b"content-length: 42",
        b"CONTENT-LENGTH:42",
    ])
    def test_case_insensitive(self, header: bytes):
        """Test that the header name matches in any case."""
        assert parse_content_length(b"POST / HTTP/1.1\r\n" + header) == 42

    def test_missing(self):
        """Test that a missing header yields None."""
        assert parse_content_length(b"GET / HTTP/1.1\r\nHost: x") is None

    @pytest.mark.parametrize("value", [b"abc", b"-5", b""])
    def test_invalid(self, value: bytes):
        """Test that unparsable or negative values yield None."""
        assert parse_content_length(b"POST / HTTP/1.1\r\nContent-Length: " + value) is None

    def test_request_line_is_skipped(self):
        """Test that the request line never counts as a header."""
        assert parse_content_length(b"Content-Length: 5 / HTTP/1.1\r\nHost: x") is None
