"""
Unit tests for static file serving and access logging.
"""

import json
import logging
import pytest
from pathlib import Path

from sandboxserver.handlers import StaticFileHandler
from sandboxserver.http.request import HTTPRequest
from sandboxserver.http.response import ok
from sandboxserver.middleware import AccessLogMiddleware, MiddlewarePipeline, RequestLog


def get(path: str) -> HTTPRequest:
    return HTTPRequest(method="GET", path=path, client_address=("192.168.1.7", 51000))


class TestStaticFileHandler:
    """Tests for StaticFileHandler."""

    def test_root_serves_index(self, static_root: str):
        """Test that "/" maps to index.html."""
        response = StaticFileHandler(static_root).handle(get("/"))

        assert response.status == 200
        assert response.mime_type == "text/html"
        assert b"sandbox browser" in response.body

    def test_nested_file(self, static_root: str):
        """Test serving a file below the root with its MIME type."""
        (Path(static_root) / "js").mkdir()
        (Path(static_root) / "js" / "app.js").write_text("console.log(1)")

        response = StaticFileHandler(static_root).handle(get("/js/app.js"))

        assert response.body == b"console.log(1)"
        assert response.mime_type == "text/javascript"

    def test_missing_is_plain_404(self, static_root: str):
        """Test that a missing file is a text 404."""
        response = StaticFileHandler(static_root).handle(get("/nope.css"))

        assert response.status == 404
        assert response.mime_type == "text/plain"

    def test_traversal_blocked(self, static_root: str, files_dir: Path):
        """Test that ../ cannot leave the static root."""
        (files_dir / "secret.txt").write_text("secret")
        handler = StaticFileHandler(static_root)

        assert handler.resolve("/../../secret.txt") is None
        assert handler.handle(get("/../../secret.txt")).status == 404

    def test_directory_is_404(self, static_root: str):
        """Test that directories are not served."""
        (Path(static_root) / "img").mkdir()

        assert StaticFileHandler(static_root).handle(get("/img")).status == 404

    def test_missing_root(self, tmp_path: Path):
        """Test a handler whose root does not exist yet."""
        handler = StaticFileHandler(str(tmp_path / "later"))

        assert handler.handle(get("/")).status == 404


class TestAccessLog:
    """Tests for AccessLogMiddleware."""

    def test_text_line(self, caplog):
        """Test that one access line is logged per request."""
        handler = MiddlewarePipeline().add(AccessLogMiddleware()).wrap(lambda request: ok([1]))

        with caplog.at_level(logging.INFO, logger="sandboxserver.access"):
            response = handler(get("/api/ls"))

        assert response.status == 200
        lines = [r.getMessage() for r in caplog.records if r.name == "sandboxserver.access"]
        assert len(lines) == 1
        assert '"GET /api/ls" 200' in lines[0]
        assert lines[0].startswith("192.168.1.7 ")

    def test_json_line(self, caplog):
        """Test the JSON log format."""
        handler = MiddlewarePipeline().add(AccessLogMiddleware(log_format="json")).wrap(lambda request: ok())

        with caplog.at_level(logging.INFO, logger="sandboxserver.access"):
            handler(get("/api/app-info"))

        record = json.loads(caplog.records[-1].getMessage())
        assert record["path"] == "/api/app-info"
        assert record["status_code"] == 200

    def test_skip_paths(self, caplog):
        """Test that skipped paths produce no log line."""
        handler = MiddlewarePipeline().add(AccessLogMiddleware(skip_paths=["/favicon.ico"])).wrap(lambda r: ok())

        with caplog.at_level(logging.INFO, logger="sandboxserver.access"):
            handler(get("/favicon.ico"))

        assert not [r for r in caplog.records if r.name == "sandboxserver.access"]

    def test_request_log_text(self):
        """Test the combined-log style rendering."""
        entry = RequestLog("POST", "/api/rm", "", 404, 48, 1.234, "18/Oct/2026:10:00:00 +0000")

        assert entry.to_text() == '- - - [18/Oct/2026:10:00:00 +0000] "POST /api/rm" 404 48 1.23ms'


class TestMiddlewarePipeline:
    """Tests for pipeline ordering."""

    def test_first_added_is_outermost(self):
        """Test the wrapping order."""
        from sandboxserver.middleware import Middleware

        calls = []

        class Tag(Middleware):
            def __init__(self, tag):
                self.tag = tag

            def __call__(self, request, next):
                calls.append(self.tag)
                return next(request)

        pipeline = MiddlewarePipeline().add(Tag("outer")).add(Tag("inner"))
        pipeline.wrap(lambda request: ok())(get("/"))

        assert calls == ["outer", "inner"]
        assert len(pipeline) == 2
