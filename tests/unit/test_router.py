"""
Unit tests for the request router.
"""

import json
import pytest

from sandboxserver.errors import InternalError, NotFoundError
from sandboxserver.http.router import Router, Route
from sandboxserver.http.request import HTTPRequest
from sandboxserver.http.response import HTTPResponse, ResponseBuilder, ok


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path)


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Dummy handler for testing."""
    return ok({"path": request.path})


def static_handler(request: HTTPRequest) -> HTTPResponse:
    return ResponseBuilder().text(f"static {request.path}").build()


def body(response: HTTPResponse) -> dict:
    return json.loads(response.body_bytes)


class TestRouter:
    """Tests for Router class."""

    def test_add_route(self):
        """Test adding routes."""
        router = Router()
        route = router.add_route("/api/ls", dummy_handler, name="ls")

        assert isinstance(route, Route)
        assert router.routes == [route]
        assert router.match("/api/ls") is route

    def test_duplicate_route_rejected(self):
        """Test that a path can only be registered once."""
        router = Router()
        router.add_route("/api/ls", dummy_handler)

        with pytest.raises(ValueError):
            router.add_route("/api/ls", dummy_handler)

    def test_decorator(self):
        """Test the route decorator."""
        router = Router()

        @router.route("/api/ping")
        def ping(request):
            return ok("pong")

        assert router.match("/api/ping").handler is ping
        assert router.match("/api/ping").name == "ping"

    def test_exact_match_only(self):
        """Test that API paths match exactly, without prefixes."""
        router = Router()
        router.add_route("/api/ls", dummy_handler)

        assert router.match("/api/ls/") is None
        assert router.match("/api/lsx") is None

    def test_api_miss_is_json_404(self):
        """Test that an unknown API path returns a 404 envelope."""
        router = Router(fallback=static_handler)

        response = router.handle(make_request("GET", "/api/nope"))

        assert response.status == 404
        assert body(response)["code"] == 404

    def test_non_api_goes_to_fallback(self):
        """Test that other paths are served by the fallback."""
        router = Router(fallback=static_handler)

        response = router.handle(make_request("GET", "/app.js"))

        assert response.body == "static /app.js"

    def test_api_prefix_boundary(self):
        """Test that /apiary is not an API path."""
        router = Router(fallback=static_handler)

        assert router.is_api_path("/api")
        assert router.is_api_path("/api/ls")
        assert not router.is_api_path("/apiary")

    def test_options_short_circuits(self):
        """Test that OPTIONS gets an empty 200 on any path."""
        router = Router(fallback=static_handler)
        router.add_route("/api/ls", dummy_handler)

        for path in ("/api/ls", "/api/unknown", "/index.html"):
            response = router.handle(make_request("OPTIONS", path))
            assert response.status == 200
            assert response.body_bytes == b""

    def test_method_is_not_checked(self):
        """Test that API routes answer any method."""
        router = Router()
        router.add_route("/api/ls", dummy_handler)

        assert router.handle(make_request("GET", "/api/ls")).status == 200
        assert router.handle(make_request("POST", "/api/ls")).status == 200
        assert router.handle(make_request("DELETE", "/api/ls")).status == 200


class TestErrorMapping:
    """Tests for exceptions raised by handlers."""

    def test_not_found_error(self):
        """Test that NotFoundError becomes a 404 envelope."""
        router = Router()

        def handler(request):
            raise NotFoundError("No such file: /x")

        router.add_route("/api/read", handler)
        response = router.handle(make_request("GET", "/api/read"))

        assert response.status == 404
        assert body(response) == {"code": 404, "message": "No such file: /x"}

    def test_internal_error(self):
        """Test that InternalError becomes a 500 envelope."""
        router = Router()

        def handler(request):
            raise InternalError("Refusing to remove /")

        router.add_route("/api/rm", handler)

        assert router.handle(make_request("GET", "/api/rm")).status == 500

    def test_unexpected_exception(self):
        """Test that any other exception becomes a 500 with its message."""
        router = Router()

        def handler(request):
            raise PermissionError("Permission denied")

        router.add_route("/api/touch", handler)
        response = router.handle(make_request("GET", "/api/touch"))

        assert response.status == 500
        assert body(response)["message"] == "Permission denied"
