"""
=============================================================================
JSON API
=============================================================================

One method per endpoint, registered on the router by exact path:

    ┌────────────────────┬────────────────────────────┬──────────────────────────┐
    │ Path               │ Params                     │ data on success          │
    ├────────────────────┼────────────────────────────┼──────────────────────────┤
    │ /api/server-info   │                            │ {address, port}          │
    │ /api/app-info      │                            │ {versionCode, ...}       │
    │ /api/ls            │ path                       │ [FileItem, ...]          │
    │ /api/read          │ path                       │ see READ below           │
    │ /api/exists        │ path                       │ {exists}                 │
    │ /api/touch         │ path                       │ {success}                │
    │ /api/rm            │ path                       │ {success}                │
    │ /api/mv            │ src, dest [, rename]       │ {success, rename}        │
    │ /api/cp            │ src, dest                  │ {success}                │
    │ /api/mkdir         │ path                       │ {success} (false=denied) │
    │ /api/save          │ path, content              │ {success}                │
    │ /api/upload        │ file, filename, path,      │ {success}                │
    │                    │ isFirst (multipart POST)   │                          │
    └────────────────────┴────────────────────────────┴──────────────────────────┘

Parameters come from the form body or the query string, whichever has
them. A missing parameter is answered with a 400 right here; handlers only
raise for filesystem failures, which the router turns into 404/500.

=============================================================================
READ
=============================================================================

    text (allow-listed extension, or under preferences/)
        → {type: "text", content}
    otherwise resolve a URL (inside the static root: as is; else staged), then
        image (extension, or sniffed when there is none)
            → {type: "media", mediaKind: "image", url}
        .db / .sqlite / .sqlite3
            → {type: "sqlite", url}
        video/* or audio/*
            → {type: "media", mediaKind: "video"|"audio", url}
        anything else
            → {type: "other", url}

=============================================================================
"""

import os
import logging
import posixpath
from typing import Callable, Optional, Tuple

from ..config import AppInfo
from ..http.mime_types import get_mime_type, is_sqlite_file, media_kind
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, not_found, ok, validation_error
from ..http.router import Router
from ..core.netinfo import ServerAddress
from ..storage.file_cache import FileCache, staged_url
from ..storage.file_store import FileStore, is_within, normalize


logger = logging.getLogger(__name__)

TRUTHY = frozenset({"1", "true", "yes", "on"})


def is_truthy(value) -> bool:
    if value is None:
        return False
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return value.strip().lower() in TRUTHY


def require(request: HTTPRequest, *names: str) -> Tuple[Optional[HTTPResponse], list]:
    """
    Fetch required text parameters.

    Returns:
        (None, [values...]) when all are present, otherwise
        (400 response, []) naming every missing parameter.
    """
    values = [request.text_param(name) for name in names]
    missing = [name for name, value in zip(names, values) if value is None or value == ""]
    if missing:
        return validation_error(f"Missing required parameter: {', '.join(missing)}"), []
    return None, values


class ApiHandler:
    """
    Implements every /api endpoint on top of FileStore and FileCache.

    Args:
        store: Filesystem access on sandbox paths.
        cache: Preview staging cache.
        static_root: Host path of the static directory.
        app_info: Reported by /api/app-info.
        address_provider: Returns the address /api/server-info reports.
    """

    def __init__(
        self,
        store: FileStore,
        cache: FileCache,
        static_root: str,
        app_info: AppInfo,
        address_provider: Callable[[], ServerAddress],
    ):
        self.store = store
        self.cache = cache
        self.static_root = os.path.abspath(static_root)
        self.app_info = app_info
        self.address_provider = address_provider

    def register(self, router: Router) -> Router:
        prefix = router.api_prefix
        for name, handler in (
            ("server-info", self.server_info),
            ("app-info", self.app_info_route),
            ("ls", self.list_directory),
            ("read", self.read),
            ("exists", self.exists),
            ("touch", self.touch),
            ("rm", self.remove),
            ("mv", self.move),
            ("cp", self.copy),
            ("mkdir", self.mkdir),
            ("save", self.save),
            ("upload", self.upload),
        ):
            router.add_route(f"{prefix}/{name}", handler, name=name)
        return router

    # ─────────────────────────────────────────────────────────────────────
    # INFO
    # ─────────────────────────────────────────────────────────────────────

    def server_info(self, request: HTTPRequest) -> HTTPResponse:
        return ok(self.address_provider().to_dict())

    def app_info_route(self, request: HTTPRequest) -> HTTPResponse:
        return ok(self.app_info.to_dict())

    # ─────────────────────────────────────────────────────────────────────
    # QUERIES
    # ─────────────────────────────────────────────────────────────────────

    def list_directory(self, request: HTTPRequest) -> HTTPResponse:
        error, values = require(request, "path")
        if error:
            return error
        return ok([item.to_dict() for item in self.store.list_dir(values[0])])

    def exists(self, request: HTTPRequest) -> HTTPResponse:
        error, values = require(request, "path")
        if error:
            return error
        return ok({"exists": self.store.exists(values[0])})

    def read(self, request: HTTPRequest) -> HTTPResponse:
        error, values = require(request, "path")
        if error:
            return error
        path = normalize(values[0])

        if not self.store.exists(path):
            return not_found(f"No such file: {path}")
        if self.store.is_dir(path):
            return validation_error(f"Is a directory: {path}")

        if self.store.is_text(path):
            return ok({"type": "text", "content": self.store.read_text(path)})

        url = self.servable_url(path)

        if self.store.is_image(path):
            return ok({"type": "media", "mediaKind": "image", "url": url})

        if is_sqlite_file(path):
            return ok({"type": "sqlite", "url": url})

        kind = media_kind(get_mime_type(path))
        if kind in ("video", "audio"):
            return ok({"type": "media", "mediaKind": kind, "url": url})

        return ok({"type": "other", "url": url})

    def servable_url(self, path: str) -> str:
        """URL for a file: direct if already under the static root, else staged."""
        host_path = os.path.abspath(self.store.resolve(path))
        static_root = self.static_root.replace(os.sep, "/")
        candidate = host_path.replace(os.sep, "/")
        if is_within(candidate, static_root) and candidate != static_root:
            return staged_url(candidate[len(static_root) + 1:])
        return self.cache.stage(host_path)

    # ─────────────────────────────────────────────────────────────────────
    # MUTATIONS
    # ─────────────────────────────────────────────────────────────────────

    def touch(self, request: HTTPRequest) -> HTTPResponse:
        error, values = require(request, "path")
        if error:
            return error
        self.store.touch(values[0])
        return ok({"success": True})

    def remove(self, request: HTTPRequest) -> HTTPResponse:
        error, values = require(request, "path")
        if error:
            return error
        self.store.remove(values[0])
        return ok({"success": True})

    def move(self, request: HTTPRequest) -> HTTPResponse:
        """
        Move ``src`` to ``dest``. With ``rename`` set, a bare ``dest`` name
        is taken relative to the source's own directory.
        """
        error, values = require(request, "src", "dest")
        if error:
            return error
        src, dest = values

        rename = is_truthy(request.text_param("rename"))
        if rename and "/" not in dest:
            dest = posixpath.join(posixpath.dirname(normalize(src)), dest)

        target = self.store.move(src, dest)
        logger.info(f"Moved {normalize(src)} -> {target}")
        return ok({"success": True, "rename": rename})

    def copy(self, request: HTTPRequest) -> HTTPResponse:
        error, values = require(request, "src", "dest")
        if error:
            return error
        src, dest = values
        target = self.store.copy(src, dest)
        logger.info(f"Copied {normalize(src)} -> {target}")
        return ok({"success": True})

    def mkdir(self, request: HTTPRequest) -> HTTPResponse:
        error, values = require(request, "path")
        if error:
            return error
        return ok({"success": self.store.mkdir(values[0])})

    def save(self, request: HTTPRequest) -> HTTPResponse:
        """Overwrite a text file with the posted ``content``."""
        error, values = require(request, "path")
        if error:
            return error
        content = request.text_param("content")
        if content is None:
            return validation_error("Missing required parameter: content")
        self.store.write_text(values[0], content)
        return ok({"success": True})

    def upload(self, request: HTTPRequest) -> HTTPResponse:
        """
        Write one chunk of an upload.

        ``isFirst`` truthy (or absent) truncates the target; otherwise the
        chunk is appended. Large files arrive as several calls.
        """
        error, values = require(request, "filename", "path")
        if error:
            return error
        filename, directory = values

        data = request.param("file")
        if data is None:
            return validation_error("Missing required parameter: file")
        if isinstance(data, str):
            data = data.encode("utf-8")

        if "/" in filename or filename in (".", ".."):
            return validation_error(f"Invalid filename: {filename}")

        is_first = request.param("isFirst")
        append = is_first is not None and not is_truthy(is_first)

        target = posixpath.join(normalize(directory), filename)
        written = self.store.write(target, data, append=append)
        logger.debug(f"Upload {target}: {written} bytes ({'append' if append else 'truncate'})")
        return ok({"success": True})
