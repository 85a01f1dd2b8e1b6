"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves the web UI and staged previews out of one directory:

    <files>/sandbox_server/static/
        index.html        ◄── GET /
        favicon.ico       ◄── GET /favicon.ico
        thumb.png         ◄── GET /thumb.png   (staged by FileCache)

Every non-API request lands here. The URL path is already percent-decoded
by the request parser, so ``/%E5%9B%BE.png`` arrives as ``/图.png``.

Paths are resolved and then checked to still be inside the static root;
``/../../etc/passwd`` is answered with the same 404 as a missing file.

=============================================================================
"""

import logging
from pathlib import Path

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, file_response, static_not_found
from ..http.mime_types import get_mime_type


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Handler for files under the static root.

    The root does not have to exist yet when the handler is created; the
    host's asset provisioning may populate it later.

    Args:
        root_dir: Host directory to serve.
        index_file: File served for "/".
    """

    def __init__(self, root_dir: str, index_file: str = "index.html"):
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file

    def resolve(self, url_path: str):
        """
        Host path for a URL path, or None if it would leave the root.
        """
        relative = url_path.lstrip("/") or self.index_file
        full_path = (self.root_dir / relative).resolve()
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {url_path}")
            return None
        return full_path

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        full_path = self.resolve(request.path)
        if full_path is None or not full_path.is_file():
            return static_not_found(request.path)

        content = full_path.read_bytes()
        logger.debug(f"Serving {full_path} ({len(content)} bytes)")
        return file_response(content, get_mime_type(full_path.name))

    __call__ = handle
