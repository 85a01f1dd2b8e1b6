"""
=============================================================================
SANDBOXSERVER - HTTP File Browser for an Application's Sandboxed Storage
=============================================================================

An embedded HTTP/1.1 server, built on raw sockets, that lets a browser on
the same network look inside an application's private storage: list
directories, preview text, images, media and SQLite files, and upload,
copy, move, rename and delete files.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       SANDBOXSERVER LAYERS                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   1. TRANSPORT (core/)                                              │
    │      - TCP listener and accept loop                                 │
    │      - Request assembly: headers, then Content-Length bytes         │
    │      - Bounded thread pool, one request per connection              │
    │                                                                     │
    │   2. HTTP (http/)                                                   │
    │      - Request line, headers, query and form parsing                │
    │      - multipart/form-data for uploads                              │
    │      - JSON envelope responses {code, message, data}                │
    │                                                                     │
    │   3. HANDLERS (handlers/)                                           │
    │      - /api/* file operations                                       │
    │      - Static files: the web UI and staged previews                 │
    │                                                                     │
    │   4. STORAGE (storage/)                                             │
    │      - Sandbox paths, virtual tree above the real roots             │
    │      - LRU cache of files staged for preview                        │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    sandboxserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m sandboxserver)
    ├── server.py            # SandboxServer: wiring and lifecycle
    ├── config.py            # ServerConfig, StorageContext, AppInfo
    ├── errors.py            # Exceptions carrying their HTTP status
    ├── core/                # Sockets, connections, thread pool
    ├── http/                # Parsing, responses, routing, MIME types
    ├── handlers/            # API and static file handlers
    ├── middleware/          # Access logging
    └── storage/             # FileStore and FileCache

=============================================================================
QUICK START
=============================================================================

    from sandboxserver import SandboxServer, ServerConfig, StorageContext

    server = SandboxServer(ServerConfig(port=0, sandbox_root="./sandbox"), StorageContext())
    address = server.start()
    print(f"http://{address.address}:{address.port}/")
    ...
    server.stop()

Or from the command line:

    python -m sandboxserver --root ./sandbox --port 8080

=============================================================================
"""

__version__ = "1.0.0"

from .errors import SandboxServerError, ProtocolError, NotFoundError, InternalError, StagingConflictError
from .config import ServerConfig, StorageContext, AppInfo
from .core.netinfo import ServerAddress, BIND_FAILED
from .server import SandboxServer

__all__ = [
    "SandboxServer",
    "ServerConfig",
    "StorageContext",
    "AppInfo",
    "ServerAddress",
    "BIND_FAILED",
    "SandboxServerError",
    "ProtocolError",
    "NotFoundError",
    "InternalError",
    "StagingConflictError",
    "__version__",
]
