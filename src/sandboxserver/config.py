"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Three dataclasses describe everything the server needs from its host:

    ServerConfig     how to listen, how much to buffer, where the sandbox is
    StorageContext   the app's private directories, as sandbox paths
    AppInfo          identity reported by /api/app-info

=============================================================================
SANDBOX PATHS VS HOST PATHS
=============================================================================

Clients only ever see sandbox paths such as ``/data/storage/el2/base``.
On the device those are real absolute paths, so ``sandbox_root`` stays
at "/". On a workstation (or in tests) point ``sandbox_root`` at a
directory that mirrors the layout:

    sandbox_root = /tmp/sbx
    /data/storage/el2/base/files   →   /tmp/sbx/data/storage/el2/base/files

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    Priority (highest to lowest):

    1. Command-line arguments      python -m sandboxserver --port 9000
    2. Environment variables       SANDBOX_PORT=9000 python -m sandboxserver
    3. Default values (below)

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the sandbox server.

    NETWORK      host, port, advertise_host, backlog, buffer_size, timeout
    LIMITS       max_request_size, chunk_size, cache_capacity
    THREADING    min_workers, max_workers, queue_size
    PATHS        sandbox_root, work_dir_name, api_prefix
    LOGGING      log_level, log_format
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    Address to bind. All interfaces by default so a browser on the same
    network can reach the device.
    """

    port: int = 8080
    """
    Port to listen on. 0 asks the OS for a free port; the real one is
    reported by SandboxServer.start().
    """

    advertise_host: Optional[str] = None
    """
    Address shown to the user and returned by /api/server-info.
    None = look up the primary LAN address when bound to 0.0.0.0.
    """

    backlog: int = 128
    """Maximum number of connections queued by the kernel."""

    buffer_size: int = 64 * 1024
    """Bytes requested per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Per-read socket timeout in seconds. A client that sends nothing for
    this long is disconnected. None disables the timeout (not advised).
    """

    # ─────────────────────────────────────────────────────────────────────
    # LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 64 * 1024 * 1024  # 64 MB
    """
    Largest request (headers + body) a connection will buffer. Uploads
    bigger than this must be sent in several isFirst=0 chunks.
    """

    chunk_size: int = 4 * 1024 * 1024  # 4 MB
    """Write granularity for uploads and saves."""

    cache_capacity: int = 20
    """How many staged files the preview cache keeps."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 2
    """Worker threads created at startup."""

    max_workers: int = 16
    """Upper bound on connections processed concurrently."""

    queue_size: int = 64
    """
    Accepted connections allowed to wait for a worker. Beyond this,
    new connections are closed immediately.
    """

    # ─────────────────────────────────────────────────────────────────────
    # PATHS
    # ─────────────────────────────────────────────────────────────────────

    sandbox_root: str = "/"
    """Host directory that sandbox paths are resolved under."""

    work_dir_name: str = "sandbox_server"
    """
    Name of the server's own directory inside the app's files directory.
    Its ``static`` subdirectory holds the web UI and staged previews.
    """

    api_prefix: str = "/api"
    """Requests under this prefix go to the JSON API."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a configuration from environment variables.

        SANDBOX_HOST            Bind address (default: 0.0.0.0)
        SANDBOX_PORT            Port (default: 8080)
        SANDBOX_ADVERTISE_HOST  Address to report (default: auto)
        SANDBOX_ROOT            Host directory for sandbox paths (default: /)
        SANDBOX_WORKERS         Max worker threads (default: 16)
        SANDBOX_TIMEOUT         Read timeout in seconds (default: 30)
        SANDBOX_CACHE_CAPACITY  Staged preview files kept (default: 20)
        SANDBOX_LOG_LEVEL       Logging level (default: INFO)
        SANDBOX_LOG_FORMAT      text or json (default: text)
        """
        return cls(
            host=os.getenv("SANDBOX_HOST", "0.0.0.0"),
            port=int(os.getenv("SANDBOX_PORT", "8080")),
            advertise_host=os.getenv("SANDBOX_ADVERTISE_HOST") or None,
            sandbox_root=os.getenv("SANDBOX_ROOT", "/"),
            max_workers=int(os.getenv("SANDBOX_WORKERS", "16")),
            timeout=float(os.getenv("SANDBOX_TIMEOUT", "30")),
            cache_capacity=int(os.getenv("SANDBOX_CACHE_CAPACITY", "20")),
            log_level=os.getenv("SANDBOX_LOG_LEVEL", "INFO"),
            log_format=os.getenv("SANDBOX_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """Fail fast on nonsense values; raises ValueError."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        if self.cache_capacity < 1:
            raise ValueError("cache_capacity must be >= 1")

        if not self.api_prefix.startswith("/") or self.api_prefix.endswith("/"):
            raise ValueError(f"api_prefix must look like '/api', got {self.api_prefix!r}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")


EL1_ROOT = "/data/storage/el1"
EL2_ROOT = "/data/storage/el2"


@dataclass
class StorageContext:
    """
    The host application's private directories, as sandbox paths.

    The server treats these as opaque strings; defaults follow the usual
    el1/el2 sandbox layout.
    """

    files_dir: str = EL2_ROOT + "/base/files"
    cache_dir: str = EL2_ROOT + "/base/cache"
    temp_dir: str = EL2_ROOT + "/base/temp"
    database_dir: str = EL2_ROOT + "/database"
    preferences_dir: str = EL2_ROOT + "/base/preferences"
    distributed_files_dir: str = EL2_ROOT + "/distributedfiles"
    bundle_code_dir: str = EL1_ROOT + "/bundle"

    def work_dir(self, config: ServerConfig) -> str:
        """The server's own directory (hidden from listings)."""
        return self.files_dir.rstrip("/") + "/" + config.work_dir_name

    def static_dir(self, config: ServerConfig) -> str:
        """Where the web UI lives and previews are staged."""
        return self.work_dir(config) + "/static"


@dataclass
class AppInfo:
    """Identity of the host application."""

    version_code: int = 1
    version_name: str = "1.0.0"
    bundle_name: str = "com.example.sandbox"
    name: str = "Sandbox"

    def to_dict(self) -> dict:
        return {
            "versionCode": self.version_code,
            "versionName": self.version_name,
            "bundleName": self.bundle_name,
            "name": self.name,
        }
