"""
pytest configuration and fixtures.
"""

import socket
from typing import Callable, Dict, Generator, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sandboxserver import SandboxServer, ServerConfig, StorageContext, AppInfo, ServerAddress
from sandboxserver.handlers import ApiHandler, StaticFileHandler
from sandboxserver.http import Router
from sandboxserver.storage import FileCache, FileStore


INDEX_HTML = b"<!DOCTYPE html><html><body>sandbox browser</body></html>"


@pytest.fixture
def sandbox(tmp_path: Path) -> Path:
    """Host directory standing in for the device root, with the usual layout."""
    for relative in (
        "data/storage/el1/base",
        "data/storage/el1/database",
        "data/storage/el2/base/files",
        "data/storage/el2/base/cache",
        "data/storage/el2/base/temp",
        "data/storage/el2/base/preferences",
        "data/storage/el2/database",
    ):
        (tmp_path / relative).mkdir(parents=True)
    return tmp_path


@pytest.fixture
def files_dir(sandbox: Path) -> Path:
    """Host path of the app's files directory."""
    return sandbox / "data" / "storage" / "el2" / "base" / "files"


@pytest.fixture
def config(sandbox: Path) -> ServerConfig:
    """Test server configuration bound to loopback on a free port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        sandbox_root=str(sandbox),
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def storage() -> StorageContext:
    return StorageContext()


@pytest.fixture
def store(config: ServerConfig, storage: StorageContext) -> FileStore:
    return FileStore(
        storage=storage,
        sandbox_root=config.sandbox_root,
        work_dir=storage.work_dir(config),
        chunk_size=config.chunk_size,
    )


@pytest.fixture
def static_root(store: FileStore, storage: StorageContext, config: ServerConfig) -> str:
    """Host path of the static directory, created and holding index.html."""
    root = Path(store.resolve(storage.static_dir(config)))
    root.mkdir(parents=True, exist_ok=True)
    (root / "index.html").write_bytes(INDEX_HTML)
    return str(root)


@pytest.fixture
def cache(static_root: str) -> FileCache:
    return FileCache(static_root, capacity=3)


@pytest.fixture
def api(store: FileStore, cache: FileCache, static_root: str) -> ApiHandler:
    return ApiHandler(
        store=store,
        cache=cache,
        static_root=static_root,
        app_info=AppInfo(version_code=7, version_name="2.1.0", bundle_name="com.example.notes", name="Notes"),
        address_provider=lambda: ServerAddress("192.168.1.20", 8080),
    )


@pytest.fixture
def router(api: ApiHandler, static_root: str) -> Router:
    """Router wired the way SandboxServer wires it."""
    router = Router(api_prefix="/api", fallback=StaticFileHandler(static_root))
    api.register(router)
    return router


@pytest.fixture
def running_server(config: ServerConfig, storage: StorageContext, static_root: str) -> Generator[SandboxServer, None, None]:
    """A started SandboxServer; stopped again after the test."""
    server = SandboxServer(config, storage, AppInfo(bundle_name="com.example.notes", name="Notes"))
    address = server.start()
    assert address.ok, "server failed to bind"

    yield server

    server.stop()


RawResponse = Tuple[str, Dict[str, str], bytes]


def send_raw(port: int, data: bytes, timeout: float = 5.0) -> RawResponse:
    """
    Send raw bytes to 127.0.0.1:port and read until the server closes.

    Returns:
        (status line, lower-cased headers, body)
    """
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(data)
        received = bytearray()
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            received.extend(chunk)

    head, _, body = bytes(received).partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return lines[0], headers, body


@pytest.fixture
def client(running_server: SandboxServer) -> Callable[[bytes], RawResponse]:
    """send_raw() bound to the running server's port."""
    port = running_server.bound_port

    def send(data: bytes) -> RawResponse:
        return send_raw(port, data)

    return send
