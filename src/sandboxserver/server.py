"""
=============================================================================
SANDBOX SERVER
=============================================================================

Wires the pieces together and owns their lifecycle:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          SandboxServer                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  SocketServer ── accept ──► ThreadPool ── worker ──► Connection     │
    │  (own thread)                (bounded)               read_request() │
    │                                                           │         │
    │                                                    RequestParser    │
    │                                                           │         │
    │                           AccessLogMiddleware ──► Router.handle     │
    │                                                    │           │    │
    │                                               ApiHandler  StaticFile│
    │                                                    │        Handler │
    │                                          FileStore + FileCache      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

There is no global instance. The host creates a SandboxServer, calls
start() and keeps the handle; tests run several side by side on port 0.

    server = SandboxServer(ServerConfig(port=8080), StorageContext(), AppInfo())
    where = server.start()          # ServerAddress("192.168.1.20", 8080)
    if not where.ok:
        ...                         # bind failed
    server.stop()

=============================================================================
ONE REQUEST PER CONNECTION
=============================================================================

Each connection carries a single request. The worker reads it, answers it
and closes the socket; every response says ``Connection: close``. Read
timeouts, oversize requests, malformed request lines and socket errors
are logged and end that connection only.

=============================================================================
"""

import os
import signal
import logging
import threading
from typing import Optional

from .config import AppInfo, ServerConfig, StorageContext
from .errors import ProtocolError
from .core import SocketServer, Connection, ThreadPool
from .core.netinfo import BIND_FAILED, ServerAddress, advertised_address
from .http import RequestParser, Router, internal_error
from .handlers import ApiHandler, StaticFileHandler
from .middleware import AccessLogMiddleware, MiddlewarePipeline
from .storage import FileCache, FileStore


logger = logging.getLogger(__name__)


class SandboxServer:
    """
    Embedded HTTP server exposing an app's sandboxed storage.

    Args:
        config: Network, limits and logging settings.
        storage: The app's private directories (sandbox paths).
        app_info: Identity reported by /api/app-info.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        storage: Optional[StorageContext] = None,
        app_info: Optional[AppInfo] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()
        self.storage = storage or StorageContext()
        self.app_info = app_info or AppInfo()

        self.store = FileStore(
            storage=self.storage,
            sandbox_root=self.config.sandbox_root,
            work_dir=self.storage.work_dir(self.config),
            chunk_size=self.config.chunk_size,
        )
        self.static_root = self.store.resolve(self.storage.static_dir(self.config))
        self.cache = FileCache(self.static_root, capacity=self.config.cache_capacity)

        self._router = Router(
            api_prefix=self.config.api_prefix,
            fallback=StaticFileHandler(self.static_root),
        )
        self._api = ApiHandler(
            store=self.store,
            cache=self.cache,
            static_root=self.static_root,
            app_info=self.app_info,
            address_provider=lambda: self.address,
        )
        self._api.register(self._router)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(AccessLogMiddleware(log_format=self.config.log_format))
        self._handler = self._middleware.wrap(self._router.handle)

        self._parser = RequestParser(upload_path=self.config.api_prefix + "/upload")
        self._socket_server = SocketServer(self.config)
        self._thread_pool: Optional[ThreadPool] = None
        self._accept_thread: Optional[threading.Thread] = None

        self._address = BIND_FAILED
        self._started = False
        self._lock = threading.Lock()
        self._original_handlers: dict = {}

    # ─────────────────────────────────────────────────────────────────────
    # PROPERTIES
    # ─────────────────────────────────────────────────────────────────────

    @property
    def address(self) -> ServerAddress:
        """What start() reported; BIND_FAILED while stopped."""
        return self._address

    @property
    def bound_port(self) -> int:
        return self._socket_server.address[1]

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    @property
    def router(self) -> Router:
        return self._router

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    def start(self) -> ServerAddress:
        """
        Bind and start accepting on a background thread.

        Returns:
            The reported address and bound port, or BIND_FAILED
            (empty address) if the port could not be bound.
        """
        with self._lock:
            if self._started:
                return self._address

            self._setup_logging()
            self._ensure_static_root()

            try:
                host, port = self._socket_server.bind()
            except OSError:
                self._address = BIND_FAILED
                return BIND_FAILED

            self._thread_pool = ThreadPool(
                min_workers=self.config.min_workers,
                max_workers=self.config.max_workers,
                queue_size=self.config.queue_size,
            )
            self._thread_pool.start()

            self._address = ServerAddress(
                advertised_address(host, self.config.advertise_host), port
            )

            self._accept_thread = threading.Thread(
                target=self._socket_server.serve,
                args=(self._handle_connection,),
                name=f"sandboxserver-accept-{port}",
                daemon=True,
            )
            self._accept_thread.start()
            self._started = True

            logger.info(f"Sandbox server available at http://{self._address.address}:{port}")
            return self._address

    def stop(self):
        """
        Stop accepting connections.

        Requests already being processed run to completion on their
        worker threads; nothing is interrupted.
        """
        with self._lock:
            if not self._started:
                return
            self._started = False

            logger.info("Shutting down server...")
            self._socket_server.shutdown()
            if self._accept_thread is not None:
                self._accept_thread.join(timeout=2.0)
                self._accept_thread = None

            if self._thread_pool is not None:
                self._thread_pool.shutdown(wait=False)
                self._thread_pool = None

            self.cache.clear()
            self._address = BIND_FAILED
            logger.info("Server stopped")

    def serve_forever(self) -> ServerAddress:
        """
        start(), then block until SIGINT/SIGTERM or stop().

        Must be called from the main thread (signal handlers).
        """
        address = self.start()
        if not address.ok:
            return address

        self._setup_signals()
        try:
            while self.is_running:
                self._socket_server.wait_for_shutdown(timeout=1.0)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._restore_signals()
            self.stop()
        return address

    def __enter__(self) -> "SandboxServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("sandboxserver").setLevel(level)

    def _ensure_static_root(self):
        try:
            os.makedirs(self.static_root, exist_ok=True)
        except OSError as e:
            logger.warning(f"Static root {self.static_root} unavailable: {e}")

    def _setup_signals(self):
        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self._socket_server.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION HANDLING
    # ─────────────────────────────────────────────────────────────────────

    def _handle_connection(self, conn: Connection):
        """Hand a fresh connection to the pool (accept thread)."""
        pool = self._thread_pool
        if pool is None or not pool.submit(self._process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Connection limit reached, rejecting {conn.client_ip}")
            if pool is not None:
                logger.debug(
                    f"{self._socket_server.active_connections} connection(s) open, "
                    f"{pool.pending} waiting for a worker"
                )
            self._socket_server.release(conn)
            conn.close()

    def _process_connection(self, conn: Connection):
        """Read, dispatch and answer one request (worker thread)."""
        try:
            with conn:
                try:
                    raw_request = conn.read_request()
                except TimeoutError as e:
                    logger.warning(f"[{conn.id}] Read timeout: {e}")
                    return
                except ProtocolError as e:
                    logger.warning(f"[{conn.id}] Dropping request: {e}")
                    return
                except OSError as e:
                    logger.warning(f"[{conn.id}] Socket error while reading: {e}")
                    return

                if raw_request is None:
                    return

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except ProtocolError as e:
                    logger.warning(f"[{conn.id}] Unparsable request from {conn.client_ip}: {e}")
                    return

                try:
                    response = self._handler(request)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    response = internal_error(str(e))

                conn.send_response(response.to_bytes())
        finally:
            self._socket_server.release(conn)
