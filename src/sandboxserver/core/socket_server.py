"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

The listening half of the server: create the socket, bind it, accept
clients and hand each one off as a Connection. Everything HTTP happens
further up.

ACCEPT PATH:

    bind()  ──►  (host, port)  or OSError        caller thread
    serve() ──►  accept() every second until shutdown()
                    │
                    ▼
              Connection(sock, timeout, max_request_size)
                    │  tracked until release()
                    ▼
              connection_handler(conn)           must return quickly;
                                                 the server hands it to
                                                 its pool or rejects it

Binding and accepting are split into two calls so the caller learns the
bound port (or the bind failure) before the accept loop starts running on
its own thread.

=============================================================================
"""

import socket
import logging
import threading
from typing import Optional, Callable, Dict, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        server = SocketServer(config)
        host, port = server.bind()        # raises OSError on failure
        server.serve(handle_connection)   # blocks until shutdown()

    Accepted connections are tracked until the handler calls release().
    shutdown() stops the accept loop and forgets tracked connections; it
    never interrupts a handler that is already running.
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._shutdown_event = threading.Event()

        self._connections: Dict[str, Connection] = {}
        self._connections_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); port 0 until bind() succeeds."""
        if self._socket is None:
            return (self.config.host, 0)
        host, port = self._socket.getsockname()[:2]
        return (host, port)

    @property
    def active_connections(self) -> int:
        with self._connections_lock:
            return len(self._connections)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restart without waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Small JSON replies should leave immediately
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up once a second to check the running flag
        sock.settimeout(1.0)

        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen.

        Returns:
            The bound (host, port).

        Raises:
            OSError: The address is in use or not permitted.
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            sock.close()
            raise

        self._socket = sock
        self._running = True
        self._shutdown_event.clear()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        return host, port

    def serve(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Args:
            connection_handler: Called with every new Connection. It must
                not block for long; the HTTP layer submits to a pool.
        """
        if self._socket is None:
            raise RuntimeError("serve() called before bind()")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                # The listener was closed under us during shutdown
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )

            with self._connections_lock:
                self._connections[conn.id] = conn

            try:
                connection_handler(conn)
            except Exception:
                # A broken handoff must not take the listener down
                logger.exception(f"[{conn.id}] Connection handoff failed")
                self.release(conn)
                conn.close()

    def release(self, conn: Connection):
        """Stop tracking a connection once its handler is finished with it."""
        with self._connections_lock:
            self._connections.pop(conn.id, None)

    def shutdown(self):
        """
        Stop accepting. Safe to call from any thread, and more than once.
        """
        if not self._running:
            return
        logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        if self._socket:
            try:
                self._socket.close()
            except OSError as e:
                logger.warning(f"Error closing listener: {e}")
            self._socket = None

        with self._connections_lock:
            dropped = len(self._connections)
            self._connections.clear()
        if dropped:
            logger.info(f"Dropped {dropped} tracked connection(s); in-flight requests will finish")

        logger.info("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown() is called; False on timeout."""
        return self._shutdown_event.wait(timeout)
