"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket. A connection carries exactly one request:
the client sends it, we answer, and the socket is closed (every response is
sent with ``Connection: close``).

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

    Client sends:                      Server might recv():
        POST /api/upload HTTP/1.1          "POST /api/up"
        Content-Length: 5                  "load HTTP/1.1\\r\\nContent-Len"
        ...                                "gth: 5\\r\\n\\r\\nhel"
        hello                              "lo"

So we loop on recv() and let a RequestAssembler decide when the request is
whole. The loop is a plain blocking read with a socket timeout, one loop per
connection, running on a pool worker thread.

=============================================================================
TIMEOUTS
=============================================================================

A client that connects and then goes quiet would otherwise hold a worker
forever. Every recv() is bounded by ``timeout`` seconds; when it expires
we raise TimeoutError and the server closes the connection.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..errors import ProtocolError
from .assembler import RequestAssembler


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """
    Connection lifecycle states.

    Used for logging and to make close() idempotent.
    """
    NEW = "new"                # Just accepted
    READING = "reading"        # Assembling the request
    PROCESSING = "processing"  # Handler is running
    WRITING = "writing"        # Sending the response
    CLOSING = "closing"        # Shutdown sequence started
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │  1. BUFFERED READING   RequestAssembler owns the receive buffer      │
    │  2. READ TIMEOUT       every recv() bounded by `timeout`             │
    │  3. SIZE LIMIT         abandon requests above `max_request_size`     │
    │  4. GRACEFUL CLOSE     SHUT_WR, bounded drain, close                 │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        state: Current connection state.
        assembler: Parse state for the request being received.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    max_request_size: int = 64 * 1024 * 1024

    assembler: RequestAssembler = field(default_factory=RequestAssembler, repr=False)

    # Bounds on what close() reads from a peer that keeps sending
    DRAIN_LIMIT = 64 * 1024
    DRAIN_TIMEOUT = 0.5

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The full raw request (headers and body), or None if the peer
            closed the connection before the request was complete.

        Raises:
            TimeoutError: A single recv() waited longer than `timeout`.
            ProtocolError: The request grew past `max_request_size`.
        """
        self.state = ConnectionState.READING
        assembler = self.assembler

        try:
            while not assembler.is_complete:
                chunk = self._recv()
                if not chunk:
                    if assembler.size:
                        logger.debug(
                            f"[{self.id}] Peer closed with incomplete request "
                            f"({assembler.size} bytes, {assembler.state.value})"
                        )
                    return None

                assembler.feed(chunk)

                if assembler.size > self.max_request_size:
                    raise ProtocolError(
                        f"Request too large: {assembler.size} bytes "
                        f"(limit {self.max_request_size})"
                    )
        except socket.timeout:
            raise TimeoutError(
                f"No data from {self.client_ip} for {self.timeout}s "
                f"({assembler.state.value})"
            )

        self.state = ConnectionState.PROCESSING
        return assembler.buffer

    def _recv(self) -> bytes:
        """Receive a chunk, mapping a reset peer to end-of-stream."""
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes with sendall().

        Returns:
            True if everything was written, False if the peer went away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        return True

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN so the client sees end-of-response
        2. drain what the client still had in flight, at most DRAIN_LIMIT
           bytes or DRAIN_TIMEOUT seconds, whichever comes first
        3. close() releases the descriptor
        """
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        self._drain()

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def _drain(self):
        """Discard pending input so close() does not reset the response."""
        deadline = time.time() + self.DRAIN_TIMEOUT
        drained = 0
        try:
            while drained < self.DRAIN_LIMIT:
                remaining = deadline - time.time()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Includes socket.timeout

        if drained >= self.DRAIN_LIMIT:
            logger.debug(f"[{self.id}] Peer still sending after {drained} drained bytes, closing")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
