"""
=============================================================================
REQUEST ASSEMBLY
=============================================================================

TCP hands us an unframed byte stream. An HTTP request is only usable once we
have the whole header block AND a body of exactly Content-Length bytes, so
every connection owns a small state machine that swallows chunks until the
message is complete.

=============================================================================
STATE MACHINE
=============================================================================

    ┌──────────────────┐   CRLF CRLF found    ┌───────────────┐
    │ AWAITING_HEADERS │ ───────────────────► │ AWAITING_BODY │
    └──────────────────┘                      └───────┬───────┘
            │                                         │ body >= Content-Length
            │ CRLF CRLF found and                     ▼
            │ no / zero Content-Length        ┌───────────────┐
            └───────────────────────────────► │   COMPLETE    │
                                              └───────────────┘

- AWAITING_HEADERS: scan for b"\\r\\n\\r\\n". Nothing found means "wait for
  more bytes" - it is never an error.
- AWAITING_BODY: compare accumulated body bytes with the declared length.
- COMPLETE: terminal. The caller takes `buffer` and discards the assembler.

The assembler never slices the body out of the buffer. The request parser
re-derives the header/body split from the full raw buffer.

=============================================================================
"""

from enum import Enum
from typing import Optional


HEADER_TERMINATOR = b"\r\n\r\n"


class AssemblyState(Enum):
    """Where a request is in its assembly lifecycle."""
    AWAITING_HEADERS = "awaiting_headers"
    AWAITING_BODY = "awaiting_body"
    COMPLETE = "complete"


class RequestAssembler:
    """
    Buffers inbound bytes until one complete HTTP request is available.

    Usage:
        assembler = RequestAssembler()
        while not assembler.feed(sock.recv(8192)):
            pass
        raw = assembler.buffer

    Attributes:
        state: Current AssemblyState.
        content_length: Declared body length, or None when absent.
        header_end: Offset of the header terminator, or -1 until found.
    """

    def __init__(self):
        self.state = AssemblyState.AWAITING_HEADERS
        self.content_length: Optional[int] = None
        self.header_end = -1
        self._buffer = bytearray()

    @property
    def buffer(self) -> bytes:
        """Everything received so far, headers and body together."""
        return bytes(self._buffer)

    @property
    def size(self) -> int:
        return len(self._buffer)

    @property
    def is_complete(self) -> bool:
        return self.state is AssemblyState.COMPLETE

    @property
    def body_received(self) -> int:
        """Body bytes accumulated (buffer minus header block and terminator)."""
        if self.header_end < 0:
            return 0
        return len(self._buffer) - (self.header_end + len(HEADER_TERMINATOR))

    def feed(self, chunk: bytes) -> bool:
        """
        Append a chunk and advance the state machine.

        Args:
            chunk: Bytes just read from the socket (may be empty).

        Returns:
            True once the request is COMPLETE.
        """
        if self.is_complete:
            return True

        self._buffer.extend(chunk)

        if self.state is AssemblyState.AWAITING_HEADERS:
            # Only rescan the tail that could hold a terminator split
            # across the previous chunk boundary.
            start = max(0, len(self._buffer) - len(chunk) - len(HEADER_TERMINATOR) + 1)
            end = self._buffer.find(HEADER_TERMINATOR, start)
            if end < 0:
                return False

            self.header_end = end
            self.content_length = parse_content_length(bytes(self._buffer[:end]))
            self.state = AssemblyState.AWAITING_BODY

        if self.state is AssemblyState.AWAITING_BODY:
            if not self.content_length or self.body_received >= self.content_length:
                self.state = AssemblyState.COMPLETE

        return self.is_complete


def parse_content_length(header_block: bytes) -> Optional[int]:
    """
    Find Content-Length in a raw header block.

    The header name is matched case-insensitively. A missing or unparsable
    value yields None, which the assembler treats as "no body".
    """
    text = header_block.decode("latin-1")
    for line in text.split("\r\n")[1:]:
        name, sep, value = line.partition(":")
        if not sep or name.strip().lower() != "content-length":
            continue
        try:
            length = int(value.strip())
        except ValueError:
            return None
        return length if length >= 0 else None
    return None
