"""
Exception taxonomy for the sandbox server.

Every error carries the HTTP status it maps to, following the same
``status_code`` convention the request parser has always used:

    SandboxServerError          base, 500
    ├── ProtocolError           malformed / incomplete / oversize request,
    │                           logged and the connection dropped (no reply)
    ├── NotFoundError           404, missing route or file
    └── InternalError           500, I/O or permission failure
        └── StagingConflictError  preview would overwrite a static asset

Missing parameters are not exceptions at all: handlers answer them directly
with ``validation_error()`` so validation never travels through ``raise``.
"""


class SandboxServerError(Exception):
    """Base class for errors raised by the sandbox server."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ProtocolError(SandboxServerError):
    """The bytes on the wire could not be turned into a request."""

    status_code = 400


class NotFoundError(SandboxServerError):
    """A route or a filesystem path does not exist."""

    status_code = 404


class InternalError(SandboxServerError):
    """An operation failed for reasons outside the client's control."""

    status_code = 500


class StagingConflictError(InternalError):
    """A preview copy would replace a file the staging cache does not own."""
