"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The server only ever answers with four status codes:

    ┌────────┬──────────────────────────────────────────────────────────┐
    │  200   │ Success, including the empty OPTIONS reply               │
    │  400   │ A required API parameter is missing                      │
    │  404   │ Unknown API route, missing file, missing static asset    │
    │  500   │ The filesystem operation behind an API call failed       │
    └────────┴──────────────────────────────────────────────────────────┘

Reason phrases on the status line come from a short fixed table. Any code
not in it is sent as "Unknown", which is what the browser UI has always
received for 400s; clients read the JSON envelope, not the phrase.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """Status codes the server sends. Compares equal to plain ints."""

    OK = 200
    BAD_REQUEST = 400
    NOT_FOUND = 404
    INTERNAL_SERVER_ERROR = 500

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return reason_phrase(self.value)

    @property
    def is_success(self) -> bool:
        return 200 <= self.value < 300

    @property
    def is_error(self) -> bool:
        return self.value >= 400


_STATUS_PHRASES = {
    200: "OK",
    404: "Not Found",
    500: "Internal Server Error",
}


def reason_phrase(code: int) -> str:
    """Reason phrase for any integer code; "Unknown" outside the table."""
    return _STATUS_PHRASES.get(int(code), "Unknown")
