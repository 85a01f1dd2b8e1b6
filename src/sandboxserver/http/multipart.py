"""
=============================================================================
MULTIPART/FORM-DATA DECODING
=============================================================================

The upload endpoint receives files the way a browser <form> or a
FormData() POST sends them:

    Content-Type: multipart/form-data; boundary=XyZ

    --XyZ\\r\\n
    Content-Disposition: form-data; name="path"\\r\\n
    \\r\\n
    /data/storage/el2/base/files\\r\\n
    --XyZ\\r\\n
    Content-Disposition: form-data; name="file"; filename="a.png"\\r\\n
    Content-Type: image/png\\r\\n
    \\r\\n
    <raw bytes>\\r\\n
    --XyZ--\\r\\n

Every delimiter is "--" + boundary, preceded by CRLF (except the very
first, which may sit at offset 0). The CRLF before a delimiter belongs to
the delimiter, not to the part, so binary payloads come out byte-exact.

A part that declares its own Content-Type is kept as raw bytes; a part
without one is a plain text field and is decoded as UTF-8.

=============================================================================
"""

import re
import logging
from typing import Dict, Optional, Union


logger = logging.getLogger(__name__)

FieldValue = Union[str, bytes]

CRLF = b"\r\n"
HEADER_TERMINATOR = b"\r\n\r\n"

_DISPOSITION_PARAM = re.compile(r'([\w*-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^;]*))')


def parse_boundary(content_type: str) -> Optional[str]:
    """
    Pull the boundary token out of a Content-Type header value.

    Only the ``boundary=`` parameter is looked at; anything after the next
    ``;`` is ignored and surrounding quotes are removed.

        >>> parse_boundary('multipart/form-data; boundary="abc"; charset=x')
        'abc'
    """
    marker = content_type.lower().find("boundary=")
    if marker < 0:
        return None
    token = content_type[marker + len("boundary="):].split(";", 1)[0].strip()
    if len(token) >= 2 and token[0] == token[-1] == '"':
        token = token[1:-1]
    return token or None


def parse_disposition(value: str) -> Dict[str, str]:
    """Parameters of a Content-Disposition header, keys lower-cased."""
    params = {}
    for match in _DISPOSITION_PARAM.finditer(value):
        name = match.group(1).lower()
        quoted, bare = match.group(2), match.group(3)
        params[name] = quoted.replace('\\"', '"') if quoted is not None else bare.strip()
    return params


class MultipartParser:
    """
    Decodes a multipart/form-data body into ``{field name: value}``.

    Usage:
        parser = MultipartParser(parse_boundary(request.content_type_header))
        fields = parser.parse(request.body)
        fields["file"]      # bytes
        fields["path"]      # str

    Parts without a ``name`` are dropped; if a name repeats, the last
    occurrence wins.
    """

    def __init__(self, boundary: str):
        if not boundary:
            raise ValueError("multipart boundary must not be empty")
        self.boundary = boundary
        self.delimiter = b"--" + boundary.encode("utf-8")

    def parse(self, body: bytes) -> Dict[str, FieldValue]:
        fields: Dict[str, FieldValue] = {}
        for part in self.split_parts(body):
            parsed = self._parse_part(part)
            if parsed is None:
                continue
            name, value = parsed
            fields[name] = value
        return fields

    def split_parts(self, body: bytes):
        """
        Yield the raw span of each part, leading CRLF stripped.

        Empty spans (e.g. a preamble that is only a line break) are skipped,
        and the closing ``--`` span ends the scan.
        """
        delimiter = self.delimiter
        separator = CRLF + delimiter

        if body.startswith(delimiter):
            cursor = len(delimiter)
        else:
            first = body.find(separator)
            if first < 0:
                return
            cursor = first + len(separator)

        while cursor <= len(body):
            nxt = body.find(separator, cursor)
            span = body[cursor:] if nxt < 0 else body[cursor:nxt]

            if span.startswith(b"--"):
                return  # close delimiter
            if span.startswith(CRLF):
                span = span[len(CRLF):]
            if span:
                yield span

            if nxt < 0:
                return
            cursor = nxt + len(separator)

    def _parse_part(self, part: bytes):
        header_end = part.find(HEADER_TERMINATOR)
        if header_end < 0:
            logger.debug("Dropping multipart part without a header block")
            return None

        header_block = part[:header_end].decode("utf-8", errors="replace")
        payload = part[header_end + len(HEADER_TERMINATOR):]

        name = None
        has_content_type = False
        for line in header_block.split("\r\n"):
            key, sep, value = line.partition(":")
            if not sep:
                continue
            key = key.strip().lower()
            if key == "content-disposition":
                name = parse_disposition(value).get("name")
            elif key == "content-type":
                has_content_type = True

        if not name:
            logger.debug("Dropping multipart part without a name")
            return None

        if has_content_type:
            return name, payload
        return name, payload.decode("utf-8", errors="replace")
