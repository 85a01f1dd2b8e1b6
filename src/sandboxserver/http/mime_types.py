"""
=============================================================================
CONTENT CLASSIFICATION
=============================================================================

Three questions get asked about every file the browser UI opens:

    1. What MIME type do we serve it with?      get_mime_type()
    2. Can it be shown inline as text?          is_text_file()
    3. Is it an image, even without extension?  sniff_image()

The text allow-list is deliberately separate from the MIME table: a
``.log`` or ``.ets`` source file has no useful MIME type but is plainly
text, while an ``.svg`` has a text MIME type but previews better as an
image.

=============================================================================
IMAGE SIGNATURES
=============================================================================

When a file has no extension at all (common for app caches), the first
8 bytes are compared with well-known magic numbers:

    89 50 4E 47 0D 0A 1A 0A   PNG
    FF D8 FF                  JPEG
    47 49 46 38 (37|39) 61    GIF87a / GIF89a
    42 4D                     BMP
    00 00 01 00               ICO
    49 49 2A 00 / 4D 4D 00 2A TIFF

=============================================================================
"""

import posixpath
from typing import Optional


MIME_TYPES = {
    # -------------------------------------------------------------------------
    # TEXT / DATA
    # -------------------------------------------------------------------------
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".json5": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".log": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",

    # -------------------------------------------------------------------------
    # IMAGES
    # -------------------------------------------------------------------------
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",
    ".heic": "image/heic",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",

    # -------------------------------------------------------------------------
    # FONTS
    # -------------------------------------------------------------------------
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # -------------------------------------------------------------------------
    # AUDIO
    # -------------------------------------------------------------------------
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".flac": "audio/flac",

    # -------------------------------------------------------------------------
    # VIDEO
    # -------------------------------------------------------------------------
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",
    ".3gp": "video/3gpp",

    # -------------------------------------------------------------------------
    # DOCUMENTS / ARCHIVES / DATABASES
    # -------------------------------------------------------------------------
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
    ".wasm": "application/wasm",
    ".db": "application/vnd.sqlite3",
    ".sqlite": "application/vnd.sqlite3",
    ".sqlite3": "application/vnd.sqlite3",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

# Shown inline by /api/read. Anything else is served by URL.
TEXT_EXTENSIONS = frozenset({
    ".txt", ".log", ".md", ".csv", ".tsv",
    ".json", ".json5", ".xml", ".yaml", ".yml", ".toml", ".ini", ".conf", ".cfg",
    ".properties", ".prop",
    ".html", ".htm", ".css", ".js", ".mjs", ".ts", ".ets",
    ".py", ".java", ".kt", ".c", ".h", ".cpp", ".hpp", ".rs", ".go", ".sh",
})

IMAGE_EXTENSIONS = frozenset(ext for ext, mime in MIME_TYPES.items() if mime.startswith("image/"))

SQLITE_EXTENSIONS = frozenset({".db", ".sqlite", ".sqlite3"})

IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
)

SNIFF_LENGTH = 8


def get_extension(path: str) -> str:
    """Lower-cased extension with the dot ("" when there is none)."""
    return posixpath.splitext(posixpath.basename(path))[1].lower()


def get_mime_type(path: str, default: Optional[str] = None) -> str:
    """
    MIME type for a file name based on its extension.

        >>> get_mime_type("/a/b/photo.PNG")
        'image/png'
        >>> get_mime_type("blob")
        'application/octet-stream'
    """
    return MIME_TYPES.get(get_extension(path), default or DEFAULT_MIME_TYPE)


def is_text_file(path: str) -> bool:
    return get_extension(path) in TEXT_EXTENSIONS


def is_sqlite_file(path: str) -> bool:
    return get_extension(path) in SQLITE_EXTENSIONS


def sniff_image(head: bytes) -> Optional[str]:
    """MIME type of an image recognised from its leading bytes, else None."""
    head = head[:SNIFF_LENGTH]
    for signature, mime_type in IMAGE_SIGNATURES:
        if head.startswith(signature):
            return mime_type
    return None


def media_kind(mime_type: str) -> Optional[str]:
    """'image', 'video' or 'audio' for media MIME types, else None."""
    major = mime_type.split("/", 1)[0]
    return major if major in ("image", "video", "audio") else None
