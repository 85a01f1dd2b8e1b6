"""
Storage layer: filesystem access on sandbox paths and the preview cache.

    FileStore   list / stat / read / write / copy / move / remove / mkdir
    FileCache   LRU of files staged into the static directory
"""

from .file_store import FileStore, FileItem, VIRTUAL_TREE, STORAGE_ROOTS, normalize, is_within
from .file_cache import FileCache, CacheEntry, staged_url

__all__ = [
    "FileStore",
    "FileItem",
    "VIRTUAL_TREE",
    "STORAGE_ROOTS",
    "normalize",
    "is_within",
    "FileCache",
    "CacheEntry",
    "staged_url",
]
