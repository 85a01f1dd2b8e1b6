"""
=============================================================================
LRU STAGING CACHE
=============================================================================

The browser can only fetch what the static handler can see, and the static
handler only sees the static directory. To preview an arbitrary file
(a photo in the app cache, a database, a video) we copy it into the static
directory under its basename and hand back that URL:

    stage("/…/el2/base/cache/thumb.png")
        → copies to <static>/thumb.png
        → returns "/thumb.png"

Copies are kept for the next preview, but only ``capacity`` of them:

    ┌──────────────────────────────────────────────────────────────────┐
    │  OrderedDict  source path → CacheEntry   (oldest first)          │
    ├──────────────────────────────────────────────────────────────────┤
    │  hit        refresh timestamp, move to end, no disk I/O          │
    │  collision  another source with the same basename is evicted     │
    │  miss       copy bytes, insert at end                            │
    │  overflow   evict the entry with the smallest timestamp          │
    └──────────────────────────────────────────────────────────────────┘

All of stage() runs under one lock: two requests staging at the same time
must not reorder the map under each other or delete the same file twice.
A staged file that cannot be deleted is logged and forgotten; the map
never keeps an entry just because the disk cleanup failed.

Files already in the static directory that the cache did not put there
(index.html, the favicon) are never overwritten or deleted: staging a
source with the same basename raises StagingConflictError instead.

=============================================================================
"""

import os
import time
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import quote

from ..errors import StagingConflictError


logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    source_path: str
    staged_path: str
    last_access: float

    @property
    def url(self) -> str:
        return staged_url(os.path.basename(self.staged_path))


def staged_url(name: str) -> str:
    """URL the static handler serves ``<static root>/<name>`` at."""
    return "/" + quote(name)


class FileCache:
    """
    Bounded LRU of files copied into the static directory.

    Args:
        static_root: Host directory the static handler serves.
        capacity: Maximum number of staged files kept.
        clock: Timestamp source; injectable for tests.
    """

    def __init__(self, static_root: str, capacity: int = 20, clock: Callable[[], float] = time.time):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.static_root = static_root
        self.capacity = capacity
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, source_path: str) -> bool:
        with self._lock:
            return source_path in self._entries

    def entries(self) -> List[CacheEntry]:
        """Snapshot of the entries, least recently used first."""
        with self._lock:
            return [CacheEntry(e.source_path, e.staged_path, e.last_access) for e in self._entries.values()]

    def get(self, source_path: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(source_path)

    def stage(self, source_path: str) -> str:
        """
        Make ``source_path`` reachable under the static root.

        Returns:
            The URL of the staged copy.

        Raises:
            StagingConflictError: The static root already holds a file of
                that name which the cache did not write (a UI asset).
            OSError: The source could not be read or the copy not written.
                No entry is inserted for it in either case.
        """
        name = os.path.basename(source_path)
        staged_path = os.path.join(self.static_root, name)

        with self._lock:
            entry = self._entries.get(source_path)
            if entry is not None:
                entry.last_access = self._clock()
                self._entries.move_to_end(source_path)
                return entry.url

            owners = [k for k, e in self._entries.items() if e.staged_path == staged_path]
            if not owners and os.path.lexists(staged_path):
                raise StagingConflictError(
                    f"Cannot preview {source_path}: {name!r} in the static root is not a staged copy"
                )

            for key in owners:
                logger.debug(f"Staging {source_path} evicts {key} (same name {name!r})")
                self._evict(key)

            self._copy(source_path, staged_path)

            entry = CacheEntry(source_path, staged_path, self._clock())
            self._entries[source_path] = entry

            while len(self._entries) > self.capacity:
                # min() keeps the first of equal timestamps in scan order
                oldest = min(self._entries.values(), key=lambda e: e.last_access)
                logger.debug(f"Cache full ({self.capacity}), evicting {oldest.source_path}")
                self._evict(oldest.source_path)

            return entry.url

    def clear(self) -> None:
        """Evict everything and delete every staged copy."""
        with self._lock:
            for key in list(self._entries):
                self._evict(key)

    def _copy(self, source_path: str, staged_path: str) -> None:
        os.makedirs(self.static_root, exist_ok=True)
        with open(source_path, "rb") as src:
            data = src.read()
        with open(staged_path, "wb") as dst:
            dst.write(data)

    def _evict(self, key: str) -> None:
        """Drop an entry and its staged file. Caller holds ``_lock``."""
        entry = self._entries.pop(key)
        try:
            os.remove(entry.staged_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self._report_cleanup_failure(entry, e)

    def _report_cleanup_failure(self, entry: CacheEntry, error: OSError) -> None:
        logger.error(
            f"Could not delete staged copy {entry.staged_path} "
            f"(source {entry.source_path}): {error}"
        )
