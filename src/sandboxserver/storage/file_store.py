"""
=============================================================================
FILE STORE
=============================================================================

Everything the JSON API does to the disk goes through FileStore. Callers
pass SANDBOX paths, the paths the browser sees; FileStore maps each one
under ``sandbox_root`` before touching the host filesystem.

    sandbox path                         host path (sandbox_root=/tmp/sbx)
    ─────────────────────────────────    ───────────────────────────────────
    /data/storage/el2/base/files/a.txt   /tmp/sbx/data/storage/el2/base/files/a.txt
    /data/storage/../../etc/passwd       /tmp/sbx/etc/passwd   (normalized first)

=============================================================================
VIRTUAL ROOTS
=============================================================================

The top of the sandbox is not a real directory listing. The app cannot
read /data or /data/storage on the device, so those levels are synthetic:

    /                         → data
    /data                     → storage
    /data/storage             → el1, el2
    /data/storage/el1|el2     → base, database

Everything below that is a real directory.

=============================================================================
MUTATION POLICY
=============================================================================

- mkdir only strictly below /data/storage/el1 or /data/storage/el2, and
  never inside the server's own working directory.
- Listing the app's files directory hides the server's working directory.
- Writes go out in ``chunk_size`` slices; copies and deletes of directory
  trees walk an explicit stack instead of recursing.

=============================================================================
"""

import os
import stat
import errno
import logging
import posixpath
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..config import EL1_ROOT, EL2_ROOT, StorageContext
from ..errors import InternalError, NotFoundError
from ..http.mime_types import (
    SNIFF_LENGTH,
    get_extension,
    is_text_file,
    sniff_image,
    IMAGE_EXTENSIONS,
)


logger = logging.getLogger(__name__)

STORAGE_ROOTS = (EL1_ROOT, EL2_ROOT)

VIRTUAL_TREE: Dict[str, Tuple[str, ...]] = {
    "/": ("data",),
    "/data": ("storage",),
    "/data/storage": ("el1", "el2"),
    EL1_ROOT: ("base", "database"),
    EL2_ROOT: ("base", "database"),
}


def normalize(path: str) -> str:
    """Absolute, normalized sandbox path. ``..`` can never climb above "/"."""
    return posixpath.normpath("/" + path.strip().lstrip("/"))


def is_within(path: str, root: str) -> bool:
    """True if ``path`` is ``root`` or lies below it (both normalized)."""
    if root == "/":
        return True
    return path == root or path.startswith(root + "/")


@dataclass
class FileItem:
    """One row of a directory listing."""

    name: str
    path: str
    is_folder: bool
    size: int = 0
    modified: int = 0  # milliseconds since the epoch
    extension: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "isFolder": self.is_folder,
            "size": self.size,
            "modifiedTime": self.modified,
            "extension": self.extension,
        }


class FileStore:
    """
    Filesystem operations on sandbox paths.

    Missing paths raise NotFoundError; any other OSError propagates so the
    router can turn it into a 500 carrying the OS message.

    Args:
        storage: The host app's directories (sandbox paths).
        sandbox_root: Host directory the sandbox is mapped under.
        work_dir: The server's own directory (sandbox path).
        chunk_size: Largest slice handed to a single write() call.
    """

    def __init__(
        self,
        storage: StorageContext,
        sandbox_root: str = "/",
        work_dir: str = "",
        chunk_size: int = 4 * 1024 * 1024,
    ):
        self.storage = storage
        self.sandbox_root = os.path.abspath(sandbox_root)
        self.work_dir = normalize(work_dir) if work_dir else ""
        self.chunk_size = chunk_size

        self._files_dir = normalize(storage.files_dir)
        self._preferences_dir = normalize(storage.preferences_dir)
        self._hidden_name = posixpath.basename(self.work_dir) if self.work_dir else ""

    # ─────────────────────────────────────────────────────────────────────
    # PATH MAPPING
    # ─────────────────────────────────────────────────────────────────────

    def resolve(self, path: str) -> str:
        """Host path for a sandbox path."""
        relative = normalize(path).lstrip("/")
        if not relative:
            return self.sandbox_root
        return os.path.join(self.sandbox_root, *relative.split("/"))

    def exists(self, path: str) -> bool:
        """Whether ``path`` exists. Never raises."""
        path = normalize(path)
        if path in VIRTUAL_TREE:
            return True
        try:
            os.stat(self.resolve(path))
        except (OSError, ValueError):
            return False
        return True

    def is_dir(self, path: str) -> bool:
        path = normalize(path)
        return path in VIRTUAL_TREE or os.path.isdir(self.resolve(path))

    def _host_stat(self, path: str) -> os.stat_result:
        try:
            return os.stat(self.resolve(path))
        except FileNotFoundError:
            raise NotFoundError(f"No such file or directory: {normalize(path)}")

    # ─────────────────────────────────────────────────────────────────────
    # LISTING
    # ─────────────────────────────────────────────────────────────────────

    def list_dir(self, path: str) -> List[FileItem]:
        """
        Entries of a directory, folders first then by name.

        Virtual roots return their fixed children. Listing the app's files
        directory leaves out the server's own working directory.
        """
        path = normalize(path)

        if path in VIRTUAL_TREE:
            return [
                FileItem(name=name, path=posixpath.join(path, name), is_folder=True)
                for name in VIRTUAL_TREE[path]
            ]

        host = self.resolve(path)
        if not os.path.isdir(host):
            if os.path.exists(host):
                raise InternalError(f"Not a directory: {path}")
            raise NotFoundError(f"No such directory: {path}")

        hide = self._hidden_name if path == self._files_dir else None

        items = []
        with os.scandir(host) as entries:
            for entry in entries:
                if hide and entry.name == hide:
                    continue
                items.append(self._item_from_entry(path, entry))

        items.sort(key=lambda item: (not item.is_folder, item.name.lower()))
        return items

    def _item_from_entry(self, parent: str, entry: os.DirEntry) -> FileItem:
        try:
            st = entry.stat()
        except OSError:
            # Dangling symlink: describe the link itself
            st = entry.stat(follow_symlinks=False)

        is_folder = stat.S_ISDIR(st.st_mode)
        return FileItem(
            name=entry.name,
            path=posixpath.join(parent, entry.name),
            is_folder=is_folder,
            size=0 if is_folder else st.st_size,
            modified=int(st.st_mtime * 1000),
            extension="" if is_folder else get_extension(entry.name).lstrip("."),
        )

    def stat(self, path: str) -> FileItem:
        path = normalize(path)
        if path in VIRTUAL_TREE:
            return FileItem(name=posixpath.basename(path) or "/", path=path, is_folder=True)

        st = self._host_stat(path)
        is_folder = stat.S_ISDIR(st.st_mode)
        name = posixpath.basename(path)
        return FileItem(
            name=name,
            path=path,
            is_folder=is_folder,
            size=0 if is_folder else st.st_size,
            modified=int(st.st_mtime * 1000),
            extension="" if is_folder else get_extension(name).lstrip("."),
        )

    # ─────────────────────────────────────────────────────────────────────
    # READING
    # ─────────────────────────────────────────────────────────────────────

    def read_bytes(self, path: str) -> bytes:
        try:
            with open(self.resolve(path), "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFoundError(f"No such file: {normalize(path)}")

    def read_text(self, path: str) -> str:
        return self.read_bytes(path).decode("utf-8", errors="replace")

    def read_head(self, path: str, length: int = SNIFF_LENGTH) -> bytes:
        try:
            with open(self.resolve(path), "rb") as f:
                return f.read(length)
        except FileNotFoundError:
            raise NotFoundError(f"No such file: {normalize(path)}")

    # ─────────────────────────────────────────────────────────────────────
    # CLASSIFICATION
    # ─────────────────────────────────────────────────────────────────────

    def is_text(self, path: str) -> bool:
        """Text by extension, or anything stored in the preferences directory."""
        path = normalize(path)
        return is_text_file(path) or is_within(path, self._preferences_dir)

    def is_image(self, path: str) -> bool:
        """
        Image by extension. Files with no extension at all are sniffed;
        a file with an unknown extension is not.
        """
        extension = get_extension(path)
        if extension:
            return extension in IMAGE_EXTENSIONS
        try:
            return sniff_image(self.read_head(path)) is not None
        except (NotFoundError, OSError) as e:
            logger.debug(f"Could not sniff {path}: {e}")
            return False

    # ─────────────────────────────────────────────────────────────────────
    # WRITING
    # ─────────────────────────────────────────────────────────────────────

    def write(self, path: str, data: bytes, append: bool = False) -> int:
        """
        Write ``data`` to ``path`` in ``chunk_size`` slices.

        Args:
            append: False truncates first (the first upload chunk), True
                appends (every later chunk).

        Returns:
            Number of bytes written.
        """
        view = memoryview(data)
        with open(self.resolve(path), "ab" if append else "wb") as f:
            for offset in range(0, len(view), self.chunk_size):
                f.write(view[offset:offset + self.chunk_size])
        return len(view)

    def write_text(self, path: str, text: str) -> int:
        return self.write(path, text.encode("utf-8"))

    def touch(self, path: str) -> None:
        """Create an empty file, or bump the mtime of an existing one."""
        host = self.resolve(path)
        with open(host, "ab"):
            pass
        os.utime(host, None)

    def mkdir(self, path: str) -> bool:
        """
        Create a directory (and missing parents) if policy allows.

        Returns:
            False when the path is outside both storage roots, equal to a
            root, or inside the server's working directory.
        """
        path = normalize(path)
        if not self.can_create_dir(path):
            logger.info(f"mkdir refused by policy: {path}")
            return False
        os.makedirs(self.resolve(path), exist_ok=True)
        return True

    def can_create_dir(self, path: str) -> bool:
        path = normalize(path)
        if self.work_dir and is_within(path, self.work_dir):
            return False
        return any(path != root and is_within(path, root) for root in STORAGE_ROOTS)

    # ─────────────────────────────────────────────────────────────────────
    # COPY / MOVE / REMOVE
    # ─────────────────────────────────────────────────────────────────────

    def _target(self, src: str, dest: str) -> str:
        """``dest`` itself, or ``dest/<basename(src)>`` if dest is a directory."""
        src, dest = normalize(src), normalize(dest)
        if os.path.isdir(self.resolve(dest)) and dest != src:
            return posixpath.join(dest, posixpath.basename(src))
        return dest

    def copy(self, src: str, dest: str) -> str:
        """
        Copy a file or a directory tree.

        Returns:
            The sandbox path that was written.
        """
        src = normalize(src)
        if not self.exists(src):
            raise NotFoundError(f"No such file or directory: {src}")

        target = self._target(src, dest)
        if is_within(target, src):
            raise InternalError(f"Cannot copy {src} into itself")

        src_host, target_host = self.resolve(src), self.resolve(target)
        if not os.path.isdir(src_host):
            self._copy_file(src_host, target_host)
            return target

        stack = [(src_host, target_host)]
        while stack:
            current_src, current_dest = stack.pop()
            os.makedirs(current_dest, exist_ok=True)
            with os.scandir(current_src) as entries:
                for entry in entries:
                    child_dest = os.path.join(current_dest, entry.name)
                    if entry.is_dir(follow_symlinks=False):
                        stack.append((entry.path, child_dest))
                    else:
                        self._copy_file(entry.path, child_dest)
        return target

    def _copy_file(self, src_host: str, dest_host: str) -> None:
        # Whole file in memory: fine for preview/edit sized files
        with open(src_host, "rb") as f:
            data = f.read()
        with open(dest_host, "wb") as f:
            f.write(data)

    def move(self, src: str, dest: str) -> str:
        """
        Move a file or directory. Falls back to copy + remove when a plain
        rename is impossible (different filesystems).

        Returns:
            The sandbox path the source ended up at.
        """
        src = normalize(src)
        if not self.exists(src):
            raise NotFoundError(f"No such file or directory: {src}")

        target = self._target(src, dest)
        if target == src:
            return target
        if is_within(target, src):
            raise InternalError(f"Cannot move {src} into itself")

        try:
            os.replace(self.resolve(src), self.resolve(target))
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            logger.debug(f"Cross-device move {src} -> {target}, copying")
            self.copy(src, target)
            self.remove(src)
        return target

    def remove(self, path: str) -> None:
        """Delete a file, or a directory and everything below it."""
        path = normalize(path)
        if path in VIRTUAL_TREE:
            raise InternalError(f"Refusing to remove {path}")

        host = self.resolve(path)
        if not os.path.lexists(host):
            raise NotFoundError(f"No such file or directory: {path}")

        if not os.path.isdir(host) or os.path.islink(host):
            os.remove(host)
            return

        # Files go as they are found; directories afterwards, deepest first
        directories = []
        stack = [host]
        while stack:
            current = stack.pop()
            directories.append(current)
            with os.scandir(current) as entries:
                for entry in entries:
                    if entry.is_dir(follow_symlinks=False):
                        stack.append(entry.path)
                    else:
                        os.remove(entry.path)

        for directory in reversed(directories):
            os.rmdir(directory)
