"""Filesystem collaborators.

Every action goes through a :class:`Filesystem`, never through :mod:`os`
directly. :class:`OSFilesystem` is the real disk; :class:`MemoryFilesystem`
keeps a whole tree in a dict and is what the action tests run against.

File handles returned by ``create_file`` / ``open_*`` are context managers.
``write_to_file`` always truncates and rewrites the whole file.
"""

from __future__ import annotations

import os
import shutil
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import NamedTuple

from .exceptions import FilesystemError

__all__ = ["DirEntry", "Filesystem", "OSFilesystem", "MemoryFilesystem", "MemoryFile"]


class DirEntry(NamedTuple):
    """One child of a directory listing."""

    name: str
    is_directory: bool


class Filesystem(ABC):
    """Capabilities the actions need from a filesystem."""

    @abstractmethod
    def create_file(self, path: str | os.PathLike[str]):
        """Create (or truncate) *path* for read-write, creating parent directories."""

    @abstractmethod
    def delete_file(self, path: str | os.PathLike[str]) -> None:
        """Remove the file at *path*."""

    @abstractmethod
    def open_readable_file(self, path: str | os.PathLike[str]):
        """Open an existing file for reading."""

    @abstractmethod
    def open_writable_file(self, path: str | os.PathLike[str]):
        """Open an existing file for reading and writing."""

    @abstractmethod
    def create_directory(self, path: str | os.PathLike[str]) -> None:
        """Create *path* and any missing parents."""

    @abstractmethod
    def read_directory(self, path: str | os.PathLike[str]) -> list[DirEntry]:
        """List the immediate children of *path*, sorted by name."""

    @abstractmethod
    def delete_directory(self, path: str | os.PathLike[str]) -> None:
        """Remove *path* and everything below it."""

    @abstractmethod
    def path_exists(self, path: str | os.PathLike[str]) -> bool:
        """True if a file or directory exists at *path*."""

    @abstractmethod
    def read_from_file(self, handle) -> bytes:
        """Return the full contents of an open file."""

    @abstractmethod
    def write_to_file(self, handle, data: bytes) -> None:
        """Replace the full contents of an open file with *data*."""


# ---------------------------------------------------------------------------
# Real disk
# ---------------------------------------------------------------------------

@contextmanager
def _os_errors(operation: str, path):
    """Re-raise :class:`OSError` as :class:`FilesystemError` naming *path*."""
    try:
        yield
    except OSError as exc:
        reason = exc.strerror or str(exc)
        raise FilesystemError(operation, path, f"Failed {operation} '{path}': {reason}") from exc


class OSFilesystem(Filesystem):
    """:class:`Filesystem` backed by the operating system."""

    def __repr__(self) -> str:
        return "OSFilesystem()"

    def create_file(self, path):
        with _os_errors("creating", path):
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            return open(path, "w+b")

    def delete_file(self, path) -> None:
        with _os_errors("deleting", path):
            os.remove(path)

    def open_readable_file(self, path):
        with _os_errors("opening for reading", path):
            return open(path, "rb")

    def open_writable_file(self, path):
        with _os_errors("opening for reading and writing", path):
            return open(path, "r+b")

    def create_directory(self, path) -> None:
        with _os_errors("creating directory", path):
            os.makedirs(path, exist_ok=True)

    def read_directory(self, path) -> list[DirEntry]:
        with _os_errors("listing", path):
            with os.scandir(path) as it:
                entries = [DirEntry(e.name, e.is_dir(follow_symlinks=False)) for e in it]
        entries.sort(key=lambda e: e.name)
        return entries

    def delete_directory(self, path) -> None:
        with _os_errors("deleting directory", path):
            shutil.rmtree(path)

    def path_exists(self, path) -> bool:
        return os.path.lexists(path)

    def read_from_file(self, handle) -> bytes:
        with _os_errors("reading", handle.name):
            handle.seek(0)
            return handle.read()

    def write_to_file(self, handle, data: bytes) -> None:
        with _os_errors("writing", handle.name):
            handle.seek(0)
            handle.truncate()
            handle.write(data)
            handle.flush()


# ---------------------------------------------------------------------------
# In-memory tree
# ---------------------------------------------------------------------------

def _key(path) -> str:
    """Normalize *path* to the POSIX string used as a dict key."""
    p = os.fspath(path)
    if os.name == "nt":
        p = p.replace("\\", "/")
    return PurePosixPath(p).as_posix()


def _parent(key: str) -> str:
    return PurePosixPath(key).parent.as_posix()


def _is_root(key: str) -> bool:
    return _parent(key) == key


def _is_under(path: str, key: str) -> bool:
    """Whether *path* lies strictly inside directory *key*."""
    if key == ".":
        return path != "." and not path.startswith("/")
    return path != key and path.startswith(key.rstrip("/") + "/")


class MemoryFile:
    """Handle on a :class:`MemoryFilesystem` file."""

    def __init__(self, fs: MemoryFilesystem, key: str, writable: bool):
        self._fs = fs
        self.name = key
        self.writable = writable
        self.closed = False

    def __repr__(self) -> str:
        mode = "rw" if self.writable else "r"
        return f"MemoryFile({self.name!r}, {mode!r})"

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class MemoryFilesystem(Filesystem):
    """:class:`Filesystem` holding a whole tree in memory.

    Paths are normalized POSIX strings, so ``"./a"`` and ``"a"`` are the
    same file. ``"."`` is the root of relative paths and ``"/"`` the root of
    absolute ones. :meth:`snapshot` returns the tree for whole-tree
    comparisons; :attr:`touched` collects every path that was created,
    written or deleted.
    """

    def __init__(self, files: dict[str, bytes] | None = None):
        self._files: dict[str, bytes] = {}
        self._dirs: set[str] = {"."}
        self.touched: set[str] = set()
        for path, data in (files or {}).items():
            self.write_bytes(path, data)
        self.touched.clear()

    def __repr__(self) -> str:
        return f"MemoryFilesystem(files={len(self._files)}, dirs={len(self._dirs)})"

    # -- convenience ---------------------------------------------------------

    def write_bytes(self, path, data: bytes) -> None:
        """Create or overwrite a file, creating parent directories."""
        with self.create_file(path) as handle:
            self.write_to_file(handle, data)

    def read_bytes(self, path) -> bytes:
        with self.open_readable_file(path) as handle:
            return self.read_from_file(handle)

    def snapshot(self) -> dict[str, bytes | None]:
        """Return ``{path: content}`` for every entry; directories map to None."""
        tree: dict[str, bytes | None] = {d: None for d in self._dirs if not _is_root(d)}
        tree.update(self._files)
        return dict(sorted(tree.items()))

    # -- Filesystem ----------------------------------------------------------

    def _mkdirs(self, key: str) -> None:
        missing = []
        while key not in self._dirs:
            if key in self._files:
                raise FilesystemError("creating directory", key, f"Not a directory: '{key}'")
            missing.append(key)
            if _is_root(key):
                break
            key = _parent(key)
        self._dirs.update(missing)

    def create_file(self, path) -> MemoryFile:
        key = _key(path)
        if key in self._dirs:
            raise FilesystemError("creating", key, f"Failed creating '{key}': is a directory")
        self._mkdirs(_parent(key))
        self._files[key] = b""
        self.touched.add(key)
        return MemoryFile(self, key, writable=True)

    def delete_file(self, path) -> None:
        key = _key(path)
        if key not in self._files:
            raise FilesystemError("deleting", key, f"Failed deleting '{key}': no such file")
        del self._files[key]
        self.touched.add(key)

    def _open(self, path, writable: bool, operation: str) -> MemoryFile:
        key = _key(path)
        if key not in self._files:
            raise FilesystemError(operation, key, f"Failed {operation} '{key}': no such file")
        return MemoryFile(self, key, writable=writable)

    def open_readable_file(self, path) -> MemoryFile:
        return self._open(path, False, "opening for reading")

    def open_writable_file(self, path) -> MemoryFile:
        return self._open(path, True, "opening for reading and writing")

    def create_directory(self, path) -> None:
        self._mkdirs(_key(path))

    def read_directory(self, path) -> list[DirEntry]:
        key = _key(path)
        if key not in self._dirs:
            raise FilesystemError("listing", key, f"Failed listing '{key}': no such directory")
        entries = [DirEntry(PurePosixPath(d).name, True)
                   for d in self._dirs if not _is_root(d) and _parent(d) == key]
        entries += [DirEntry(PurePosixPath(f).name, False)
                    for f in self._files if _parent(f) == key]
        entries.sort(key=lambda e: e.name)
        return entries

    def delete_directory(self, path) -> None:
        key = _key(path)
        if key not in self._dirs:
            raise FilesystemError("deleting directory", key,
                                  f"Failed deleting directory '{key}': no such directory")
        for f in [f for f in self._files if _is_under(f, key)]:
            del self._files[f]
            self.touched.add(f)
        self._dirs = {d for d in self._dirs if not _is_under(d, key)}
        if not _is_root(key):
            self._dirs.discard(key)

    def path_exists(self, path) -> bool:
        key = _key(path)
        return key in self._files or key in self._dirs

    def read_from_file(self, handle: MemoryFile) -> bytes:
        try:
            return self._files[handle.name]
        except KeyError:
            raise FilesystemError("reading", handle.name,
                                  f"Failed reading '{handle.name}': no such file") from None

    def write_to_file(self, handle: MemoryFile, data: bytes) -> None:
        if not handle.writable:
            raise FilesystemError("writing", handle.name,
                                  f"Failed writing '{handle.name}': opened read-only")
        self._files[handle.name] = bytes(data)
        self.touched.add(handle.name)
