"""Repository: a handle binding a root directory to its history."""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from . import actions
from .files import Locations
from .filesystem import OSFilesystem

if TYPE_CHECKING:
    from ._exclude import ExcludeFilter
    from .actions import LogEntry, PendingChange, ShiftReport
    from .filesystem import Filesystem
    from .history import RepositoryChange


def _now() -> int:
    return int(time.time())


class Repository:
    """A directory tree versioned by ka.

    Holds everything an action needs (root, filesystem, exclude filter and
    clock); nothing is shared between instances. The metadata lives in
    ``<root>/.ka``.

    Args:
        root: Repository root (the working tree).
        fs: Filesystem to go through; defaults to the real disk.
        exclude: Filter for working-tree paths that are never recorded.
        clock: Returns the timestamp stored with each recorded change.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        fs: Filesystem | None = None,
        exclude: ExcludeFilter | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self.locations = Locations(Path(root))
        self.fs = fs if fs is not None else OSFilesystem()
        self.exclude = exclude
        self._clock = clock or _now

    def __repr__(self) -> str:
        return f"Repository({str(self.locations.root)!r})"

    @property
    def root(self) -> Path:
        return self.locations.root

    @property
    def exists(self) -> bool:
        """True if the root has been initialized with :meth:`create`."""
        return self.fs.path_exists(self.locations.index_path)

    @property
    def cursor(self) -> int:
        """The version the working tree currently shows."""
        return actions._load_index(self.fs, self.locations).cursor

    @property
    def head(self) -> int:
        """Number of recorded changes (the newest cursor value)."""
        return len(actions._load_index(self.fs, self.locations).changes)

    # -- actions -------------------------------------------------------------

    def create(self, timestamp: int | None = None) -> RepositoryChange | None:
        """Reset the metadata store and snapshot the current working tree."""
        if timestamp is None:
            timestamp = self._clock()
        return actions.create(self.fs, self.locations, timestamp, exclude=self.exclude)

    def update(self, timestamp: int | None = None) -> RepositoryChange | None:
        """Record working-tree changes; None when there was nothing to record."""
        if timestamp is None:
            timestamp = self._clock()
        return actions.update(self.fs, self.locations, timestamp, exclude=self.exclude)

    def shift(self, new_cursor: int) -> ShiftReport:
        """Rewind or fast-forward the working tree to *new_cursor*."""
        return actions.shift(self.fs, self.locations, new_cursor)

    # -- queries -------------------------------------------------------------

    def status(self) -> list[PendingChange]:
        return actions.status(self.fs, self.locations, exclude=self.exclude)

    def log(self) -> list[LogEntry]:
        return actions.log(self.fs, self.locations)

    def read(self, path: str, cursor: int | None = None) -> bytes:
        """Content of *path* at *cursor* (default: current), without touching disk."""
        return actions.read_at(self.fs, self.locations, path, cursor)
