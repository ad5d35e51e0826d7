"""Create, update and shift: the actions that keep the working tree and
the stored histories consistent.

Every action takes the :class:`~ka.filesystem.Filesystem` and the
:class:`~ka.files.Locations` explicitly; nothing is cached between calls.
Errors propagate unchanged and abort the action. Already written resources
are not rolled back: an update writes every file history first and the
index last, a shift writes the index first and the working files after.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from .diff import Inserted, diff
from .exceptions import NotARepositoryError
from .files import (
    DeletedFile,
    FileState,
    Locations,
    TrackedFile,
    UntrackedFile,
    classify_from_working,
    repository_files,
    working_path_of,
)
from .history import (
    FileChange,
    FileDeleted,
    FileHistory,
    FileUpdated,
    RepositoryChange,
    RepositoryHistory,
)

if TYPE_CHECKING:
    from ._exclude import ExcludeFilter
    from .filesystem import Filesystem

__all__ = [
    "ChangeKind",
    "PendingChange",
    "ShiftReport",
    "LogEntry",
    "create",
    "update",
    "shift",
    "status",
    "log",
    "read_at",
]


class ChangeKind(str, Enum):
    """Kind of pending change: ``ADD``, ``MODIFY``, or ``DELETE``."""
    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class PendingChange:
    """A file the next update would record."""
    path: str
    kind: ChangeKind


@dataclass
class ShiftReport:
    """What a shift did to the working tree.

    Attributes:
        old_cursor: Cursor before the shift.
        new_cursor: Cursor after the shift.
        written: Paths overwritten or recreated with reconstructed content.
        deleted: Paths removed from the working tree.
    """
    old_cursor: int
    new_cursor: int
    written: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def touched(self) -> list[str]:
        return sorted(self.written + self.deleted)


@dataclass(frozen=True)
class LogEntry:
    """One recorded update, as shown by :func:`log`.

    *change_index* is the cursor value that shows this change (its log
    position plus one).
    """
    change_index: int
    timestamp: int
    files: tuple[str, ...]
    current: bool


@dataclass
class _PlannedChange:
    path: str
    kind: ChangeKind
    history_path: Path
    history: FileHistory
    new_history: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_index(fs: Filesystem, locations: Locations) -> None:
    if not fs.path_exists(locations.index_path):
        raise NotARepositoryError(
            f"Not a ka repository: {str(locations.root)!r} (run 'ka create' first)")


def _read_bytes(fs: Filesystem, path: Path) -> bytes:
    with fs.open_readable_file(path) as handle:
        return fs.read_from_file(handle)


def _load_index(fs: Filesystem, locations: Locations) -> RepositoryHistory:
    _require_index(fs, locations)
    with fs.open_readable_file(locations.index_path) as handle:
        return RepositoryHistory.read_from(fs, handle)


def _load_file_history(fs: Filesystem, history_path: Path) -> FileHistory:
    with fs.open_readable_file(history_path) as handle:
        return FileHistory.read_from(fs, handle, name=f"file history '{history_path}'")


def _plan_file(
    fs: Filesystem, locations: Locations, cursor: int, state: FileState,
) -> _PlannedChange | None:
    """Decide what one update records for *state*; None means nothing."""
    index = cursor + 1
    path = locations.relative(working_path_of(locations, state))

    if isinstance(state, DeletedFile):
        history = _load_file_history(fs, state.history_path)
        if history.is_deleted(cursor):
            return None
        history.add_change(FileChange(index, FileDeleted()))
        return _PlannedChange(path, ChangeKind.DELETE, state.history_path, history, False)

    if isinstance(state, UntrackedFile):
        content = _read_bytes(fs, state.working_path)
        history = FileHistory()
        history.add_change(FileChange(index, FileUpdated((Inserted(0, content),))))
        history_path = locations.history_from_working(state.working_path)
        return _PlannedChange(path, ChangeKind.ADD, history_path, history, True)

    if isinstance(state, TrackedFile):
        history = _load_file_history(fs, state.history_path)
        new_content = _read_bytes(fs, state.working_path)
        changes = diff(history.reconstruct(cursor), new_content)
        if not changes:
            return None
        kind = ChangeKind.ADD if history.is_deleted(cursor) else ChangeKind.MODIFY
        history.add_change(FileChange(index, FileUpdated(tuple(changes))))
        return _PlannedChange(path, kind, state.history_path, history, False)

    raise TypeError(f"Unknown file state: {type(state).__name__}")


def _write_file_history(fs: Filesystem, planned: _PlannedChange) -> None:
    if planned.new_history:
        handle = fs.create_file(planned.history_path)
    else:
        handle = fs.open_writable_file(planned.history_path)
    with handle:
        planned.history.write_to(fs, handle)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def create(
    fs: Filesystem,
    locations: Locations,
    timestamp: int,
    *,
    exclude: ExcludeFilter | None = None,
) -> RepositoryChange | None:
    """(Re)initialize the metadata store and record a first snapshot.

    Any existing ``.ka`` directory is deleted first. Returns what the
    initial :func:`update` recorded.
    """
    if fs.path_exists(locations.meta_path):
        fs.delete_directory(locations.meta_path)
    fs.create_directory(locations.meta_path)
    fs.create_directory(locations.files_path)

    with fs.create_file(locations.index_path) as handle:
        RepositoryHistory().write_to(fs, handle)

    return update(fs, locations, timestamp, exclude=exclude)


def update(
    fs: Filesystem,
    locations: Locations,
    timestamp: int,
    *,
    exclude: ExcludeFilter | None = None,
) -> RepositoryChange | None:
    """Record every working-tree change since the cursor as one change.

    Returns the appended :class:`RepositoryChange` and advances the cursor
    by one, or returns None and writes nothing when no file changed.
    """
    _require_index(fs, locations)
    with fs.open_writable_file(locations.index_path) as index_file:
        history = RepositoryHistory.read_from(fs, index_file)
        cursor = history.cursor

        affected: set[str] = set()
        for state in repository_files(fs, locations, exclude):
            planned = _plan_file(fs, locations, cursor, state)
            if planned is None:
                continue
            _write_file_history(fs, planned)
            affected.add(planned.path)

        if not affected:
            return None

        change = RepositoryChange(frozenset(affected), timestamp)
        history.add_change(change)
        history.cursor += 1
        history.write_to(fs, index_file)
        return change


def shift(fs: Filesystem, locations: Locations, new_cursor: int) -> ShiftReport:
    """Move the cursor to *new_cursor* and rewrite the working tree to match.

    Only files recorded in the changes between the old and the new cursor
    are touched. The cursor is persisted before any working file is
    written. Files without a history are never touched.
    """
    if new_cursor < 0:
        raise ValueError(f"cursor must be >= 0, got {new_cursor}")

    _require_index(fs, locations)
    with fs.open_writable_file(locations.index_path) as index_file:
        history = RepositoryHistory.read_from(fs, index_file)
        report = ShiftReport(history.cursor, new_cursor)

        history.cursor = new_cursor
        history.write_to(fs, index_file)

        for path in sorted(history.files_between(report.old_cursor, new_cursor)):
            working_path = locations.working_path(path)
            state = classify_from_working(fs, locations, working_path)
            if isinstance(state, UntrackedFile):
                continue

            file_history = _load_file_history(fs, state.history_path)
            if file_history.is_deleted(new_cursor):
                if fs.path_exists(working_path):
                    fs.delete_file(working_path)
                    report.deleted.append(path)
                continue

            content = file_history.reconstruct(new_cursor)
            with fs.create_file(working_path) as handle:
                fs.write_to_file(handle, content)
            report.written.append(path)

    return report


# ---------------------------------------------------------------------------
# Read-only queries
# ---------------------------------------------------------------------------

def status(
    fs: Filesystem,
    locations: Locations,
    *,
    exclude: ExcludeFilter | None = None,
) -> list[PendingChange]:
    """List what :func:`update` would record right now, sorted by path."""
    cursor = _load_index(fs, locations).cursor
    pending = []
    for state in repository_files(fs, locations, exclude):
        planned = _plan_file(fs, locations, cursor, state)
        if planned is not None:
            pending.append(PendingChange(planned.path, planned.kind))
    pending.sort(key=lambda p: p.path)
    return pending


def log(fs: Filesystem, locations: Locations) -> list[LogEntry]:
    """Return every recorded change in log order."""
    history = _load_index(fs, locations)
    return [
        LogEntry(
            change_index=position + 1,
            timestamp=change.timestamp,
            files=tuple(sorted(change.affected_files)),
            current=position + 1 == history.cursor,
        )
        for position, change in enumerate(history.changes)
    ]


def read_at(
    fs: Filesystem,
    locations: Locations,
    path: str,
    cursor: int | None = None,
) -> bytes:
    """Reconstruct *path* as of *cursor* (default: the current cursor).

    The working tree is not touched. Raises FileNotFoundError if the file
    has no history or does not exist at that cursor.
    """
    history = _load_index(fs, locations)
    if cursor is None:
        cursor = history.cursor
    elif cursor < 0:
        raise ValueError(f"cursor must be >= 0, got {cursor}")

    history_path = locations.history_from_working(locations.working_path(path))
    if not fs.path_exists(history_path):
        raise FileNotFoundError(path)
    file_history = _load_file_history(fs, history_path)
    if file_history.last_change(cursor) is None or file_history.is_deleted(cursor):
        raise FileNotFoundError(f"{path} (at cursor {cursor})")
    return file_history.reconstruct(cursor)
