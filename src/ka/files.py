"""Repository locations and file classification.

A path is classified by correlating the working tree with the metadata
file store (``.ka/files``), whose layout mirrors the working tree:

* :class:`UntrackedFile`: working file without a history.
* :class:`TrackedFile`: working file with a history.
* :class:`DeletedFile`: history without a working file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Callable, Iterator

from .exceptions import UnrelatedPathError

if TYPE_CHECKING:
    from ._exclude import ExcludeFilter
    from .filesystem import Filesystem

__all__ = [
    "METADATA_DIR",
    "Locations",
    "TrackedFile",
    "UntrackedFile",
    "DeletedFile",
    "FileState",
    "classify_from_working",
    "classify_from_history",
    "repository_files",
]

METADATA_DIR = ".ka"
FILES_DIR = "files"
INDEX_NAME = "index"


@dataclass(frozen=True)
class Locations:
    """Where everything lives for a repository rooted at *root*."""

    root: Path

    def __post_init__(self):
        object.__setattr__(self, "root", Path(self.root))

    @property
    def meta_path(self) -> Path:
        return self.root / METADATA_DIR

    @property
    def files_path(self) -> Path:
        return self.meta_path / FILES_DIR

    @property
    def index_path(self) -> Path:
        return self.meta_path / INDEX_NAME

    def history_from_working(self, working_path) -> Path:
        """Map a working-tree path to its history resource."""
        return self.files_path / self._relative_to(working_path, self.root)

    def working_from_history(self, history_path) -> Path:
        """Map a history resource back to its working-tree path."""
        return self.root / self._relative_to(history_path, self.files_path)

    def relative(self, working_path) -> str:
        """Working-tree path as stored in the index (POSIX, root-relative)."""
        return self._relative_to(working_path, self.root).as_posix()

    def working_path(self, rel_path: str) -> Path:
        """Resolve a root-relative path taken from the index or the user."""
        rel = PurePosixPath(str(rel_path).replace("\\", "/"))
        if rel.is_absolute() or ".." in rel.parts or not rel.parts:
            raise UnrelatedPathError(f"Not a path inside the repository: {rel_path!r}")
        if rel.parts[0] == METADATA_DIR:
            raise UnrelatedPathError(f"Path is inside the metadata store: {rel_path!r}")
        return self.root.joinpath(*rel.parts)

    @staticmethod
    def _relative_to(path, base: Path) -> Path:
        try:
            return Path(path).relative_to(base)
        except ValueError:
            raise UnrelatedPathError(f"{str(path)!r} is not inside {str(base)!r}") from None


# ---------------------------------------------------------------------------
# File states
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TrackedFile:
    working_path: Path
    history_path: Path


@dataclass(frozen=True, slots=True)
class UntrackedFile:
    working_path: Path


@dataclass(frozen=True, slots=True)
class DeletedFile:
    history_path: Path


FileState = TrackedFile | UntrackedFile | DeletedFile


def classify_from_working(fs: Filesystem, locations: Locations, working_path) -> FileState:
    """Untracked if *working_path* has no history resource, else Tracked."""
    working_path = Path(working_path)
    history_path = locations.history_from_working(working_path)
    if not fs.path_exists(history_path):
        return UntrackedFile(working_path)
    return TrackedFile(working_path, history_path)


def classify_from_history(fs: Filesystem, locations: Locations, history_path) -> FileState:
    """Deleted if *history_path* has no working file, else Tracked."""
    history_path = Path(history_path)
    working_path = locations.working_from_history(history_path)
    if not fs.path_exists(working_path):
        return DeletedFile(history_path)
    return TrackedFile(working_path, history_path)


def working_path_of(locations: Locations, state: FileState) -> Path:
    if isinstance(state, DeletedFile):
        return locations.working_from_history(state.history_path)
    return state.working_path


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------

def _walk(
    fs: Filesystem,
    abs_dir: Path,
    rel_dir: str,
    skip: Callable[[Path, str, bool], bool],
    on_enter: Callable[[Path, str], None] | None = None,
) -> Iterator[Path]:
    """Yield every file below *abs_dir*, depth first, in name order."""
    if on_enter is not None:
        on_enter(abs_dir, rel_dir)
    for entry in fs.read_directory(abs_dir):
        abs_path = abs_dir / entry.name
        rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
        if skip(abs_path, rel_path, entry.is_directory):
            continue
        if entry.is_directory:
            yield from _walk(fs, abs_path, rel_path, skip, on_enter)
        else:
            yield abs_path


def repository_files(
    fs: Filesystem,
    locations: Locations,
    exclude: ExcludeFilter | None = None,
) -> list[FileState]:
    """Classify every file of the repository.

    Untracked and Tracked files come from the working-tree walk (which skips
    the metadata directory and excluded paths); Deleted files come from the
    file-store walk, whose Tracked results are duplicates and are dropped.
    Any path that cannot be mapped aborts the whole enumeration.
    """
    meta_path = locations.meta_path
    if exclude is not None and not exclude.active:
        exclude = None

    def skip_working(abs_path: Path, rel_path: str, is_dir: bool) -> bool:
        if abs_path == meta_path:
            return True
        return exclude is not None and exclude.is_excluded(rel_path, is_dir=is_dir)

    on_enter = None
    if exclude is not None:
        def on_enter(abs_dir: Path, rel_dir: str) -> None:
            exclude.enter_directory(fs, abs_dir, rel_dir)

    states: list[FileState] = [
        classify_from_working(fs, locations, path)
        for path in _walk(fs, locations.root, "", skip_working, on_enter)
    ]
    for path in _walk(fs, locations.files_path, "", lambda *_: False):
        state = classify_from_history(fs, locations, path)
        if isinstance(state, DeletedFile):
            states.append(state)
    return states
