from .repo import Repository
from .actions import create, update, shift, status, log, read_at
from .actions import ChangeKind, PendingChange, ShiftReport, LogEntry
from .diff import Inserted, Deleted, diff, apply, apply_all
from .history import RepositoryHistory, RepositoryChange, FileHistory, FileChange, FileUpdated, FileDeleted
from .files import Locations, TrackedFile, UntrackedFile, DeletedFile
from .filesystem import Filesystem, OSFilesystem, MemoryFilesystem
from ._exclude import ExcludeFilter
from .exceptions import KaError, FilesystemError, CorruptHistoryError, UnrelatedPathError, NotARepositoryError

__all__ = [
    "Repository",
    "create", "update", "shift", "status", "log", "read_at",
    "ChangeKind", "PendingChange", "ShiftReport", "LogEntry",
    "Inserted", "Deleted", "diff", "apply", "apply_all",
    "RepositoryHistory", "RepositoryChange", "FileHistory", "FileChange", "FileUpdated", "FileDeleted",
    "Locations", "TrackedFile", "UntrackedFile", "DeletedFile",
    "Filesystem", "OSFilesystem", "MemoryFilesystem",
    "ExcludeFilter",
    "KaError", "FilesystemError", "CorruptHistoryError", "UnrelatedPathError", "NotARepositoryError",
]
