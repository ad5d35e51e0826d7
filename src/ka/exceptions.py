"""Exceptions for ka."""


class KaError(Exception):
    """Base class for every error raised by ka."""


class FilesystemError(KaError):
    """Raised when a filesystem operation fails.

    The message names the operation and the path; the underlying
    :class:`OSError` is available as ``__cause__``.
    """

    def __init__(self, operation: str, path, message: str | None = None):
        self.operation = operation
        self.path = str(path)
        super().__init__(message or f"Failed {operation} '{self.path}'")


class CorruptHistoryError(KaError):
    """Raised when the index or a file history cannot be decoded.

    Corruption is never repaired automatically.
    """


class UnrelatedPathError(KaError, ValueError):
    """Raised when a path cannot be expressed relative to the repository."""


class NotARepositoryError(KaError):
    """Raised when a root has no ``.ka/index``.

    Run ``ka create`` first.
    """
