"""Append-only history logs and their on-disk encoding.

Two logs exist per repository:

* :class:`RepositoryHistory`: the index: one :class:`RepositoryChange` per
  successful update plus the cursor (the version the working tree shows).
* :class:`FileHistory`: one per ever-tracked path: the :class:`FileChange`
  records from which that file's content is rebuilt at any cursor.

Records are stored as JSON with externally tagged unions (``"Deleted"``,
``{"Updated": [...]}``, ``{"Inserted": {...}}``) and base64 byte content.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .diff import ContentChange, Deleted, Inserted, apply
from .exceptions import CorruptHistoryError

if TYPE_CHECKING:
    from .filesystem import Filesystem

__all__ = [
    "FORMAT_VERSION",
    "RepositoryHistory",
    "RepositoryChange",
    "FileHistory",
    "FileChange",
    "FileUpdated",
    "FileDeleted",
]

FORMAT_VERSION = 1


# ---------------------------------------------------------------------------
# File history
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FileUpdated:
    """The file's content changed; *changes* is the edit script."""

    changes: tuple[ContentChange, ...] = ()


@dataclass(frozen=True, slots=True)
class FileDeleted:
    """The file disappeared from the working tree."""


FileChangeVariant = FileUpdated | FileDeleted


@dataclass(frozen=True, slots=True)
class FileChange:
    """One entry of a file's log.

    Attributes:
        change_index: Repository cursor value the change was recorded at.
        variant: :class:`FileUpdated` or :class:`FileDeleted`.
    """

    change_index: int
    variant: FileChangeVariant


@dataclass
class FileHistory:
    """Per-file append-only change log."""

    changes: list[FileChange] = field(default_factory=list)

    def add_change(self, change: FileChange) -> None:
        """Append *change* to the log.

        ``change_index`` ordering is not validated here; the actions that
        record changes always use ``cursor + 1``.
        """
        self.changes.append(change)

    def _visible(self, cursor: int):
        return (c for c in self.changes if c.change_index <= cursor)

    def reconstruct(self, cursor: int) -> bytes:
        """Rebuild the file's content as of *cursor*.

        Folds every change with ``change_index <= cursor`` in log order: an
        update applies its edit script, a deletion empties the buffer.
        Returns ``b""`` when nothing is visible yet.
        """
        buffer = bytearray()
        for change in self._visible(cursor):
            variant = change.variant
            if isinstance(variant, FileDeleted):
                buffer.clear()
            elif isinstance(variant, FileUpdated):
                try:
                    for content_change in variant.changes:
                        apply(content_change, buffer)
                except ValueError as exc:
                    raise CorruptHistoryError(
                        f"Change {change.change_index} does not apply: {exc}"
                    ) from exc
            else:
                raise TypeError(f"Unknown file change variant: {type(variant).__name__}")
        return bytes(buffer)

    def last_change(self, cursor: int) -> FileChange | None:
        """The last change (in log order) visible at *cursor*, if any."""
        last = None
        for last in self._visible(cursor):
            pass
        return last

    def is_deleted(self, cursor: int) -> bool:
        """True if the last change visible at *cursor* is a deletion."""
        last = self.last_change(cursor)
        return last is not None and isinstance(last.variant, FileDeleted)

    # -- encoding ----------------------------------------------------------

    def encode(self) -> bytes:
        return _dump({
            "version": FORMAT_VERSION,
            "changes": [_encode_file_change(c) for c in self.changes],
        })

    @classmethod
    def decode(cls, buffer: bytes, *, name: str = "file history") -> FileHistory:
        doc = _load(buffer, name)
        try:
            return cls([_decode_file_change(c) for c in _list(doc, "changes")])
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptHistoryError(f"Corrupt {name}: {exc}") from exc

    @classmethod
    def read_from(cls, fs: Filesystem, handle, *, name: str = "file history") -> FileHistory:
        return cls.decode(fs.read_from_file(handle), name=name)

    def write_to(self, fs: Filesystem, handle) -> None:
        fs.write_to_file(handle, self.encode())


# ---------------------------------------------------------------------------
# Repository history
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RepositoryChange:
    """One recorded update: the files it touched and when."""

    affected_files: frozenset[str]
    timestamp: int


@dataclass
class RepositoryHistory:
    """The repository index: the change log plus the cursor.

    The cursor is only a read head. Updates append and advance it by one;
    shifts move it anywhere, including past the end of the log, without
    rewriting the log.
    """

    cursor: int = 0
    changes: list[RepositoryChange] = field(default_factory=list)

    def add_change(self, change: RepositoryChange) -> None:
        """Append *change*; the cursor is left alone."""
        self.changes.append(change)

    def files_between(self, a: int, b: int) -> set[str]:
        """Union of ``affected_files`` over log positions ``[min, max)``.

        These are the only files whose content can differ between cursors
        *a* and *b*. Positions past the end of the log contribute nothing.
        """
        lo, hi = min(a, b), max(a, b)
        files: set[str] = set()
        for change in self.changes[lo:hi]:
            files.update(change.affected_files)
        return files

    # -- encoding ----------------------------------------------------------

    def encode(self) -> bytes:
        return _dump({
            "version": FORMAT_VERSION,
            "cursor": self.cursor,
            "changes": [
                {"affected_files": sorted(c.affected_files), "timestamp": c.timestamp}
                for c in self.changes
            ],
        })

    @classmethod
    def decode(cls, buffer: bytes, *, name: str = "repository index") -> RepositoryHistory:
        doc = _load(buffer, name)
        try:
            changes = []
            for raw in _list(doc, "changes"):
                files = _list(raw, "affected_files")
                if not all(isinstance(f, str) for f in files):
                    raise TypeError("affected_files must be strings")
                changes.append(RepositoryChange(frozenset(files), _uint(raw, "timestamp")))
            return cls(_uint(doc, "cursor"), changes)
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptHistoryError(f"Corrupt {name}: {exc}") from exc

    @classmethod
    def read_from(cls, fs: Filesystem, handle, *, name: str = "repository index") -> RepositoryHistory:
        return cls.decode(fs.read_from_file(handle), name=name)

    def write_to(self, fs: Filesystem, handle) -> None:
        fs.write_to_file(handle, self.encode())


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------

def _dump(doc: dict) -> bytes:
    return json.dumps(doc, separators=(",", ":")).encode()


def _load(buffer: bytes, name: str) -> dict:
    try:
        doc = json.loads(buffer)
    except (ValueError, UnicodeDecodeError) as exc:
        raise CorruptHistoryError(f"Corrupt {name}: {exc}") from exc
    if not isinstance(doc, dict):
        raise CorruptHistoryError(f"Corrupt {name}: expected an object")
    version = doc.get("version", FORMAT_VERSION)
    if not isinstance(version, int) or version > FORMAT_VERSION:
        raise CorruptHistoryError(f"Unsupported {name} version: {version!r}")
    return doc


def _uint(obj: Any, key: str) -> int:
    value = obj[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{key} must be a non-negative integer, got {value!r}")
    return value


def _list(obj: Any, key: str) -> list:
    value = obj[key]
    if not isinstance(value, list):
        raise TypeError(f"{key} must be a list")
    return value


def _tagged(value: Any) -> tuple[str, Any]:
    """Split an externally tagged union value into ``(tag, payload)``."""
    if isinstance(value, str):
        return value, None
    if isinstance(value, dict) and len(value) == 1:
        (tag, payload), = value.items()
        return tag, payload
    raise ValueError(f"Malformed tagged value: {value!r}")


def _encode_content_change(change: ContentChange) -> dict:
    if isinstance(change, Inserted):
        return {"Inserted": {
            "at": change.at,
            "new_content": base64.b64encode(change.new_content).decode("ascii"),
        }}
    if isinstance(change, Deleted):
        return {"Deleted": {"at": change.at, "upto": change.upto}}
    raise TypeError(f"Unknown content change: {type(change).__name__}")


def _decode_content_change(value: Any) -> ContentChange:
    tag, payload = _tagged(value)
    if tag == "Inserted":
        raw = payload["new_content"]
        if not isinstance(raw, str):
            raise TypeError("new_content must be a base64 string")
        try:
            content = base64.b64decode(raw, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 content: {exc}") from exc
        return Inserted(_uint(payload, "at"), content)
    if tag == "Deleted":
        return Deleted(_uint(payload, "at"), _uint(payload, "upto"))
    raise ValueError(f"Unknown content change tag: {tag!r}")


def _encode_file_change(change: FileChange) -> dict:
    variant = change.variant
    if isinstance(variant, FileUpdated):
        encoded: Any = {"Updated": [_encode_content_change(c) for c in variant.changes]}
    elif isinstance(variant, FileDeleted):
        encoded = "Deleted"
    else:
        raise TypeError(f"Unknown file change variant: {type(variant).__name__}")
    return {"change_index": change.change_index, "variant": encoded}


def _decode_file_change(value: Any) -> FileChange:
    index = _uint(value, "change_index")
    tag, payload = _tagged(value["variant"])
    if tag == "Updated":
        if not isinstance(payload, list):
            raise TypeError("Updated payload must be a list")
        variant: FileChangeVariant = FileUpdated(tuple(_decode_content_change(c) for c in payload))
    elif tag == "Deleted" and payload is None:
        variant = FileDeleted()
    else:
        raise ValueError(f"Unknown file change tag: {tag!r}")
    return FileChange(index, variant)
