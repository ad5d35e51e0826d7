"""Exclude-filter support for the working-tree walk.

Combines ``--exclude`` patterns with ``.kaignore`` files found while
walking into a single predicate used by
:func:`~ka.files.repository_files`.

Pattern syntax follows gitignore rules (implemented by
``dulwich.ignore.IgnoreFilter``).
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING, Sequence

from dulwich.ignore import IgnoreFilter, read_ignore_patterns

if TYPE_CHECKING:
    from .filesystem import Filesystem

IGNORE_FILE = ".kaignore"


class ExcludeFilter:
    """Combines --exclude patterns and per-directory .kaignore files."""

    def __init__(
        self,
        *,
        patterns: Sequence[str] | None = None,
        ignore_file: bool = True,
    ) -> None:
        base_lines = [p.encode("utf-8") for p in patterns or ()]
        self._base: IgnoreFilter | None = (
            IgnoreFilter(base_lines) if base_lines else None
        )
        self._ignore_file = ignore_file
        # {rel_dir: IgnoreFilter | None}, reloaded each time the walk enters a directory
        self._dir_filters: dict[str, IgnoreFilter | None] = {}

    def __repr__(self) -> str:
        return f"ExcludeFilter(patterns={self._base is not None}, ignore_file={self._ignore_file})"

    # ------------------------------------------------------------------
    @property
    def active(self) -> bool:
        """True if any filtering is configured."""
        return self._base is not None or self._ignore_file

    # ------------------------------------------------------------------
    def enter_directory(self, fs: Filesystem, abs_dir, rel_dir: str) -> None:
        """Load ``.kaignore`` from *abs_dir* through *fs* if ignore files are on."""
        if not self._ignore_file:
            return
        path = abs_dir / IGNORE_FILE
        if fs.path_exists(path):
            with fs.open_readable_file(path) as handle:
                data = fs.read_from_file(handle)
            lines = list(read_ignore_patterns(io.BytesIO(data)))
            self._dir_filters[rel_dir] = IgnoreFilter(lines) if lines else None
        else:
            self._dir_filters[rel_dir] = None

    # ------------------------------------------------------------------
    def is_excluded(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Check base patterns plus the loaded .kaignore hierarchy.

        *rel_path* is relative to the repository root with forward slashes.
        ``enter_directory`` must have been called for every ancestor.
        """
        check = rel_path + "/" if is_dir else rel_path

        if self._base is not None and self._base.is_ignored(check) is True:
            return True

        if not self._ignore_file:
            return False

        # Deepest .kaignore first; each one checks the path relative to its
        # own directory and the first that matches decides.
        parts = rel_path.split("/")
        for depth in reversed(range(len(parts))):
            filt = self._dir_filters.get("/".join(parts[:depth]))
            if filt is None:
                continue
            sub = "/".join(parts[depth:])
            result = filt.is_ignored(sub + "/" if is_dir else sub)
            if result is not None:
                return result

        return False
