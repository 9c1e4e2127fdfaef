"""Ignore-file support for the source tree scan.

A single reserved ignore file (``.kestraignore`` by default) at the root
of the scanned directory lists patterns to leave out of a run.  Pattern
syntax follows gitignore rules (implemented by
``dulwich.ignore.IgnoreFilter``): ``#`` comments, ``!`` negation, a
trailing ``/`` for directories, ``*``, ``?`` and ``**`` globs.

Unlike git, only the root-level file is read.  Ignore files in
subdirectories are ordinary content and are synced like any other file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from dulwich.ignore import IgnoreFilter as _DulwichIgnoreFilter

from ._paths import _ancestors
from .exceptions import ScanError

IGNORE_FILE_NAME = ".kestraignore"


class IgnoreFilter:
    """Decides whether a relative path is excluded from a run.

    The same filter is applied to source entries during the scan and to
    target entries before they become deletion candidates, so content
    that is ignored on the Git side is never removed from the store.
    """

    def __init__(
        self,
        patterns: Sequence[str] | None = None,
        *,
        ignore_file: str = IGNORE_FILE_NAME,
    ) -> None:
        lines: list[bytes] = []
        for p in patterns or ():
            line = p.strip()
            if line and not line.startswith("#"):
                lines.append(line.encode("utf-8"))
        self._filter: _DulwichIgnoreFilter | None = (
            _DulwichIgnoreFilter(lines) if lines else None
        )
        self._ignore_file = ignore_file
        self._patterns = [ln.decode("utf-8") for ln in lines]

    @classmethod
    def from_root(cls, root: str | Path, *, ignore_file: str = IGNORE_FILE_NAME) -> IgnoreFilter:
        """Load the ignore file found directly under *root*.

        A missing file is not an error: the filter then only hides the
        reserved file name itself.
        """
        path = Path(root) / ignore_file
        if not path.is_file():
            return cls(ignore_file=ignore_file)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise ScanError(f"Cannot read {ignore_file}: {exc}", path=ignore_file) from exc
        return cls(lines, ignore_file=ignore_file)

    # ------------------------------------------------------------------
    @property
    def active(self) -> bool:
        """True if any pattern was loaded."""
        return self._filter is not None

    @property
    def ignore_file(self) -> str:
        return self._ignore_file

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    # ------------------------------------------------------------------
    def is_ignored(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Return True if *rel_path* or any of its ancestor directories is ignored.

        *rel_path* is a normalized POSIX path relative to the scanned root.
        """
        if rel_path == self._ignore_file and not is_dir:
            return True
        if self._filter is None:
            return False

        # An ignored directory hides everything below it; negations
        # cannot re-include a path whose parent is excluded.
        for anc in _ancestors(rel_path):
            if self._filter.is_ignored(anc + "/") is True:
                return True

        check = rel_path + "/" if is_dir else rel_path
        return self._filter.is_ignored(check) is True
