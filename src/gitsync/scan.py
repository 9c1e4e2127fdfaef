"""Source tree scanning.

:func:`scan` walks a checked-out directory depth-first and yields one
:class:`~gitsync._types.Entry` per file and directory, directories before
their contents, siblings in name order.  Every call starts a fresh walk.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from ._glob import PatternSet
from ._ignore import IgnoreFilter
from ._io import _file_oid
from ._types import Entry, EntryKind
from .exceptions import ScanError

logger = logging.getLogger(__name__)

GIT_DIR_NAME = ".git"


def scan(
    root: str | os.PathLike[str],
    ignore: IgnoreFilter | None = None,
    patterns: PatternSet | None = None,
    *,
    max_depth: int | None = None,
) -> Iterator[Entry]:
    """Yield the entries under *root*.

    Args:
        root: Directory to scan.
        ignore: Filter for ignored paths; defaults to the ignore file at *root*.
        patterns: Allow-list of name patterns.  When active, only files
            selected by a pattern are yielded, along with the directories
            that lead to them.
        max_depth: Maximum number of path segments (``1`` = top level only).

    Raises:
        ScanError: *root* is not a directory, a directory cannot be listed,
            a file cannot be read, or a symbolic link is found.
    """
    base = Path(root)
    if not base.is_dir():
        raise ScanError(f"Not a directory: {base}", path=str(base))
    if ignore is None:
        ignore = IgnoreFilter.from_root(base)
    if patterns is None:
        patterns = PatternSet()
    pending: list[Entry] = []
    yield from _walk(base, "", 1, ignore, patterns, max_depth, pending)


def _walk(
    base: Path,
    rel_dir: str,
    depth: int,
    ignore: IgnoreFilter,
    patterns: PatternSet,
    max_depth: int | None,
    pending: list[Entry],
) -> Iterator[Entry]:
    abs_dir = base / rel_dir if rel_dir else base
    try:
        with os.scandir(abs_dir) as it:
            dirents = sorted(it, key=lambda d: d.name)
    except OSError as exc:
        raise ScanError(f"Cannot list directory {rel_dir or '/'}: {exc}",
                        path=rel_dir or "/") from exc

    for d in dirents:
        if d.name == GIT_DIR_NAME:
            continue
        rel = f"{rel_dir}/{d.name}" if rel_dir else d.name
        if d.is_symlink():
            raise ScanError(f"Symbolic links are not supported: {rel}", path=rel)

        if d.is_dir(follow_symlinks=False):
            if ignore.is_ignored(rel, is_dir=True):
                logger.debug("ignored %s/", rel)
                continue
            entry = Entry(rel, EntryKind.DIRECTORY)
            if patterns.selects(rel):
                yield from _flush(pending)
                yield entry
            else:
                # Emitted only once a selected file shows up below it
                pending.append(entry)
            if max_depth is None or depth < max_depth:
                yield from _walk(base, rel, depth + 1, ignore, patterns, max_depth, pending)
            if pending and pending[-1] is entry:
                pending.pop()
            continue

        if ignore.is_ignored(rel):
            logger.debug("ignored %s", rel)
            continue
        if not patterns.selects(rel):
            continue
        full = Path(d.path)
        try:
            identity = _file_oid(full)
        except OSError as exc:
            raise ScanError(f"Cannot read {rel}: {exc}", path=rel) from exc
        yield from _flush(pending)
        yield Entry(rel, EntryKind.FILE, identity=identity, source=full)


def _flush(pending: list[Entry]) -> Iterator[Entry]:
    """Yield and clear directories held back by the pattern filter."""
    while pending:
        yield pending.pop(0)
