"""Shared dotfile-aware glob matching.

Name patterns (``--pattern``) select which source paths take part in a
run and which target entries may be deleted.  Syntax:

* ``*`` matches within one path segment, ``?`` matches one character,
  ``[...]`` is a character class;
* ``**`` matches zero or more whole directory levels, skipping
  directories whose names start with ``.``;
* a pattern without ``/`` matches the basename at any depth, a pattern
  containing ``/`` matches the full relative path (a leading ``/``
  anchors it and is otherwise ignored);
* ``*`` and ``?`` do not match a leading ``.`` unless the pattern segment
  itself starts with ``.`` (Unix/rsync convention).
"""

from __future__ import annotations

from fnmatch import fnmatch as _fnmatch
from functools import lru_cache
from typing import Iterable

from ._paths import _ancestors


def _glob_match(pattern: str, name: str) -> bool:
    """Match *name* against a glob *pattern* segment.

    ``*`` and ``?`` do not match a leading ``.`` unless the pattern itself
    starts with ``.`` (Unix/rsync convention).
    """
    if not pattern.startswith(".") and name.startswith("."):
        return False
    return _fnmatch(name, pattern)


@lru_cache(maxsize=256)
def _split_pattern(pattern: str) -> tuple[bool, tuple[str, ...]]:
    """Return ``(anchored, segments)`` for *pattern*.

    Raises :exc:`ValueError` for an empty pattern.
    """
    raw = pattern.strip()
    if not raw or raw.strip("/") == "":
        raise ValueError("Pattern must not be empty")
    anchored = "/" in raw.rstrip("/")
    return anchored, tuple(raw.strip("/").split("/"))


def _match_segments(segments: tuple[str, ...], parts: list[str]) -> bool:
    """Walk pattern *segments* against path *parts*, one level at a time."""
    if not segments:
        return not parts
    seg, rest = segments[0], segments[1:]
    if seg == "**":
        if not rest:
            # ** alone at end: one or more non-dot levels
            return bool(parts) and not any(p.startswith(".") for p in parts)
        # Zero dirs, then one+ non-dot dirs
        if _match_segments(rest, parts):
            return True
        for i, name in enumerate(parts[:-1]):
            if name.startswith("."):
                return False
            if _match_segments(rest, parts[i + 1:]):
                return True
        return False
    if not parts or not _glob_match(seg, parts[0]):
        return False
    return _match_segments(rest, parts[1:])


def glob_match(pattern: str, path: str) -> bool:
    """Return True if the relative *path* matches *pattern*.

    Raises :exc:`ValueError` for an empty pattern.
    """
    anchored, segments = _split_pattern(pattern)
    parts = path.strip("/").split("/")
    if not anchored and segments != ("**",):
        return _glob_match(segments[0], parts[-1])
    return _match_segments(segments, parts)


class PatternSet:
    """An allow-list of name patterns.

    An empty set is inactive and matches everything.
    """

    def __init__(self, patterns: Iterable[str] | None = None):
        self._patterns = tuple(p for p in (patterns or ()) if p.strip())
        for p in self._patterns:
            _split_pattern(p)

    def __repr__(self) -> str:
        return f"PatternSet({list(self._patterns)!r})"

    def __bool__(self) -> bool:
        return bool(self._patterns)

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def matches(self, path: str) -> bool:
        """Return True if *path* matches at least one pattern (or the set is empty)."""
        if not self._patterns:
            return True
        return any(glob_match(p, path) for p in self._patterns)

    def selects(self, path: str) -> bool:
        """Return True if *path* or one of its ancestor directories matches.

        A matched directory brings everything below it into the run.
        """
        if not self._patterns:
            return True
        if self.matches(path):
            return True
        return any(self.matches(anc) for anc in _ancestors(path))
