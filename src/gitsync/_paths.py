"""Path normalization shared by the scanner, the stores and the planner."""

from __future__ import annotations

import os


def _is_root_path(path: str | os.PathLike[str]) -> bool:
    """Return True if path represents the root (empty or only slashes)."""
    p = os.fspath(path)
    if os.name == "nt":
        p = p.replace("\\", "/")
    return p.strip("/") == ""


def _normalize_path(path: str | os.PathLike[str]) -> str:
    """Normalize a path: strip leading/trailing slashes, reject bad segments."""
    path = os.fspath(path)
    if os.name == "nt":
        path = path.replace("\\", "/")
    path = path.strip("/")
    if not path:
        raise ValueError("Path must not be empty")
    segments = path.split("/")
    for seg in segments:
        if not seg:
            raise ValueError(f"Empty segment in path: {path!r}")
        if seg in (".", ".."):
            raise ValueError(f"Invalid path segment: {seg!r}")
    return "/".join(segments)


def _parent(path: str) -> str:
    """Return the parent of a normalized path (``""`` for top-level entries)."""
    return path.rsplit("/", 1)[0] if "/" in path else ""


def _ancestors(path: str) -> list[str]:
    """Return every proper ancestor of *path*, shallowest first.

    ``"a/b/c"`` → ``["a", "a/b"]``.
    """
    parts = path.split("/")
    return ["/".join(parts[:i]) for i in range(1, len(parts))]


def _depth(path: str) -> int:
    """Number of segments in a normalized path (``"a/b"`` → 2)."""
    return path.count("/") + 1


def _path_sort_key(path: str) -> tuple[str, ...]:
    """Sort key that orders a directory before everything under it.

    Plain string ordering puts ``"a-b"`` between ``"a"`` and ``"a/x"``;
    comparing segment tuples keeps each subtree contiguous.
    """
    return tuple(path.split("/"))
