"""Checked-out working copies to reconcile from."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dulwich import porcelain
from dulwich.errors import GitProtocolError, NotGitRepository

from ._paths import _is_root_path
from .exceptions import CloneError, GitDirectoryError

logger = logging.getLogger(__name__)


def clone_branch(
    url: str,
    branch: str | None,
    dest: str | os.PathLike[str],
    *,
    depth: int | None = None,
) -> Path:
    """Clone *branch* of *url* into *dest* and return the working tree.

    *branch* ``None`` checks out the remote's default branch.

    Raises:
        CloneError: The repository or branch could not be fetched.
    """
    dest = Path(dest)
    logger.debug("cloning %s (branch %s) into %s", url, branch or "default", dest)
    try:
        with porcelain.clone(
            url, str(dest), checkout=True, depth=depth,
            branch=branch.encode() if branch else None,
        ):
            pass
    except (GitProtocolError, NotGitRepository, KeyError, ValueError, OSError) as exc:
        raise CloneError(f"Cannot clone {url} (branch {branch or 'default'}): {exc}",
                         path=url) from exc
    return dest


def resolve_git_directory(
    worktree: str | os.PathLike[str],
    git_directory: str | None,
    branch: str | None = None,
) -> Path:
    """Return the directory inside *worktree* to scan.

    An empty *git_directory* means the whole working tree.

    Raises:
        GitDirectoryError: The directory is missing or is a file.
    """
    root = Path(worktree)
    if not git_directory or _is_root_path(git_directory):
        return root
    path = root / git_directory.strip("/")
    if not path.exists():
        raise GitDirectoryError(
            f"The directory '{git_directory}' was not found in the git repository. "
            f"Verify if the path exists in the specified branch '{branch}'.",
            path=git_directory,
        )
    if not path.is_dir():
        raise GitDirectoryError(
            f"The path '{git_directory}' exists but is not a directory.",
            path=git_directory,
        )
    return path


__all__ = ["clone_branch", "resolve_git_directory"]
