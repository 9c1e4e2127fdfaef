"""Exceptions for gitsync."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._types import SyncDecision


class GitSyncError(Exception):
    """Base class for every error raised by a reconciliation run.

    *path* names the offending entry (relative path, logical key, or
    directory) when one is known.
    """

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(message)
        self.path = path


class ScanError(GitSyncError):
    """The source tree could not be traversed or read.

    Raised before any mutation, so a run that fails here is safe to retry.
    """


class StoreError(GitSyncError):
    """The target store could not be listed or read."""


class InvalidDefinitionError(GitSyncError):
    """A YAML definition synced as a structured resource is malformed."""


class InvalidFlowError(InvalidDefinitionError):
    """A flow definition is malformed (bad YAML, missing ``id``/``namespace``)."""


class InvalidDashboardError(InvalidDefinitionError):
    """A dashboard definition is malformed (bad YAML, missing ``id``)."""


class GitDirectoryError(GitSyncError, ValueError):
    """The configured directory does not exist in the checkout or is a file."""


class ApplyError(GitSyncError):
    """A decision failed while being applied to the target store.

    The run stops at the first failure.  Decisions before it stay applied;
    *applied* counts them and *decision* is the one that failed.
    """

    def __init__(self, message: str, *, path: str | None = None,
                 decision: SyncDecision | None = None, applied: int = 0):
        super().__init__(message, path=path)
        self.decision = decision
        self.applied = applied


class CloneError(GitSyncError):
    """The branch could not be cloned into a working copy."""
