"""Target store interface and shared helpers."""

from __future__ import annotations

import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable

from .._types import Entry, LogicalKey, ScopeSelector, StoreEntry, SyncDecision, SyncWarning

STATE_DIR = ".gitsync"
REVISIONS_FILE = "revisions.json"

#: Revision listed for stored content that has no index record.
UNTRACKED_REVISION = 1

_NAMESPACE_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")
_ID_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")


def _validate_namespace(namespace: str) -> str:
    """Reject namespaces that cannot name a store directory."""
    if not _NAMESPACE_RE.match(namespace or "") or ".." in namespace or namespace.endswith("."):
        raise ValueError(f"Invalid namespace: {namespace!r}")
    return namespace


def _in_scope(namespace: str, scope: str, include_sub_scopes: bool) -> bool:
    """True if *namespace* is *scope*, or a dotted descendant when allowed."""
    if namespace == scope:
        return True
    return include_sub_scopes and namespace.startswith(scope + ".")


class TargetStore(ABC):
    """A hierarchical store a checked-out tree is reconciled into.

    Implementations differ in what a logical key is (a path inside a
    namespace, or a ``(namespace, id)`` pair) and in how a content change
    is versioned.  Every mutating primitive takes the run's scope and
    refuses keys outside it.
    """

    #: ``True`` when a content change keeps the unit's identity and bumps
    #: its version (``UPDATED``); ``False`` for whole-object replacement
    #: (``OVERWRITTEN``).
    versioned_updates: bool = False

    # --- Inventory ---

    @abstractmethod
    def list(
        self,
        scope: str,
        include_sub_scopes: bool = False,
        *,
        ignore_invalid: bool = False,
        warnings: list[SyncWarning] | None = None,
    ) -> dict[LogicalKey, StoreEntry]:
        """Return a complete snapshot of the entries in *scope*."""

    # --- Primitives ---

    @abstractmethod
    def get(self, scope: str, key: LogicalKey) -> bytes:
        """Return stored content.  Raises :exc:`FileNotFoundError` if missing."""

    @abstractmethod
    def put(self, scope: str, key: LogicalKey, data: bytes) -> int:
        """Store *data* under *key*; return the new revision."""

    @abstractmethod
    def delete(self, scope: str, key: LogicalKey) -> None:
        """Remove *key*.  Raises :exc:`FileNotFoundError` if missing."""

    @abstractmethod
    def exists(self, scope: str, key: LogicalKey) -> bool:
        """Return True if *key* is present."""

    def create_directory(self, scope: str, key: LogicalKey) -> None:
        """Create an empty directory entry."""
        raise NotImplementedError(f"{type(self).__name__} has no directories")

    # --- Mapping between the two trees ---

    def prepare(
        self,
        entries: Iterable[Entry],
        selector: ScopeSelector,
        *,
        warnings: list[SyncWarning] | None = None,
    ) -> list[Entry]:
        """Turn scanned source entries into units keyed like this store."""
        return list(entries)

    @abstractmethod
    def report_record(self, decision: SyncDecision, git_directory: str | None) -> dict[str, Any]:
        """Return the diff-report record for *decision*."""


class RevisionIndex:
    """Persistent ``{key: revision}`` map kept next to the stored content.

    The file is rewritten atomically after every change.
    """

    def __init__(self, root: Path):
        self._path = root / STATE_DIR / REVISIONS_FILE
        self._revisions: dict[str, int] = {}
        if self._path.is_file():
            with open(self._path, encoding="utf-8") as f:
                self._revisions = {k: int(v) for k, v in json.load(f).items()}

    def __repr__(self) -> str:
        return f"RevisionIndex({str(self._path)!r})"

    def get(self, key: str) -> int | None:
        return self._revisions.get(key)

    def bump(self, key: str, current: int = 0) -> int:
        """Increment and return the revision of *key* (``1`` for a new key).

        *current* is the revision the entry is known to have; content
        written outside the store has no record yet but is listed as
        revision 1, and the next write must move past it.
        """
        rev = max(self._revisions.get(key, 0), current) + 1
        self._revisions[key] = rev
        self._save()
        return rev

    def drop(self, key: str) -> None:
        if self._revisions.pop(key, None) is not None:
            self._save()

    def drop_prefix(self, prefix: str) -> None:
        """Forget every key starting with *prefix*."""
        doomed = [k for k in self._revisions if k.startswith(prefix)]
        for k in doomed:
            del self._revisions[k]
        if doomed:
            self._save()

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._revisions, f, indent=1, sort_keys=True)
            os.replace(tmp, self._path)
        except BaseException:
            os.unlink(tmp)
            raise
