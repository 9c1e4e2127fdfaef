"""Data structures shared by the scanner, the stores and the planner."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

#: Logical identity of a unit: a relative path for file stores, a
#: ``(namespace, id)`` pair for structured stores.
LogicalKey = Union[str, Tuple[str, str]]


class EntryKind(str, Enum):
    """Kind of entry: ``FILE`` or ``DIRECTORY``."""
    FILE = "file"
    DIRECTORY = "directory"

    def __str__(self) -> str:          # noqa: D105
        return self.value


class SyncState(str, Enum):
    """Classification of one logical unit after comparing both trees.

    Members: ``ADDED``, ``UPDATED``, ``OVERWRITTEN``, ``UNCHANGED``,
    ``DELETED``.
    """
    ADDED = "ADDED"
    UPDATED = "UPDATED"
    OVERWRITTEN = "OVERWRITTEN"
    UNCHANGED = "UNCHANGED"
    DELETED = "DELETED"

    def __str__(self) -> str:          # noqa: D105
        return self.value

    @property
    def symbol(self) -> str:
        """``+`` for additions, ``-`` for deletions, ``~`` otherwise."""
        if self is SyncState.ADDED:
            return "+"
        if self is SyncState.DELETED:
            return "-"
        return "~"

    @property
    def writes(self) -> bool:
        """True for states that put source content into the store."""
        return self in (SyncState.ADDED, SyncState.UPDATED, SyncState.OVERWRITTEN)


@dataclass(frozen=True)
class Entry:
    """A unit found in the source tree.

    Attributes:
        path: Relative path under the scanned root (forward slashes).
        kind: :class:`EntryKind` of the entry.
        identity: Git blob SHA-1 of the content (files only).
        source: Absolute path of the file on disk.
        key: Logical key in the target store; defaults to *path*.
        data: Content to store instead of the file on disk (set when a
            store rewrites content, e.g. a flow's namespace).
    """
    path: str
    kind: EntryKind
    identity: str | None = None
    source: Path | None = field(default=None, compare=False)
    key: Optional[LogicalKey] = None
    data: bytes | None = field(default=None, repr=False, compare=False)

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def logical_key(self) -> LogicalKey:
        return self.path if self.key is None else self.key

    def read(self) -> bytes:
        """Return the content to store for this entry."""
        if self.data is not None:
            return self.data
        if self.source is None:
            raise IsADirectoryError(self.path)
        return self.source.read_bytes()


@dataclass(frozen=True)
class StoreEntry:
    """A unit found in the target store.

    Attributes:
        key: Logical key (path or ``(namespace, id)``).
        path: Path the unit maps to on the Git side, relative to the
            scanned root.
        kind: :class:`EntryKind` of the entry.
        identity: Git blob SHA-1 of the stored content (files only).
        revision: Current revision number, or ``None`` if unversioned.
    """
    key: LogicalKey
    path: str
    kind: EntryKind
    identity: str | None = None
    revision: int | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass
class SyncDecision:
    """The outcome for one logical unit of a run.

    Attributes:
        state: :class:`SyncState` of the unit.
        kind: :class:`EntryKind` the decision acts on.
        key: Logical key in the target store.
        source_path: Path in the Git tree, ``None`` for a pure deletion.
        target_path: Path the unit had in the store before the run,
            ``None`` for a pure addition.
        revision: Store revision after the decision is applied
            (``None`` for deletions and unversioned entries).
        warning: Set when the unit was left alone because of a
            structural conflict.
        replaces: True for the deletion half of a file↔directory
            replacement; it is applied right before the addition.
        entry: Source entry holding the content to write.
    """
    state: SyncState
    kind: EntryKind
    key: LogicalKey
    source_path: str | None = None
    target_path: str | None = None
    revision: int | None = None
    warning: str | None = None
    replaces: bool = False
    entry: Entry | None = field(default=None, repr=False, compare=False)

    @property
    def path(self) -> str:
        """Source path when there is one, otherwise the store path."""
        return self.source_path if self.source_path is not None else self.target_path or ""

    @property
    def display_path(self) -> str:
        """Path as shown in log lines (directories end with ``/``)."""
        p = self.path
        return p + "/" if self.kind is EntryKind.DIRECTORY else p


@dataclass(frozen=True)
class ScopeSelector:
    """Configuration of one reconciliation run, resolved before it starts.

    Attributes:
        source_root: Directory of the checked-out tree to scan.
        target_scope: Namespace identifying the part of the store in play.
        include_sub_scopes: Descend into subdirectories / child namespaces.
        delete_enabled: Remove store entries that are absent from Git.
        dry_run: Compute and report everything, mutate nothing.
        self_key: Logical key that must never be deleted.
        name_patterns: Glob allow-list for source paths and deletions.
        ignore_invalid: Skip malformed flow definitions instead of failing.
        ignore_file: Reserved name of the ignore file at *source_root*.
    """
    source_root: Path
    target_scope: str
    include_sub_scopes: bool = False
    delete_enabled: bool = False
    dry_run: bool = False
    self_key: Optional[LogicalKey] = None
    name_patterns: tuple[str, ...] = ()
    ignore_invalid: bool = False
    ignore_file: str = ".kestraignore"

    def __post_init__(self):
        if not self.target_scope or not self.target_scope.strip():
            raise ValueError("target_scope must not be empty")
        object.__setattr__(self, "source_root", Path(self.source_root))
        patterns = self.name_patterns
        if isinstance(patterns, str):
            patterns = (patterns,)
        object.__setattr__(self, "name_patterns", tuple(patterns or ()))
        if isinstance(self.self_key, list):
            object.__setattr__(self, "self_key", tuple(self.self_key))

    @property
    def max_depth(self) -> int | None:
        """Scan depth: ``1`` when sub-scopes are excluded, else unlimited."""
        return None if self.include_sub_scopes else 1


@dataclass
class SyncWarning:
    """A non-fatal condition met during a run.

    Attributes:
        path: The path (relative to the scanned root) it concerns.
        message: Human-readable description.
    """
    path: str
    message: str
