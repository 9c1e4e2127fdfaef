"""Diff between a scanned source tree and a target store snapshot.

:func:`build_plan` classifies every logical unit exactly once and
returns a :class:`SyncPlan`.  Nothing here touches the store; the plan
is executed by :func:`gitsync.apply.apply_plan`.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from ._glob import PatternSet
from ._ignore import IgnoreFilter
from ._paths import _ancestors, _depth, _path_sort_key
from ._types import (
    Entry,
    LogicalKey,
    ScopeSelector,
    StoreEntry,
    SyncDecision,
    SyncState,
    SyncWarning,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncPlan:
    """What a reconciliation run does, in execution order.

    Writes come in source order (a directory before its contents), each
    file↔directory replacement preceded by its deletion.  Pure deletions
    follow, deepest first.
    """
    decisions: list[SyncDecision] = field(default_factory=list)
    warnings: list[SyncWarning] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return all(d.state is SyncState.UNCHANGED for d in self.decisions)

    @property
    def total(self) -> int:
        """Number of decisions that change the store."""
        return sum(1 for d in self.decisions if d.state is not SyncState.UNCHANGED)

    def counts(self) -> dict[str, int]:
        """Number of decisions per :class:`SyncState` value."""
        c = Counter(str(d.state) for d in self.decisions)
        return {str(s): c.get(str(s), 0) for s in SyncState}

    def __iter__(self):
        return iter(self.decisions)

    def __len__(self) -> int:
        return len(self.decisions)


def _is_self(key: LogicalKey, self_key: LogicalKey | None) -> bool:
    """True if *key* is the self key or a directory holding it."""
    if self_key is None:
        return False
    if key == self_key:
        return True
    return isinstance(key, str) and isinstance(self_key, str) and self_key.startswith(key + "/")


def _under(path: str, dirs: set[str]) -> bool:
    return any(a in dirs for a in _ancestors(path))


def build_plan(
    units: Iterable[Entry],
    target: dict[LogicalKey, StoreEntry],
    selector: ScopeSelector,
    *,
    versioned_updates: bool = False,
    ignore: IgnoreFilter | None = None,
    patterns: PatternSet | None = None,
    protected: Iterable[str] = (),
) -> SyncPlan:
    """Compare source *units* with the *target* snapshot.

    Args:
        units: Source entries keyed like the store (see
            :meth:`TargetStore.prepare`), directories before contents.
        target: The store's snapshot for the selector's scope.
        selector: Run configuration (delete flag, self key, scope depth).
        versioned_updates: Classify a content change as ``UPDATED`` rather
            than ``OVERWRITTEN``.
        ignore: Store entries it matches are never deleted.
        patterns: Store entries it does not select are never deleted.
        protected: Git-side paths whose store entries must be kept
            (e.g. skipped invalid definitions).

    Returns:
        A :class:`SyncPlan`; revisions are the ones expected after apply.
    """
    if ignore is None:
        ignore = IgnoreFilter()
    if patterns is None:
        patterns = PatternSet()
    protected = set(protected)
    changed_state = SyncState.UPDATED if versioned_updates else SyncState.OVERWRITTEN

    plan = SyncPlan()
    seen: set[LogicalKey] = set()
    blocked: set[str] = set()     # source dirs whose contents cannot be written
    replaced: set[str] = set()    # target dirs removed by a replacement

    for unit in units:
        key = unit.logical_key
        if _under(unit.path, blocked):
            plan.warnings.append(SyncWarning(
                unit.path, f"parent is a file in the store, not synced: {unit.path}"))
            continue
        seen.add(key)
        current = target.get(key)

        if current is not None and current.kind is not unit.kind:
            reason = _replace_refusal(current, target, selector, ignore, patterns, protected)
            if reason is not None:
                msg = f"{current.kind} in the store where Git has a {unit.kind}; {reason}"
                plan.warnings.append(SyncWarning(unit.path, msg))
                plan.decisions.append(SyncDecision(
                    SyncState.UNCHANGED, current.kind, key,
                    source_path=unit.path, target_path=current.path,
                    revision=current.revision, warning=msg,
                ))
                if unit.is_dir:
                    blocked.add(unit.path)
                continue
            plan.decisions.append(SyncDecision(
                SyncState.DELETED, current.kind, key,
                target_path=current.path, replaces=True,
            ))
            if current.is_dir:
                replaced.add(current.path)
            current = None

        if current is None:
            plan.decisions.append(SyncDecision(
                SyncState.ADDED, unit.kind, key,
                source_path=unit.path, revision=None if unit.is_dir else 1, entry=unit,
            ))
        elif unit.is_dir or unit.identity == current.identity:
            plan.decisions.append(SyncDecision(
                SyncState.UNCHANGED, unit.kind, key,
                source_path=unit.path, target_path=current.path,
                revision=current.revision,
            ))
        else:
            plan.decisions.append(SyncDecision(
                changed_state, unit.kind, key,
                source_path=unit.path, target_path=current.path,
                revision=(current.revision or 0) + 1, entry=unit,
            ))

    # Reported even when deletion is off; the applier only acts on them
    # when it is on.
    plan.decisions.extend(_deletions(
        target, seen, replaced, selector, ignore, patterns, protected))

    for w in plan.warnings:
        logger.debug("warning %s: %s", w.path, w.message)
    return plan


def _must_keep(entry, selector, ignore, patterns, protected) -> bool:
    """True if the store *entry* may not be removed by this run."""
    return bool(
        _is_self(entry.key, selector.self_key)
        or entry.path in protected
        or ignore.is_ignored(entry.path, is_dir=entry.is_dir)
        or (patterns and not patterns.selects(entry.path))
        # a shallow listing cannot see what a directory holds
        or (entry.is_dir and selector.max_depth is not None)
    )


def _replace_refusal(current, target, selector, ignore, patterns, protected) -> str | None:
    """Why *current* cannot be deleted to make room for a source unit, if so.

    Removing a directory takes its whole subtree with it, so every entry
    below it must be one this run would delete too.
    """
    if not selector.delete_enabled or _is_self(current.key, selector.self_key):
        return "enable delete to replace it"
    if not current.is_dir:
        return None
    if selector.max_depth is not None:
        return "a top-level run does not replace directories"
    if _must_keep(current, selector, ignore, patterns, protected):
        return "this run keeps it"
    prefix = current.path + "/"
    for entry in target.values():
        if entry.path.startswith(prefix) and _must_keep(entry, selector, ignore, patterns, protected):
            return f"it holds {entry.path}, which this run keeps"
    return None


def _deletions(target, seen, replaced, selector, ignore, patterns, protected):
    """Store entries absent from the source that may be removed, deepest first."""
    candidates: list[StoreEntry] = []
    kept: list[StoreEntry] = []
    for key, entry in target.items():
        if key in seen or _under(entry.path, replaced):
            continue
        if _must_keep(entry, selector, ignore, patterns, protected):
            logger.debug("kept %s", entry.path)
            kept.append(entry)
            continue
        candidates.append(entry)

    # A directory goes only if nothing below it stays.
    keep_dirs = {a for e in kept for a in _ancestors(e.path)}
    doomed = [e for e in candidates if not (e.is_dir and e.path in keep_dirs)]
    doomed.sort(key=lambda e: (-_depth(e.path), _path_sort_key(e.path)))
    return [
        SyncDecision(SyncState.DELETED, e.kind, e.key, target_path=e.path)
        for e in doomed
    ]


__all__ = ["SyncPlan", "build_plan"]
