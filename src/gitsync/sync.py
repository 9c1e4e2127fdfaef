"""Reconciliation runs: scan → index → diff → apply → report.

:func:`reconcile` makes a store scope match a source directory.
:func:`sync_namespace_files`, :func:`sync_flows` and :func:`sync_dashboards`
run it on a directory inside a checked-out working copy; :func:`sync_flow`
imports one flow file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from ._glob import PatternSet
from ._ignore import IgnoreFilter
from ._paths import _normalize_path
from ._types import Entry, EntryKind, ScopeSelector, SyncDecision, SyncState, SyncWarning
from .apply import Sink, apply_plan
from .git import resolve_git_directory
from .plan import build_plan
from .report import build_records, write_report
from .scan import scan
from .store import DashboardStore, FlowStore, NamespaceFileStore, TargetStore

logger = logging.getLogger(__name__)

DEFAULT_FILES_DIRECTORY = "_files"
DEFAULT_FLOWS_DIRECTORY = "_flows"
DEFAULT_DASHBOARDS_DIRECTORY = "_dashboards"


@dataclass
class SyncResult:
    """Outcome of one reconciliation run.

    Attributes:
        decisions: Every decision, in the order they were applied.
        applied: Number of store mutations performed.
        warnings: Non-fatal conditions met during the run.
        report_uri: ``file://`` URI of the diff report.
        dry_run: Whether the run was a preview.
    """
    decisions: list[SyncDecision] = field(default_factory=list)
    applied: int = 0
    warnings: list[SyncWarning] = field(default_factory=list)
    report_uri: str | None = None
    dry_run: bool = False

    @property
    def in_sync(self) -> bool:
        """True if the store already matched the source."""
        return all(d.state is SyncState.UNCHANGED for d in self.decisions)

    @property
    def counts(self) -> dict[str, int]:
        result = {str(s): 0 for s in SyncState}
        for d in self.decisions:
            result[str(d.state)] += 1
        return result

    def by_state(self, state: SyncState) -> list[SyncDecision]:
        return [d for d in self.decisions if d.state is state]


def reconcile(
    source_root: str | os.PathLike[str],
    store: TargetStore,
    selector: ScopeSelector,
    *,
    sink: Sink | None = None,
    report_dir: str | os.PathLike[str] | None = None,
    git_directory: str | None = None,
) -> SyncResult:
    """Make *store*'s scope match the tree at *source_root*.

    Args:
        source_root: Directory to scan; overrides ``selector.source_root``.
        store: Target store to reconcile.
        selector: Run configuration.
        sink: Receives the ``+``/``-``/``~`` lines (defaults to the
            ``gitsync.apply`` logger).
        report_dir: Where to write the diff report.
        git_directory: Prefix for ``gitPath`` values in the report.

    Returns:
        A :class:`SyncResult`.

    Raises:
        ScanError: The source tree could not be read (nothing applied).
        StoreError: The store could not be listed (nothing applied).
        InvalidDefinitionError: A malformed flow or dashboard and
            ``ignore_invalid`` is off.
        ApplyError: A mutation failed; earlier ones stay applied and no
            report is written.
    """
    root = Path(source_root)
    if root != selector.source_root:
        selector = replace(selector, source_root=root)
    scope = selector.target_scope
    ignore = IgnoreFilter.from_root(root, ignore_file=selector.ignore_file)
    patterns = PatternSet(selector.name_patterns)
    warnings: list[SyncWarning] = []

    # Both snapshots are complete before anything is compared.
    entries = list(scan(root, ignore, patterns, max_depth=selector.max_depth))
    units = store.prepare(entries, selector, warnings=warnings)
    target = store.list(scope, selector.include_sub_scopes,
                        ignore_invalid=selector.ignore_invalid, warnings=warnings)
    logger.debug("%s: %d source units, %d store entries", scope, len(units), len(target))

    plan = build_plan(
        units, target, selector,
        versioned_updates=store.versioned_updates,
        ignore=ignore, patterns=patterns,
        protected=(w.path for w in warnings),
    )
    warnings.extend(plan.warnings)
    for w in warnings:
        logger.warning("%s: %s", w.path, w.message)

    applied = apply_plan(plan, store, selector, sink=sink)

    records = build_records(plan.decisions, store, git_directory)
    uri = write_report(records, report_dir)
    logger.debug("report written to %s", uri)
    return SyncResult(
        decisions=plan.decisions, applied=applied, warnings=warnings,
        report_uri=uri, dry_run=selector.dry_run,
    )


def _run_on_git_directory(worktree, store, selector, git_directory, branch, sink, report_dir):
    source = resolve_git_directory(worktree, git_directory, branch)
    return reconcile(source, store, selector, sink=sink,
                     report_dir=report_dir, git_directory=git_directory)


def sync_namespace_files(
    worktree: str | os.PathLike[str],
    store: NamespaceFileStore,
    selector: ScopeSelector,
    *,
    git_directory: str = DEFAULT_FILES_DIRECTORY,
    branch: str | None = None,
    sink: Sink | None = None,
    report_dir: str | os.PathLike[str] | None = None,
) -> SyncResult:
    """Sync ``<worktree>/<git_directory>`` into the namespace ``selector.target_scope``."""
    return _run_on_git_directory(worktree, store, selector, git_directory, branch, sink, report_dir)


def sync_flows(
    worktree: str | os.PathLike[str],
    store: FlowStore,
    selector: ScopeSelector,
    *,
    git_directory: str = DEFAULT_FLOWS_DIRECTORY,
    branch: str | None = None,
    sink: Sink | None = None,
    report_dir: str | os.PathLike[str] | None = None,
) -> SyncResult:
    """Sync the flows under ``<worktree>/<git_directory>``.

    Subdirectories map to child namespaces of ``selector.target_scope``
    when ``selector.include_sub_scopes`` is set.
    """
    return _run_on_git_directory(worktree, store, selector, git_directory, branch, sink, report_dir)


def sync_dashboards(
    worktree: str | os.PathLike[str],
    store: DashboardStore,
    selector: ScopeSelector,
    *,
    git_directory: str = DEFAULT_DASHBOARDS_DIRECTORY,
    branch: str | None = None,
    sink: Sink | None = None,
    report_dir: str | os.PathLike[str] | None = None,
) -> SyncResult:
    """Sync the dashboards under ``<worktree>/<git_directory>``.

    ``selector.target_scope`` names the tenant.  Subdirectories are read
    when ``selector.include_sub_scopes`` is set; they do not change where
    a dashboard is stored.
    """
    return _run_on_git_directory(worktree, store, selector, git_directory, branch, sink, report_dir)


def sync_flow(
    worktree: str | os.PathLike[str],
    store: FlowStore,
    flow_path: str,
    namespace: str,
    *,
    dry_run: bool = False,
    sink: Sink | None = None,
) -> SyncDecision:
    """Import the single flow at ``<worktree>/<flow_path>`` into *namespace*.

    The flow's ``namespace:`` line is rewritten to *namespace* whatever
    directory it sits in.  Nothing is ever deleted.

    Returns:
        The applied (or, with *dry_run*, previewed) decision; its ``key``
        is ``(namespace, id)`` and ``revision`` the flow's revision.

    Raises:
        FileNotFoundError: *flow_path* is not a file in *worktree*.
        InvalidFlowError: The file is not a valid flow definition.
        ApplyError: The store write failed.
    """
    root = Path(worktree)
    path = _normalize_path(flow_path)
    source = root / path
    if not source.is_file():
        raise FileNotFoundError(f"Flow file not found at path: {flow_path}")
    selector = ScopeSelector(root, namespace, dry_run=dry_run)
    unit = store.flow_unit(Entry(path, EntryKind.FILE, source=source), namespace)

    current = store.list(namespace, ignore_invalid=True).get(unit.key)
    target = {unit.key: current} if current is not None else {}
    plan = build_plan([unit], target, selector, versioned_updates=store.versioned_updates)
    apply_plan(plan, store, selector, sink=sink)
    (decision,) = plan.decisions
    logger.debug("flow %s.%s: %s", unit.key[0], unit.key[1], decision.state)
    return decision


__all__ = [
    "SyncResult",
    "reconcile",
    "sync_namespace_files",
    "sync_flows",
    "sync_dashboards",
    "sync_flow",
    "DEFAULT_FILES_DIRECTORY",
    "DEFAULT_FLOWS_DIRECTORY",
    "DEFAULT_DASHBOARDS_DIRECTORY",
]
