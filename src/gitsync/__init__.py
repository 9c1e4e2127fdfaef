"""gitsync: reconcile a store with a Git working tree.

A run scans a directory of a checked-out branch, lists the matching
scope of a target store, classifies every unit as ``ADDED``,
``UPDATED``, ``OVERWRITTEN``, ``UNCHANGED`` or ``DELETED``, applies the
result (or only previews it) and writes a newline-delimited JSON report.
"""

import logging

from ._glob import PatternSet
from ._ignore import IgnoreFilter
from ._types import Entry, EntryKind, ScopeSelector, StoreEntry, SyncDecision, SyncState, SyncWarning
from .apply import apply_plan
from .exceptions import (
    ApplyError,
    CloneError,
    GitDirectoryError,
    GitSyncError,
    InvalidDashboardError,
    InvalidDefinitionError,
    InvalidFlowError,
    ScanError,
    StoreError,
)
from .git import clone_branch, resolve_git_directory
from .plan import SyncPlan, build_plan
from .report import read_report, write_report
from .scan import scan
from .store import DashboardStore, FlowStore, NamespaceFileStore, TargetStore
from .sync import (
    SyncResult,
    reconcile,
    sync_dashboards,
    sync_flow,
    sync_flows,
    sync_namespace_files,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "reconcile", "sync_namespace_files", "sync_flows", "sync_dashboards", "sync_flow",
    "SyncResult",
    "scan", "build_plan", "apply_plan", "SyncPlan",
    "write_report", "read_report",
    "clone_branch", "resolve_git_directory",
    "TargetStore", "NamespaceFileStore", "FlowStore", "DashboardStore",
    "ScopeSelector", "Entry", "EntryKind", "StoreEntry",
    "SyncDecision", "SyncState", "SyncWarning",
    "IgnoreFilter", "PatternSet",
    "GitSyncError", "ScanError", "StoreError",
    "InvalidDefinitionError", "InvalidFlowError", "InvalidDashboardError",
    "GitDirectoryError", "ApplyError", "CloneError",
]
