"""Target stores a checked-out tree can be reconciled into."""

from ._base import RevisionIndex, TargetStore
from .dashboards import DashboardStore
from .flows import FlowStore
from .namespace_files import NamespaceFileStore

__all__ = ["TargetStore", "RevisionIndex", "NamespaceFileStore", "FlowStore", "DashboardStore"]
