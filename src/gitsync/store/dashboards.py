"""Dashboards: YAML definitions keyed by id within a tenant.

Dashboards have no namespace.  Every YAML file under the synced Git
directory declares one dashboard by its ``id``; where the file sits only
matters for the report.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterable

import yaml

from .._io import _data_oid
from .._types import Entry, EntryKind, LogicalKey, ScopeSelector, StoreEntry, SyncDecision, SyncWarning
from ..exceptions import InvalidDashboardError, StoreError
from ._base import UNTRACKED_REVISION, RevisionIndex, TargetStore, _ID_RE, _validate_namespace
from .flows import FLOW_SUFFIXES

logger = logging.getLogger(__name__)

DEFAULT_TENANT = "main"


def parse_dashboard(source: str, path: str | None = None) -> str:
    """Return the ``id`` of a dashboard definition.

    Raises:
        InvalidDashboardError: The text is not a YAML mapping with a valid
            ``id``.
    """
    try:
        doc = yaml.safe_load(source)
    except yaml.YAMLError as exc:
        raise InvalidDashboardError(
            f"Invalid YAML in {path or 'dashboard'}: {exc}", path=path) from exc
    if not isinstance(doc, dict):
        raise InvalidDashboardError(f"Dashboard must be a mapping: {path or 'dashboard'}", path=path)
    dashboard_id = doc.get("id")
    if not isinstance(dashboard_id, str) or not _ID_RE.match(dashboard_id):
        raise InvalidDashboardError(
            f"Missing or invalid dashboard id in {path or 'dashboard'}", path=path)
    return dashboard_id


class DashboardStore(TargetStore):
    """Dashboard definitions stored as ``<root>/<tenant>/<id>.yml``.

    The scope of a run is the tenant.  Storing different source for an
    existing dashboard increments its revision (``UPDATED``).
    """

    versioned_updates = True

    def __init__(self, root: str | os.PathLike[str]):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._revisions = RevisionIndex(self._root)

    def __repr__(self) -> str:
        return f"DashboardStore({str(self._root)!r})"

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, scope: str, key: LogicalKey) -> Path:
        if not isinstance(key, str) or not _ID_RE.match(key):
            raise ValueError(f"Invalid dashboard id: {key!r}")
        return self._root / _validate_namespace(scope) / f"{key}.yml"

    @staticmethod
    def _rev_key(scope: str, key: str) -> str:
        return f"{scope}:{key}"

    # --- Inventory ---

    def list(self, scope, include_sub_scopes=False, *, ignore_invalid=False, warnings=None):
        tenant_dir = self._root / _validate_namespace(scope)
        result: dict[LogicalKey, StoreEntry] = {}
        if not tenant_dir.is_dir():
            return result
        try:
            with os.scandir(tenant_dir) as it:
                files = sorted((d for d in it if d.is_file() and d.name.endswith(".yml")),
                               key=lambda d: d.name)
            for d in files:
                path = d.name
                data = Path(d.path).read_bytes()
                try:
                    dashboard_id = parse_dashboard(data.decode("utf-8"), path)
                except (InvalidDashboardError, UnicodeDecodeError) as exc:
                    if not ignore_invalid:
                        if isinstance(exc, InvalidDashboardError):
                            raise
                        raise InvalidDashboardError(
                            f"Dashboard is not UTF-8: {path}", path=path) from exc
                    logger.debug("skipping invalid stored dashboard %s: %s", path, exc)
                    if warnings is not None:
                        warnings.append(SyncWarning(path, f"invalid stored dashboard: {exc}"))
                    continue
                result[dashboard_id] = StoreEntry(
                    dashboard_id, path, EntryKind.FILE,
                    identity=_data_oid(data),
                    revision=self._revisions.get(self._rev_key(scope, dashboard_id))
                    or UNTRACKED_REVISION,
                )
        except OSError as exc:
            raise StoreError(f"Cannot list dashboards of {scope}: {exc}", path=scope) from exc
        return result

    # --- Primitives ---

    def get(self, scope, key):
        return self._resolve(scope, key).read_bytes()

    def exists(self, scope, key):
        return self._resolve(scope, key).is_file()

    def put(self, scope, key, data):
        full = self._resolve(scope, key)
        current = UNTRACKED_REVISION if full.is_file() else 0
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(data)
        rev = self._revisions.bump(self._rev_key(scope, key), current)
        logger.debug("put dashboard %s:%s (revision %d)", scope, key, rev)
        return rev

    def delete(self, scope, key):
        full = self._resolve(scope, key)
        if not full.is_file():
            raise FileNotFoundError(f"No such dashboard: {key}")
        full.unlink()
        self._revisions.drop(self._rev_key(scope, key))
        logger.debug("deleted dashboard %s:%s", scope, key)

    # --- Mapping between the two trees ---

    def prepare(
        self,
        entries: Iterable[Entry],
        selector: ScopeSelector,
        *,
        warnings: list[SyncWarning] | None = None,
    ) -> list[Entry]:
        """Turn scanned YAML files into dashboards keyed by id.

        Malformed files and repeated ids follow the same policy as flows:
        an error by default, a recorded warning with
        ``selector.ignore_invalid``.
        """
        units: list[Entry] = []
        seen: dict[str, str] = {}
        for entry in entries:
            if entry.is_dir or not entry.path.endswith(FLOW_SUFFIXES):
                continue
            try:
                try:
                    data = entry.read()
                    dashboard_id = parse_dashboard(data.decode("utf-8"), entry.path)
                except UnicodeDecodeError as exc:
                    raise InvalidDashboardError(
                        f"Dashboard is not UTF-8: {entry.path}", path=entry.path) from exc
                if dashboard_id in seen:
                    raise InvalidDashboardError(
                        f"Duplicate dashboard {dashboard_id} in "
                        f"{seen[dashboard_id]} and {entry.path}", path=entry.path)
            except InvalidDashboardError as exc:
                if not selector.ignore_invalid:
                    raise
                logger.debug("skipping invalid dashboard %s: %s", entry.path, exc)
                if warnings is not None:
                    warnings.append(SyncWarning(entry.path, f"invalid dashboard: {exc}"))
                continue
            seen[dashboard_id] = entry.path
            units.append(Entry(
                entry.path, EntryKind.FILE,
                identity=_data_oid(data), source=entry.source,
                key=dashboard_id, data=data,
            ))
        return units

    # --- Reporting ---

    def report_record(self, decision: SyncDecision, git_directory: str | None) -> dict[str, Any]:
        git_path = decision.source_path
        if git_path is not None and git_directory:
            git_path = f"{git_directory.strip('/')}/{git_path}"
        return {
            "gitPath": git_path,
            "syncState": str(decision.state),
            "dashboardId": decision.key,
            "revision": decision.revision,
        }


__all__ = ["DashboardStore", "parse_dashboard", "DEFAULT_TENANT"]
