"""Flows: YAML definitions keyed by ``(namespace, id)``.

A Git directory holding flows maps onto a namespace hierarchy: files at
the top level belong to the target namespace, files in ``marketing/crm/``
to ``<target>.marketing.crm``.  The ``namespace:`` line of each definition
is rewritten to match before it is stored.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Iterable

import yaml

from .._io import _data_oid
from .._paths import _parent
from .._types import Entry, EntryKind, LogicalKey, ScopeSelector, StoreEntry, SyncDecision, SyncWarning
from ..exceptions import InvalidFlowError, StoreError
from ._base import (
    STATE_DIR,
    UNTRACKED_REVISION,
    RevisionIndex,
    TargetStore,
    _ID_RE,
    _in_scope,
    _validate_namespace,
)

logger = logging.getLogger(__name__)

FLOW_SUFFIXES = (".yml", ".yaml")

_NAMESPACE_LINE_RE = re.compile(r"^namespace: (.*)$", re.MULTILINE)


def parse_flow(source: str, path: str | None = None) -> tuple[str, str]:
    """Return ``(namespace, id)`` of a flow definition.

    Raises:
        InvalidFlowError: The text is not YAML, not a mapping, or lacks a
            valid ``id`` or ``namespace``.
    """
    try:
        doc = yaml.safe_load(source)
    except yaml.YAMLError as exc:
        raise InvalidFlowError(f"Invalid YAML in {path or 'flow'}: {exc}", path=path) from exc
    if not isinstance(doc, dict):
        raise InvalidFlowError(f"Flow must be a mapping: {path or 'flow'}", path=path)
    flow_id = doc.get("id")
    namespace = doc.get("namespace")
    if not isinstance(flow_id, str) or not _ID_RE.match(flow_id):
        raise InvalidFlowError(f"Missing or invalid flow id in {path or 'flow'}", path=path)
    if not isinstance(namespace, str) or not namespace:
        raise InvalidFlowError(f"Missing or invalid namespace in {path or 'flow'}", path=path)
    return namespace, flow_id


def replace_namespace(source: str, namespace: str) -> str:
    """Rewrite the first top-level ``namespace:`` line of *source*."""
    return _NAMESPACE_LINE_RE.sub(f"namespace: {namespace}", source, count=1).rstrip()


def namespace_for(scope: str, path: str) -> str:
    """Namespace of a flow file at *path* under a directory synced to *scope*.

    ``namespace_for("prod", "marketing/crm/f.yml")`` → ``"prod.marketing.crm"``.
    """
    parent = _parent(path)
    return f"{scope}.{parent.replace('/', '.')}" if parent else scope


def flow_path(scope: str, namespace: str, flow_id: str) -> str:
    """Git-side path of flow ``(namespace, flow_id)`` relative to the synced directory."""
    if namespace == scope:
        return f"{flow_id}.yml"
    suffix = namespace[len(scope) + 1:].replace(".", "/")
    return f"{suffix}/{flow_id}.yml"


class FlowStore(TargetStore):
    """Flow definitions stored as ``<root>/<namespace>/<id>.yml``.

    Storing different source for an existing flow keeps its identity and
    increments its revision (``UPDATED``).  Directories only shape the
    namespace hierarchy and never appear as entries.
    """

    versioned_updates = True

    def __init__(self, root: str | os.PathLike[str]):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._revisions = RevisionIndex(self._root)

    def __repr__(self) -> str:
        return f"FlowStore({str(self._root)!r})"

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, scope: str, key: LogicalKey) -> Path:
        if not isinstance(key, tuple) or len(key) != 2:
            raise TypeError(f"Flow keys are (namespace, id) pairs, got {key!r}")
        namespace, flow_id = key
        _validate_namespace(namespace)
        if not _in_scope(namespace, scope, True):
            raise ValueError(f"Namespace {namespace!r} is outside {scope!r}")
        if not _ID_RE.match(flow_id):
            raise ValueError(f"Invalid flow id: {flow_id!r}")
        return self._root / namespace / f"{flow_id}.yml"

    @staticmethod
    def _rev_key(key: tuple[str, str]) -> str:
        return f"{key[0]}:{key[1]}"

    # --- Inventory ---

    def list(self, scope, include_sub_scopes=False, *, ignore_invalid=False, warnings=None):
        _validate_namespace(scope)
        result: dict[LogicalKey, StoreEntry] = {}
        try:
            namespaces = sorted(
                d.name for d in os.scandir(self._root)
                if d.is_dir(follow_symlinks=False) and d.name != STATE_DIR
                and _in_scope(d.name, scope, include_sub_scopes)
            )
            for namespace in namespaces:
                self._collect(scope, namespace, ignore_invalid, warnings, result)
        except OSError as exc:
            raise StoreError(f"Cannot list flows of {scope}: {exc}", path=scope) from exc
        return result

    def _collect(self, scope, namespace, ignore_invalid, warnings, result):
        with os.scandir(self._root / namespace) as it:
            files = sorted((d for d in it if d.is_file() and d.name.endswith(".yml")),
                           key=lambda d: d.name)
        for d in files:
            flow_id = d.name[:-len(".yml")]
            path = flow_path(scope, namespace, flow_id)
            data = Path(d.path).read_bytes()
            try:
                parse_flow(data.decode("utf-8"), path)
            except (InvalidFlowError, UnicodeDecodeError) as exc:
                if not ignore_invalid:
                    if isinstance(exc, InvalidFlowError):
                        raise
                    raise InvalidFlowError(f"Flow is not UTF-8: {path}", path=path) from exc
                logger.debug("skipping invalid stored flow %s.%s: %s", namespace, flow_id, exc)
                if warnings is not None:
                    warnings.append(SyncWarning(path, f"invalid stored flow: {exc}"))
                continue
            key = (namespace, flow_id)
            result[key] = StoreEntry(
                key, path, EntryKind.FILE,
                identity=_data_oid(data),
                revision=self._revisions.get(self._rev_key(key)) or UNTRACKED_REVISION,
            )

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
        rev = self._revisions.bump(self._rev_key(key), current)
        logger.debug("put flow %s.%s (revision %d)", key[0], key[1], rev)
        return rev

    def delete(self, scope, key):
        full = self._resolve(scope, key)
        if not full.is_file():
            raise FileNotFoundError(f"No such flow: {key[0]}.{key[1]}")
        full.unlink()
        self._revisions.drop(self._rev_key(key))
        logger.debug("deleted flow %s.%s", key[0], key[1])

    # --- Mapping between the two trees ---

    def prepare(
        self,
        entries: Iterable[Entry],
        selector: ScopeSelector,
        *,
        warnings: list[SyncWarning] | None = None,
    ) -> list[Entry]:
        """Turn scanned YAML files into flows keyed ``(namespace, id)``.

        Directories are dropped and files without a YAML suffix skipped.
        With ``selector.ignore_invalid`` a malformed file, or a second file
        declaring an id already seen in the same namespace, is skipped and
        recorded in *warnings*; otherwise :exc:`InvalidFlowError` is raised.
        """
        scope = selector.target_scope
        units: list[Entry] = []
        seen: dict[tuple[str, str], str] = {}
        for entry in entries:
            if entry.is_dir:
                continue
            if not entry.path.endswith(FLOW_SUFFIXES):
                logger.debug("not a flow, skipped: %s", entry.path)
                continue
            try:
                unit = self._to_flow(scope, entry)
                if unit.key in seen:
                    raise InvalidFlowError(
                        f"Duplicate flow {unit.key[0]}.{unit.key[1]} in "
                        f"{seen[unit.key]} and {entry.path}", path=entry.path)
            except InvalidFlowError as exc:
                if not selector.ignore_invalid:
                    raise
                logger.debug("skipping invalid flow %s: %s", entry.path, exc)
                if warnings is not None:
                    warnings.append(SyncWarning(entry.path, f"invalid flow: {exc}"))
                continue
            seen[unit.key] = entry.path
            units.append(unit)
        return units

    def flow_unit(self, entry: Entry, namespace: str) -> Entry:
        """Turn one source file into the flow it defines in *namespace*.

        Raises:
            InvalidFlowError: The file is not a valid flow definition.
        """
        return self._to_flow(namespace, entry, namespace=namespace)

    @staticmethod
    def _to_flow(scope: str, entry: Entry, namespace: str | None = None) -> Entry:
        try:
            text = entry.read().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidFlowError(f"Flow is not UTF-8: {entry.path}", path=entry.path) from exc
        if namespace is None:
            namespace = namespace_for(scope, entry.path)
        try:
            _validate_namespace(namespace)
        except ValueError as exc:
            raise InvalidFlowError(
                f"Invalid namespace {namespace!r} for {entry.path}",
                path=entry.path) from exc
        source = replace_namespace(text, namespace)
        _, flow_id = parse_flow(source, entry.path)
        data = source.encode("utf-8")
        return Entry(
            entry.path, EntryKind.FILE,
            identity=_data_oid(data), source=entry.source,
            key=(namespace, flow_id), data=data,
        )

    # --- Reporting ---

    def report_record(self, decision: SyncDecision, git_directory: str | None) -> dict[str, Any]:
        namespace, flow_id = decision.key
        path = decision.path
        if git_directory:
            path = f"{git_directory.strip('/')}/{path}"
        return {
            "gitPath": path,
            "syncState": str(decision.state),
            "flowId": flow_id,
            "namespace": namespace,
            "revision": decision.revision,
        }


__all__ = ["FlowStore", "parse_flow", "replace_namespace", "namespace_for", "flow_path"]
