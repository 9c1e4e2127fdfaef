"""Namespace files: a plain directory tree per namespace."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Any

from .._io import _file_oid
from .._paths import _ancestors, _normalize_path
from .._types import EntryKind, LogicalKey, StoreEntry, SyncDecision
from ..exceptions import StoreError
from ._base import UNTRACKED_REVISION, RevisionIndex, TargetStore, _validate_namespace

logger = logging.getLogger(__name__)


class NamespaceFileStore(TargetStore):
    """Files and explicit directories stored under ``<root>/<namespace>/``.

    A logical key is the slash-separated path inside the namespace.
    Writing different content to an existing file replaces it whole and
    bumps its revision, which the planner reports as ``OVERWRITTEN``.

    Usage::

        store = NamespaceFileStore("/var/lib/gitsync/files")
        store.put("company.team", "scripts/run.sh", b"#!/bin/sh\\n")
        store.list("company.team", include_sub_scopes=True)
    """

    versioned_updates = False

    def __init__(self, root: str | os.PathLike[str]):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._revisions = RevisionIndex(self._root)

    def __repr__(self) -> str:
        return f"NamespaceFileStore({str(self._root)!r})"

    @property
    def root(self) -> Path:
        return self._root

    def _namespace_dir(self, scope: str) -> Path:
        return self._root / _validate_namespace(scope)

    def _resolve(self, scope: str, key: LogicalKey) -> tuple[str, Path]:
        if not isinstance(key, str):
            raise TypeError(f"Namespace file keys are paths, got {key!r}")
        path = _normalize_path(key)
        return path, self._namespace_dir(scope) / path

    @staticmethod
    def _rev_key(scope: str, path: str) -> str:
        return f"{scope}:{path}"

    # --- Inventory ---

    def list(self, scope, include_sub_scopes=False, *, ignore_invalid=False, warnings=None):
        ns_dir = self._namespace_dir(scope)
        result: dict[LogicalKey, StoreEntry] = {}
        if not ns_dir.is_dir():
            return result
        max_depth = None if include_sub_scopes else 1
        try:
            self._collect(scope, ns_dir, "", 1, max_depth, result)
        except OSError as exc:
            raise StoreError(f"Cannot list namespace {scope}: {exc}", path=scope) from exc
        return result

    def _collect(self, scope, abs_dir, rel_dir, depth, max_depth, result):
        with os.scandir(abs_dir) as it:
            dirents = sorted(it, key=lambda d: d.name)
        for d in dirents:
            rel = f"{rel_dir}/{d.name}" if rel_dir else d.name
            if d.is_dir(follow_symlinks=False):
                result[rel] = StoreEntry(rel, rel, EntryKind.DIRECTORY)
                if max_depth is None or depth < max_depth:
                    self._collect(scope, Path(d.path), rel, depth + 1, max_depth, result)
            else:
                revision = self._revisions.get(self._rev_key(scope, rel)) or UNTRACKED_REVISION
                result[rel] = StoreEntry(
                    rel, rel, EntryKind.FILE,
                    identity=_file_oid(Path(d.path)), revision=revision,
                )

    # --- Primitives ---

    def get(self, scope, key):
        _, full = self._resolve(scope, key)
        if full.is_dir():
            raise IsADirectoryError(key)
        return full.read_bytes()

    def exists(self, scope, key):
        _, full = self._resolve(scope, key)
        return full.exists()

    def _check_parents(self, scope: str, path: str) -> None:
        ns_dir = self._namespace_dir(scope)
        for anc in _ancestors(path):
            if (ns_dir / anc).is_file():
                raise NotADirectoryError(f"Parent is a file: {anc}")

    def put(self, scope, key, data):
        path, full = self._resolve(scope, key)
        self._check_parents(scope, path)
        if full.is_dir():
            raise IsADirectoryError(f"Is a directory: {path}")
        current = UNTRACKED_REVISION if full.is_file() else 0
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(data)
        rev = self._revisions.bump(self._rev_key(scope, path), current)
        logger.debug("put %s:%s (revision %d)", scope, path, rev)
        return rev

    def create_directory(self, scope, key):
        path, full = self._resolve(scope, key)
        self._check_parents(scope, path)
        if full.is_file():
            raise FileExistsError(f"File exists: {path}")
        full.mkdir(parents=True, exist_ok=True)
        logger.debug("mkdir %s:%s/", scope, path)

    def delete(self, scope, key):
        path, full = self._resolve(scope, key)
        if full.is_dir():
            shutil.rmtree(full)
            self._revisions.drop_prefix(self._rev_key(scope, path + "/"))
        elif full.exists():
            full.unlink()
            self._revisions.drop(self._rev_key(scope, path))
        else:
            raise FileNotFoundError(f"No such file or directory: {path}")
        logger.debug("deleted %s:%s", scope, path)

    # --- Reporting ---

    def report_record(self, decision: SyncDecision, git_directory: str | None) -> dict[str, Any]:
        suffix = "/" if decision.kind is EntryKind.DIRECTORY else ""
        git_path = None
        if decision.source_path is not None:
            git_path = _join(git_directory, decision.source_path) + suffix
        store_path = None
        if decision.target_path is not None:
            store_path = decision.target_path + suffix
        return {
            "gitPath": git_path,
            "kestraPath": store_path,
            "syncState": str(decision.state),
            "revision": decision.revision,
        }


def _join(git_directory: str | None, path: str) -> str:
    if not git_directory:
        return path
    return f"{git_directory.strip('/')}/{path}"


__all__ = ["NamespaceFileStore"]
