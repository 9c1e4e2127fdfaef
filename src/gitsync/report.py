"""Diff report: one JSON object per decision, one decision per line."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable
from urllib.parse import urlparse
from urllib.request import url2pathname

from ._paths import _path_sort_key
from ._types import SyncDecision
from .store import TargetStore

logger = logging.getLogger(__name__)

REPORT_PREFIX = "gitsync-diff-"
REPORT_SUFFIX = ".jsonl"


def _report_order(decision: SyncDecision) -> tuple:
    # Pure deletions first, then by Git path with parents before children
    if decision.source_path is None:
        return (0, ())
    return (1, _path_sort_key(decision.source_path))


def build_records(
    decisions: Iterable[SyncDecision],
    store: TargetStore,
    git_directory: str | None = None,
) -> list[dict[str, Any]]:
    """Return report records for *decisions* in report order."""
    records = []
    for decision in sorted(decisions, key=_report_order):
        record = store.report_record(decision, git_directory)
        if decision.warning:
            record["warning"] = decision.warning
        records.append(record)
    return records


def write_report(
    records: Iterable[dict[str, Any]],
    report_dir: str | os.PathLike[str] | None = None,
) -> str:
    """Write *records* as newline-delimited JSON and return a ``file://`` URI.

    A new file is created in *report_dir* (the system temp directory by
    default) for every call.
    """
    if report_dir is not None:
        Path(report_dir).mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=REPORT_PREFIX, suffix=REPORT_SUFFIX,
                                dir=os.fspath(report_dir) if report_dir is not None else None)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        for record in records:
            line = json.dumps(record, sort_keys=False)
            f.write(line)
            f.write("\n")
            logger.debug("%s", line)
    return Path(name).resolve().as_uri()


def read_report(uri: str | os.PathLike[str]) -> list[dict[str, Any]]:
    """Parse a report written by :func:`write_report`.

    *uri* may be a ``file://`` URI or a plain path.
    """
    path = _uri_to_path(uri)
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def _uri_to_path(uri: str | os.PathLike[str]) -> Path:
    s = os.fspath(uri)
    parsed = urlparse(s)
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path))
    if parsed.scheme and len(parsed.scheme) > 1:
        raise ValueError(f"Unsupported report URI: {s}")
    return Path(s)


__all__ = ["build_records", "write_report", "read_report"]
