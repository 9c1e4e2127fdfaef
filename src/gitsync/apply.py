"""Execute a :class:`~gitsync.plan.SyncPlan` against a target store."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from ._types import EntryKind, ScopeSelector, SyncDecision, SyncState
from .exceptions import ApplyError
from .plan import SyncPlan
from .store import TargetStore

logger = logging.getLogger(__name__)

#: Receives one human-readable line per call.
Sink = Callable[[str], None]

DRY_RUN_HEADER = (
    "Dry run is {}, {}performing following actions "
    "(- for deletions, + for creations, ~ for update or no modification):"
)


def header_line(dry_run: bool) -> str:
    """Return the line announcing the ``+``/``-``/``~`` listing."""
    return DRY_RUN_HEADER.format(
        "enabled" if dry_run else "disabled", "not " if dry_run else "")


def decision_line(decision: SyncDecision) -> str:
    """``+ path``, ``- path`` or ``~ path``."""
    return f"{decision.state.symbol} {decision.display_path}"


def _log_sink(line: str) -> None:
    logger.info("%s", line)


def apply_plan(
    plan: SyncPlan,
    store: TargetStore,
    selector: ScopeSelector,
    *,
    sink: Sink | None = None,
) -> int:
    """Apply *plan* to *store* and return the number of mutations made.

    Writes are applied in plan order, so a directory exists before its
    contents and a replaced entry is removed right before its successor
    is created.  ``DELETED`` decisions only act when
    ``selector.delete_enabled`` is set.  Under ``selector.dry_run`` nothing
    is mutated.  Every decision is announced through *sink* either way.

    The run is not atomic: the first failure raises :exc:`ApplyError` and
    the decisions already applied stay applied.  Revisions in the plan
    are updated with the ones the store hands back.

    Raises:
        ApplyError: A store primitive failed.
    """
    if sink is None:
        sink = _log_sink
    scope = selector.target_scope
    sink(header_line(selector.dry_run))

    applied = 0
    for i, decision in enumerate(plan.decisions):
        sink(decision_line(decision))
        if selector.dry_run or decision.state is SyncState.UNCHANGED:
            continue
        if decision.state is SyncState.DELETED and not selector.delete_enabled:
            continue
        try:
            if decision.state is SyncState.DELETED:
                # Already gone with a directory deleted earlier
                if not decision.replaces and not store.exists(scope, decision.key):
                    continue
                store.delete(scope, decision.key)
            elif decision.kind is EntryKind.DIRECTORY:
                store.create_directory(scope, decision.key)
            else:
                rev = store.put(scope, decision.key, decision.entry.read())
                plan.decisions[i] = replace(decision, revision=rev)
        except (OSError, ValueError, NotImplementedError) as exc:
            raise ApplyError(
                f"Failed to apply {decision.state} {decision.display_path}: {exc}",
                path=decision.path, decision=decision, applied=applied,
            ) from exc
        applied += 1
    return applied


__all__ = ["Sink", "apply_plan", "header_line", "decision_line"]
