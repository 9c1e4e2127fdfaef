"""Tests for the diff engine."""

from gitsync import Entry, EntryKind, IgnoreFilter, PatternSet, ScopeSelector, StoreEntry, SyncState
from gitsync.plan import build_plan

F = EntryKind.FILE
D = EntryKind.DIRECTORY


def _src(path, identity="x", kind=F):
    return Entry(path, kind, identity=None if kind is D else identity)


def _tgt(path, identity="x", kind=F, revision=1):
    if kind is D:
        return StoreEntry(path, path, D)
    return StoreEntry(path, path, F, identity=identity, revision=revision)


def _target(*entries):
    return {e.key: e for e in entries}


def _states(plan):
    return [(d.state, d.path) for d in plan]


def _sel(tmp_path, **kwargs):
    kwargs.setdefault("include_sub_scopes", True)
    return ScopeSelector(tmp_path, "company.team", **kwargs)


class TestClassification:
    def test_added(self, tmp_path):
        plan = build_plan([_src("a.txt")], {}, _sel(tmp_path))
        (d,) = plan.decisions
        assert d.state is SyncState.ADDED
        assert d.revision == 1
        assert d.source_path == "a.txt"
        assert d.target_path is None

    def test_unchanged(self, tmp_path):
        plan = build_plan([_src("a.txt")], _target(_tgt("a.txt", revision=4)), _sel(tmp_path))
        (d,) = plan.decisions
        assert d.state is SyncState.UNCHANGED
        assert d.revision == 4
        assert plan.in_sync

    def test_overwritten_for_whole_object_store(self, tmp_path):
        plan = build_plan([_src("a.txt", "new")], _target(_tgt("a.txt", "old", revision=2)),
                          _sel(tmp_path))
        (d,) = plan.decisions
        assert d.state is SyncState.OVERWRITTEN
        assert d.revision == 3

    def test_updated_for_versioned_store(self, tmp_path):
        plan = build_plan([_src("a.txt", "new")], _target(_tgt("a.txt", "old")),
                          _sel(tmp_path), versioned_updates=True)
        assert plan.decisions[0].state is SyncState.UPDATED

    def test_directory_compared_by_presence(self, tmp_path):
        plan = build_plan([_src("d", kind=D)], _target(_tgt("d", kind=D)), _sel(tmp_path))
        (d,) = plan.decisions
        assert d.state is SyncState.UNCHANGED
        assert d.revision is None

    def test_added_directory_precedes_contents(self, tmp_path):
        plan = build_plan([_src("d", kind=D), _src("d/f.txt")], {}, _sel(tmp_path))
        assert _states(plan) == [(SyncState.ADDED, "d"), (SyncState.ADDED, "d/f.txt")]
        assert plan.decisions[0].revision is None

    def test_deleted_reported_without_delete_flag(self, tmp_path):
        plan = build_plan([], _target(_tgt("b.txt")), _sel(tmp_path))
        (d,) = plan.decisions
        assert d.state is SyncState.DELETED
        assert d.source_path is None
        assert d.target_path == "b.txt"
        assert d.revision is None

    def test_deletions_after_writes_deepest_first(self, tmp_path):
        target = _target(_tgt("old", kind=D), _tgt("old/a.txt"), _tgt("old/sub", kind=D),
                         _tgt("old/sub/b.txt"), _tgt("z.txt"))
        plan = build_plan([_src("new.txt")], target, _sel(tmp_path, delete_enabled=True))
        assert _states(plan) == [
            (SyncState.ADDED, "new.txt"),
            (SyncState.DELETED, "old/sub/b.txt"),
            (SyncState.DELETED, "old/a.txt"),
            (SyncState.DELETED, "old/sub"),
            (SyncState.DELETED, "old"),
            (SyncState.DELETED, "z.txt"),
        ]

    def test_counts(self, tmp_path):
        target = _target(_tgt("same"), _tgt("changed", "old"), _tgt("gone"))
        plan = build_plan([_src("same"), _src("changed", "new"), _src("new")], target,
                          _sel(tmp_path))
        assert plan.counts() == {
            "ADDED": 1, "UPDATED": 0, "OVERWRITTEN": 1, "UNCHANGED": 1, "DELETED": 1,
        }
        assert plan.total == 3


class TestStructuralConflicts:
    def test_file_becomes_directory_with_delete(self, tmp_path):
        plan = build_plan([_src("d", kind=D), _src("d/f.txt")], _target(_tgt("d")),
                          _sel(tmp_path, delete_enabled=True))
        assert [(d.state, d.kind, d.path) for d in plan] == [
            (SyncState.DELETED, F, "d"),
            (SyncState.ADDED, D, "d"),
            (SyncState.ADDED, F, "d/f.txt"),
        ]
        assert plan.decisions[0].replaces
        assert not plan.warnings

    def test_directory_becomes_file_with_delete(self, tmp_path):
        target = _target(_tgt("d", kind=D), _tgt("d/f.txt"))
        plan = build_plan([_src("d")], target, _sel(tmp_path, delete_enabled=True))
        assert [(d.state, d.kind, d.path) for d in plan] == [
            (SyncState.DELETED, D, "d"),
            (SyncState.ADDED, F, "d"),
        ]

    def test_directory_holding_ignored_entry_not_replaced(self, tmp_path):
        target = _target(_tgt("d", kind=D), _tgt("d/secret.txt"), _tgt("d/old.txt"))
        plan = build_plan([_src("d")], target, _sel(tmp_path, delete_enabled=True),
                          ignore=IgnoreFilter(["d/secret.txt"]))
        assert [(d.state, d.kind, d.path) for d in plan] == [
            (SyncState.UNCHANGED, D, "d"),
            (SyncState.DELETED, F, "d/old.txt"),
        ]
        assert "d/secret.txt" in plan.decisions[0].warning
        assert not any(d.replaces for d in plan)

    def test_directory_holding_protected_entry_not_replaced(self, tmp_path):
        target = _target(_tgt("d", kind=D), _tgt("d/bad.yml"))
        plan = build_plan([_src("d")], target, _sel(tmp_path, delete_enabled=True),
                          protected=["d/bad.yml"])
        assert [d.state for d in plan] == [SyncState.UNCHANGED]
        assert plan.decisions[0].warning

    def test_shallow_run_never_replaces_directory(self, tmp_path):
        plan = build_plan([_src("d")], _target(_tgt("d", kind=D)),
                          _sel(tmp_path, delete_enabled=True, include_sub_scopes=False))
        (d,) = plan.decisions
        assert d.state is SyncState.UNCHANGED
        assert d.kind is D
        assert "top-level" in d.warning

    def test_shallow_run_replaces_file_with_directory(self, tmp_path):
        plan = build_plan([_src("d", kind=D)], _target(_tgt("d")),
                          _sel(tmp_path, delete_enabled=True, include_sub_scopes=False))
        assert [(d.state, d.kind) for d in plan] == [
            (SyncState.DELETED, F),
            (SyncState.ADDED, D),
        ]

    def test_conflict_without_delete_is_warning(self, tmp_path):
        plan = build_plan([_src("d", kind=D), _src("d/f.txt")], _target(_tgt("d", revision=5)),
                          _sel(tmp_path))
        (d,) = plan.decisions
        assert d.state is SyncState.UNCHANGED
        assert d.kind is F
        assert d.revision == 5
        assert "delete" in d.warning
        assert [w.path for w in plan.warnings] == ["d", "d/f.txt"]

    def test_conflict_on_self_key_never_replaced(self, tmp_path):
        plan = build_plan([_src("d", kind=D)], _target(_tgt("d")),
                          _sel(tmp_path, delete_enabled=True, self_key="d"))
        assert [d.state for d in plan] == [SyncState.UNCHANGED]
        assert plan.decisions[0].warning


class TestDeletionProtection:
    def test_self_key_never_deleted(self, tmp_path):
        plan = build_plan([], _target(_tgt("me.yml"), _tgt("other")),
                          _sel(tmp_path, delete_enabled=True, self_key="me.yml"))
        assert _states(plan) == [(SyncState.DELETED, "other")]

    def test_directory_holding_self_key_kept(self, tmp_path):
        target = _target(_tgt("d", kind=D), _tgt("d/me.yml"), _tgt("d/x"))
        plan = build_plan([], target, _sel(tmp_path, delete_enabled=True, self_key="d/me.yml"))
        assert _states(plan) == [(SyncState.DELETED, "d/x")]

    def test_ignored_target_entries_kept(self, tmp_path):
        target = _target(_tgt("secret.txt"), _tgt("cache", kind=D), _tgt("cache/a"), _tgt("b"))
        plan = build_plan([], target, _sel(tmp_path, delete_enabled=True),
                          ignore=IgnoreFilter(["secret.txt", "cache/"]))
        assert _states(plan) == [(SyncState.DELETED, "b")]

    def test_pattern_limits_deletions(self, tmp_path):
        target = _target(_tgt("a.sql"), _tgt("b.txt"), _tgt("q", kind=D), _tgt("q/c.sql"))
        plan = build_plan([], target, _sel(tmp_path, delete_enabled=True, name_patterns=["*.sql"]),
                          patterns=PatternSet(["*.sql"]))
        assert sorted(d.path for d in plan) == ["a.sql", "q/c.sql"]

    def test_protected_paths_kept(self, tmp_path):
        plan = build_plan([], _target(_tgt("bad.yml"), _tgt("gone.yml")),
                          _sel(tmp_path, delete_enabled=True), protected=["bad.yml"])
        assert _states(plan) == [(SyncState.DELETED, "gone.yml")]

    def test_shallow_run_keeps_directories(self, tmp_path):
        target = _target(_tgt("d", kind=D), _tgt("f.txt"))
        plan = build_plan([], target, _sel(tmp_path, delete_enabled=True, include_sub_scopes=False))
        assert _states(plan) == [(SyncState.DELETED, "f.txt")]
