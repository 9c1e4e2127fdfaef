"""Tests for FlowStore and flow source handling."""

import pytest

from conftest import flow_yaml, make_tree
from gitsync import InvalidFlowError, ScopeSelector, SyncWarning, scan
from gitsync.store.flows import flow_path, namespace_for, parse_flow, replace_namespace


class TestFlowHelpers:
    def test_parse_flow(self):
        assert parse_flow(flow_yaml("hello", "dev")) == ("dev", "hello")

    @pytest.mark.parametrize("source", [
        "id: [unclosed",
        "- just\n- a list\n",
        "namespace: dev\n",
        "id: hello\n",
        "id: -bad\nnamespace: dev\n",
        "id: 12\nnamespace: dev\n",
    ])
    def test_parse_invalid(self, source):
        with pytest.raises(InvalidFlowError):
            parse_flow(source, "x.yml")

    def test_replace_namespace_first_line_only(self):
        src = "id: f\nnamespace: dev\ntasks:\n  - id: t\n    namespace: keep\n"
        out = replace_namespace(src, "prod")
        assert out.startswith("id: f\nnamespace: prod\n")
        assert "namespace: keep" in out

    def test_replace_namespace_strips_trailing_whitespace(self):
        assert replace_namespace("id: f\nnamespace: dev\n\n\n", "prod") == "id: f\nnamespace: prod"

    def test_namespace_for(self):
        assert namespace_for("prod", "f.yml") == "prod"
        assert namespace_for("prod", "marketing/crm/f.yml") == "prod.marketing.crm"

    def test_flow_path(self):
        assert flow_path("prod", "prod", "f1") == "f1.yml"
        assert flow_path("prod", "prod.marketing.crm", "f1") == "marketing/crm/f1.yml"


class TestFlowStorePrimitives:
    def test_put_get_delete(self, flow_store):
        key = ("prod", "hello")
        assert flow_store.put("prod", key, b"id: hello\nnamespace: prod") == 1
        assert flow_store.get("prod", key) == b"id: hello\nnamespace: prod"
        assert (flow_store.root / "prod" / "hello.yml").is_file()
        assert flow_store.put("prod", key, b"id: hello\nnamespace: prod\n# v2") == 2
        flow_store.delete("prod", key)
        assert not flow_store.exists("prod", key)

    def test_key_outside_scope_rejected(self, flow_store):
        with pytest.raises(ValueError):
            flow_store.put("prod", ("dev", "hello"), b"x")
        with pytest.raises(ValueError):
            flow_store.put("prod", ("production", "hello"), b"x")

    def test_child_namespace_in_scope(self, flow_store):
        flow_store.put("prod", ("prod.a", "hello"), b"id: hello\nnamespace: prod.a")
        assert flow_store.exists("prod", ("prod.a", "hello"))

    def test_path_key_rejected(self, flow_store):
        with pytest.raises(TypeError):
            flow_store.put("prod", "hello.yml", b"x")

    def test_no_directories(self, flow_store):
        with pytest.raises(NotImplementedError):
            flow_store.create_directory("prod", ("prod", "x"))

    def test_delete_missing(self, flow_store):
        with pytest.raises(FileNotFoundError):
            flow_store.delete("prod", ("prod", "nope"))


class TestFlowStoreList:
    def _put(self, store, ns, flow_id):
        store.put(ns, (ns, flow_id), flow_yaml(flow_id, ns).encode())

    def test_scope_only(self, flow_store):
        self._put(flow_store, "prod", "a")
        self._put(flow_store, "prod.team", "b")
        self._put(flow_store, "production", "c")
        assert sorted(flow_store.list("prod")) == [("prod", "a")]

    def test_with_child_namespaces(self, flow_store):
        self._put(flow_store, "prod", "a")
        self._put(flow_store, "prod.team", "b")
        self._put(flow_store, "production", "c")
        listing = flow_store.list("prod", include_sub_scopes=True)
        assert sorted(listing) == [("prod", "a"), ("prod.team", "b")]
        assert listing[("prod.team", "b")].path == "team/b.yml"

    def test_invalid_stored_flow_raises(self, flow_store):
        (flow_store.root / "prod").mkdir()
        (flow_store.root / "prod" / "bad.yml").write_text("id: [")
        with pytest.raises(InvalidFlowError):
            flow_store.list("prod")

    def test_invalid_stored_flow_skipped(self, flow_store):
        self._put(flow_store, "prod", "a")
        (flow_store.root / "prod" / "bad.yml").write_text("id: [")
        warnings = []
        listing = flow_store.list("prod", ignore_invalid=True, warnings=warnings)
        assert list(listing) == [("prod", "a")]
        assert [w.path for w in warnings] == ["bad.yml"]

    def test_external_flow_revision_advances_on_put(self, flow_store):
        (flow_store.root / "prod").mkdir()
        (flow_store.root / "prod" / "a.yml").write_text(flow_yaml("a", "prod"))
        assert flow_store.list("prod")[("prod", "a")].revision == 1
        assert flow_store.put("prod", ("prod", "a"), flow_yaml("a", "prod", "# v2\n").encode()) == 2


class TestPrepare:
    def test_maps_directories_to_namespaces(self, flow_store, source):
        make_tree(source, {
            "f1.yml": flow_yaml("f1", "dev"),
            "marketing/f3.yaml": flow_yaml("f3", "dev.marketing"),
            "marketing/crm/f5.yml": flow_yaml("f5", "dev.marketing.crm"),
            "README.md": "not a flow",
        })
        selector = ScopeSelector(source, "prod", include_sub_scopes=True)
        units = flow_store.prepare(scan(source), selector)
        assert [u.key for u in units] == [
            ("prod", "f1"),
            ("prod.marketing.crm", "f5"),
            ("prod.marketing", "f3"),
        ]
        crm = units[1]
        assert crm.path == "marketing/crm/f5.yml"
        assert b"namespace: prod.marketing.crm" in crm.read()
        assert b"namespace: dev" not in crm.read()

    def test_invalid_flow_fails_by_default(self, flow_store, source):
        make_tree(source, {"bad.yml": "id: [", "ok.yml": flow_yaml("ok")})
        with pytest.raises(InvalidFlowError) as exc_info:
            flow_store.prepare(scan(source), ScopeSelector(source, "prod"))
        assert exc_info.value.path == "bad.yml"

    def test_invalid_flow_skipped_with_warning(self, flow_store, source):
        make_tree(source, {"bad.yml": "id: [", "ok.yml": flow_yaml("ok")})
        warnings = []
        units = flow_store.prepare(scan(source), ScopeSelector(source, "prod", ignore_invalid=True),
                                   warnings=warnings)
        assert [u.key for u in units] == [("prod", "ok")]
        assert len(warnings) == 1
        assert isinstance(warnings[0], SyncWarning)
        assert warnings[0].path == "bad.yml"

    def test_duplicate_id_is_invalid(self, flow_store, source):
        make_tree(source, {"a.yml": flow_yaml("same"), "b.yml": flow_yaml("same")})
        with pytest.raises(InvalidFlowError):
            flow_store.prepare(scan(source), ScopeSelector(source, "prod"))

    def test_non_utf8_is_invalid(self, flow_store, source):
        make_tree(source, {"a.yml": b"\xff\xfe\x00"})
        with pytest.raises(InvalidFlowError):
            flow_store.prepare(scan(source), ScopeSelector(source, "prod"))
