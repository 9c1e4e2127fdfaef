"""Shared fixtures for gitsync tests."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from gitsync import FlowStore, NamespaceFileStore, ScopeSelector


def make_tree(root: Path, layout: dict) -> Path:
    """Create files and directories under *root*.

    Keys are relative paths; a key ending in ``/`` is an empty directory.
    Values are ``str`` or ``bytes`` file contents.
    """
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in layout.items():
        p = root / rel
        if rel.endswith("/"):
            p.mkdir(parents=True, exist_ok=True)
            continue
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode()
        p.write_bytes(content)
    return root


def snapshot(path: Path) -> dict:
    """Return ``{relative_path: bytes or None}`` for everything under *path*."""
    result = {}
    for p in sorted(path.rglob("*")):
        rel = p.relative_to(path).as_posix()
        result[rel] = None if p.is_dir() else p.read_bytes()
    return result


def flow_yaml(flow_id: str, namespace: str = "dev", body: str = "") -> str:
    text = f"id: {flow_id}\nnamespace: {namespace}\n\ntasks:\n  - id: hello\n    type: io.kestra.plugin.core.log.Log\n    message: hi\n"
    return text + body


class ListSink:
    """Collects the lines an applier writes."""

    def __init__(self):
        self.lines = []

    def __call__(self, line):
        self.lines.append(line)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def source(tmp_path):
    """An empty source directory."""
    p = tmp_path / "src"
    p.mkdir()
    return p


@pytest.fixture
def file_store(tmp_path):
    """An empty NamespaceFileStore."""
    return NamespaceFileStore(tmp_path / "store")


@pytest.fixture
def flow_store(tmp_path):
    """An empty FlowStore."""
    return FlowStore(tmp_path / "flows")


@pytest.fixture
def sink():
    return ListSink()


@pytest.fixture
def report_dir(tmp_path):
    return tmp_path / "reports"


@pytest.fixture
def selector(source):
    """Factory for selectors on the ``company.team`` namespace."""
    def _make(**kwargs):
        kwargs.setdefault("target_scope", "company.team")
        return ScopeSelector(source_root=source, **kwargs)
    return _make
