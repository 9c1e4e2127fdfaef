"""Tests for cloning a branch and locating the directory to sync."""

import pytest
from dulwich import porcelain

from conftest import make_tree
from gitsync import CloneError, GitDirectoryError, clone_branch, resolve_git_directory

IDENT = b"Test <test@example.com>"


@pytest.fixture
def origin(tmp_path):
    """A local repository with _files/ and _flows/ committed on 'main'."""
    path = tmp_path / "origin"
    make_tree(path, {"_files/a.txt": "x", "_flows/f1.yml": "id: f1\nnamespace: dev\n"})
    porcelain.init(str(path))
    porcelain.add(str(path), paths=[str(path / "_files" / "a.txt"), str(path / "_flows" / "f1.yml")])
    porcelain.commit(str(path), message=b"init", author=IDENT, committer=IDENT)
    porcelain.branch_create(str(path), "main")
    return path


class TestCloneBranch:
    def test_clone_checks_out_files(self, origin, tmp_path):
        dest = clone_branch(str(origin), "main", tmp_path / "wt")
        assert (dest / "_files" / "a.txt").read_text() == "x"
        assert (dest / ".git").exists()

    def test_missing_repository(self, tmp_path):
        with pytest.raises(CloneError):
            clone_branch(str(tmp_path / "nope"), "main", tmp_path / "wt")


class TestResolveGitDirectory:
    def test_whole_tree(self, tmp_path):
        assert resolve_git_directory(tmp_path, None) == tmp_path
        assert resolve_git_directory(tmp_path, "/") == tmp_path

    def test_subdirectory(self, tmp_path):
        make_tree(tmp_path, {"_files/": None})
        assert resolve_git_directory(tmp_path, "_files/") == tmp_path / "_files"

    def test_missing(self, tmp_path):
        with pytest.raises(GitDirectoryError) as exc_info:
            resolve_git_directory(tmp_path, "_files", "dev")
        assert str(exc_info.value) == (
            "The directory '_files' was not found in the git repository. "
            "Verify if the path exists in the specified branch 'dev'."
        )
        assert isinstance(exc_info.value, ValueError)

    def test_not_a_directory(self, tmp_path):
        make_tree(tmp_path, {"_files": "x"})
        with pytest.raises(GitDirectoryError, match="exists but is not a directory"):
            resolve_git_directory(tmp_path, "_files")
