"""Tests for git queries, the uncommitted-file tracker and the remote check."""

import pytest

from lfslocks.git.remote import branches_to_check, build_remote_modified_set
from lfslocks.git.repo import (
    current_branch, is_git_outdated, normalize_path, parse_git_version, setup_credential_helper,
)
from lfslocks.git.tracker import UncommittedFileTracker
from lfslocks.proxy.runner import Outcome


class TestRepoQueries:
    """Test small git helpers."""

    @pytest.mark.parametrize("raw,expected", [
        ("Assets\\Art\\a.png", "Assets/Art/a.png"),
        ("  Assets/a.png\r", "Assets/a.png"),
        ("a.png", "a.png"),
    ])
    def test_normalize_path(self, raw, expected):
        assert normalize_path(raw) == expected

    @pytest.mark.parametrize("banner,version", [
        ("git version 2.43.0", (2, 43)),
        ("git version 2.39.3 (Apple Git-146)", (2, 39)),
        ("git version 2.45.1.windows.1", (2, 45)),
        ("command not found", None),
    ])
    def test_parse_git_version(self, banner, version):
        assert parse_git_version(banner) == version

    def test_outdated(self):
        assert is_git_outdated("git version 2.20.1")
        assert not is_git_outdated("git version 2.30.0")
        assert is_git_outdated("")

    def test_current_branch(self, runner):
        runner.on("git", "rev-parse", "--abbrev-ref", "HEAD", stdout="feature/x\n")
        assert current_branch(runner) == "feature/x"

    def test_current_branch_on_failure(self, runner):
        runner.on("git", "rev-parse", "--abbrev-ref", "HEAD", stderr="fatal", returncode=128)
        assert current_branch(runner) == ""

    def test_credential_helper_scope(self, runner):
        assert setup_credential_helper(runner, scope="--local") == ""
        assert runner.sync_calls == [("git", "config", "--local", "credential.helper", "manager")]


class TestUncommittedFileTracker:
    """Test the staged + unstaged file set."""

    def test_starts_dirty_and_rebuilds_lazily(self, runner):
        runner.on("git", "diff", "--name-only", "--staged", stdout="a.png\nb.png\n")
        runner.on("git", "diff", "--name-only", stdout="b.png\r\nsub\\c.png\n")
        tracker = UncommittedFileTracker(runner, lambda p: True)

        assert tracker.dirty
        assert tracker.files == {"a.png", "b.png", "sub/c.png"}
        assert not tracker.dirty

        calls = len(runner.sync_calls)
        assert "sub\\c.png" in tracker
        assert len(runner.sync_calls) == calls

    def test_missing_files_dropped(self, runner):
        runner.on("git", "diff", "--name-only", stdout="kept.png\ndeleted.png\n")
        tracker = UncommittedFileTracker(runner, lambda p: p == "kept.png")
        assert tracker.files == {"kept.png"}

    def test_failed_diff_is_skipped(self, runner):
        runner.on("git", "diff", "--name-only", "--staged", outcome=Outcome.TIMEOUT)
        runner.on("git", "diff", "--name-only", stdout="a.png\n")
        tracker = UncommittedFileTracker(runner, lambda p: True)
        assert tracker.rebuild() == {"a.png"}

    def test_mark_dirty_triggers_rebuild(self, runner):
        tracker = UncommittedFileTracker(runner, lambda p: True)
        assert tracker.files == frozenset()
        runner.on("git", "diff", "--name-only", stdout="new.png\n")

        assert tracker.files == frozenset()
        tracker.mark_dirty()
        assert tracker.files == {"new.png"}


class TestRemoteModified:
    """Test the upstream modification set."""

    def test_branches_to_check(self):
        assert branches_to_check(["develop", "main", ""], "main") == ["develop", "main"]
        assert branches_to_check([], "") == []

    def test_union_over_commits(self, runner):
        runner.on("git", "rev-parse", "--abbrev-ref", "HEAD", stdout="main\n")
        runner.on("git", "rev-list", "main..origin/main", stdout="c1\nc2\n")
        runner.on("git", "diff-tree", "--no-commit-id", "--name-only", "-r", "c1",
                  stdout="a.png\nremoved.png\n")
        runner.on("git", "diff-tree", "--no-commit-id", "--name-only", "-r", "c2",
                  stdout="a.png\nb.png\n")

        result = build_remote_modified_set(runner, [], lambda p: p != "removed.png")
        assert result == {"a.png", "b.png"}

    def test_missing_remote_branch_skipped(self, runner):
        runner.on("git", "rev-parse", "--abbrev-ref", "HEAD", stdout="main\n")
        runner.on("git", "rev-list", "main..origin/gone", stderr="unknown revision",
                  returncode=128)
        runner.on("git", "rev-list", "main..origin/main", stdout="c1\n")
        runner.on("git", "diff-tree", "--no-commit-id", "--name-only", "-r", "c1",
                  stdout="a.png\n")

        assert build_remote_modified_set(runner, ["gone"], lambda p: True) == {"a.png"}

    def test_no_branch_means_empty(self, runner):
        assert build_remote_modified_set(runner, ["develop"], lambda p: True) == frozenset()
        assert runner.calls_starting_with("git", "fetch") == []

    def test_never_cached(self, runner):
        runner.on("git", "rev-parse", "--abbrev-ref", "HEAD", stdout="main\n")
        build_remote_modified_set(runner, [], lambda p: True)
        build_remote_modified_set(runner, [], lambda p: True)
        assert len(runner.calls_starting_with("git", "fetch")) == 2
