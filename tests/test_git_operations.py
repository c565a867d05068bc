"""Tests for GitOperations and the git helpers"""
from pathlib import Path

import git
import pytest

from merge_repos.exceptions import ConfigurationError, GitOperationError, StillConflictedError
from merge_repos.models.commit import CommitRecord
from merge_repos.services.git import (
    GitOperations,
    commit_changes,
    get_user,
    push_to_branch,
    remove_stale_merge_branches,
    remove_temporary_remotes,
    rename_tags,
    working_branch_name,
)
from merge_repos.services.git.branches import create_local_branch
from merge_repos.services.git.identity import UserDetails


class TestGitOperationsBasics:
    """Test basic working tree operations."""

    def test_invalid_path(self, temp_dir, mock_config):
        with pytest.raises(GitOperationError):
            GitOperations(str(temp_dir / "nonexistent"), mock_config).current_branch()

    def test_current_branch(self, gateway):
        assert gateway.current_branch() == "main"

    def test_failed_command_is_wrapped(self, gateway):
        with pytest.raises(GitOperationError) as exc_info:
            gateway.checkout("does-not-exist")
        assert exc_info.value.operation == "checkout"

    def test_status_and_has_changes(self, git_repo, gateway):
        assert not gateway.has_changes()

        (Path(git_repo.working_dir) / "untracked.txt").write_text("x")
        assert not gateway.has_changes()

        (Path(git_repo.working_dir) / "README.md").write_text("changed")
        assert gateway.has_changes()

    def test_clean_keeps_excluded(self, git_repo, gateway):
        root = Path(git_repo.working_dir)
        (root / ".vs").mkdir()
        (root / ".vs" / "settings.json").write_text("{}")
        (root / "junk").mkdir()
        (root / "junk" / "file.txt").write_text("x")

        gateway.clean()

        assert (root / ".vs" / "settings.json").exists()
        assert not (root / "junk").exists()

    def test_show_commit(self, git_repo, gateway):
        commit_hash, details = gateway.show_commit()
        assert commit_hash == git_repo.head.commit.hexsha
        assert "Initial commit" in details

    def test_checkout_reset(self, git_repo, gateway, commit_files):
        first = git_repo.head.commit.hexsha
        commit_files(git_repo, {"b.txt": "b"}, "Second")

        gateway.checkout_reset("main", first)

        assert git_repo.head.commit.hexsha == first

    def test_remotes(self, gateway):
        remotes = gateway.remotes()
        assert remotes["origin"]["fetch"] == "https://github.com/test-user/sandbox.git"

    def test_ahead_behind_without_upstream(self, gateway):
        assert gateway.ahead_behind() == (1, 0)


class TestCommitChanges:
    """Test committing accumulated records."""

    def test_nothing_to_commit(self, gateway):
        record = CommitRecord("Nothing")
        assert commit_changes(gateway, record, "[AutoMerge]") is False
        assert not record.committed

    def test_commit_with_prefix(self, git_repo, gateway):
        (Path(git_repo.working_dir) / "new.txt").write_text("new")
        gateway.add("new.txt")
        record = CommitRecord("Added a file")

        assert commit_changes(gateway, record, "[AutoMerge]") is True
        assert git_repo.head.commit.message.strip() == "[AutoMerge] Added a file"

    def test_conflicts_block_commit(self, git_repo, gateway, commit_files):
        commit_files(git_repo, {"a.txt": "base"}, "Base")
        git_repo.git.checkout("-b", "other")
        commit_files(git_repo, {"a.txt": None}, "Delete")
        git_repo.git.checkout("main")
        commit_files(git_repo, {"a.txt": "changed"}, "Change")

        assert gateway.merge("other") is False
        with pytest.raises(StillConflictedError):
            commit_changes(gateway, CommitRecord("Merge"), "[AutoMerge]")

    def test_merge_without_changes_is_concluded(self, git_repo, gateway, commit_files):
        """Test a merge that leaves the tree unchanged does not block the next merge."""
        commit_files(git_repo, {"a.txt": "base"}, "Base")
        git_repo.git.checkout("-b", "other")
        commit_files(git_repo, {"a.txt": "changed"}, "Change")
        commit_files(git_repo, {"a.txt": "base"}, "Revert")
        git_repo.git.checkout("main")
        head = git_repo.head.commit.hexsha

        assert gateway.merge("other") is True
        assert gateway.merge_in_progress()
        assert commit_changes(gateway, CommitRecord("Merge"), "[AutoMerge]") is False

        assert not gateway.merge_in_progress()
        assert git_repo.head.commit.hexsha == head

    def test_long_message_capped_with_prefix(self, git_repo, gateway):
        (Path(git_repo.working_dir) / "new.txt").write_text("new")
        gateway.add("new.txt")
        record = CommitRecord("x" * 80, max_length=60)

        commit_changes(gateway, record, "[AutoMerge]")

        assert len(git_repo.head.commit.message.strip()) <= 60


class TestTags:
    """Test tag namespacing."""

    def test_rename_tags(self, git_repo, gateway):
        git_repo.create_tag("v1.0.0")
        git_repo.create_tag("otel-js/v0.9.0")
        git_repo.create_tag("contrib/v2.0.0")

        created = rename_tags(gateway, "otel-js/", ["otel-js/", "contrib/"])

        assert created == ["otel-js/v1.0.0"]
        assert sorted(gateway.tags()) == ["contrib/v2.0.0", "otel-js/v0.9.0", "otel-js/v1.0.0"]

    def test_existing_prefixed_tag_only_deletes_original(self, git_repo, gateway):
        git_repo.create_tag("v1.0.0")
        git_repo.create_tag("otel-js/v1.0.0")

        assert rename_tags(gateway, "otel-js/", []) == []
        assert gateway.tags() == ["otel-js/v1.0.0"]

    def test_empty_prefix_rejected(self, git_repo, gateway):
        git_repo.create_tag("v1.0.0")

        with pytest.raises(ConfigurationError):
            rename_tags(gateway, "/", [])
        assert gateway.tags() == ["v1.0.0"]


class TestIdentity:
    """Test user identity detection."""

    def test_account_from_origin(self, gateway):
        user = get_user(gateway)
        assert user.name == "Test User"
        assert user.user == "test-user"
        assert user.branch_owner == "test-user"

    def test_override_user(self, gateway):
        assert get_user(gateway, "someone").user == "someone"

    def test_noreply_email(self, git_repo, gateway):
        git_repo.delete_remote("origin")
        git_repo.config_writer().set_value("user", "email", "1234+octo@users.noreply.github.com").release()
        assert get_user(gateway).user == "octo"

    def test_branch_owner_without_spaces(self):
        assert UserDetails("alice", "a@example.com", "alice-gh").branch_owner == "alice"


class TestBranches:
    """Test working branch helpers."""

    def test_working_branch_name(self):
        assert working_branch_name("alice", "auto-merge/repo-staging") == "alice/auto-merge-repo-staging"
        assert working_branch_name("alice", "main", "merge-") == "alice/merge-main"

    def test_remove_temporary_remotes(self, git_repo, gateway):
        git_repo.create_remote("otel-js", "https://example.com/js")

        assert remove_temporary_remotes(gateway, ["otel-js", "other"]) == ["otel-js"]
        assert "otel-js" not in gateway.remotes()
        assert "origin" in gateway.remotes()

    def test_remove_stale_merge_branches(self, git_repo, gateway):
        git_repo.git.branch("auto-merge/otel-js")
        git_repo.git.branch("feature")

        assert remove_stale_merge_branches(gateway, ["auto-merge/otel-js", "auto-merge/otel-contrib", "main"]) == [
            "auto-merge/otel-js",
        ]
        assert sorted(gateway.local_branches()) == ["feature", "main"]

    def test_same_origin_and_destination_refused(self, temp_dir):
        user = UserDetails("Test User", "test@example.com", "open-telemetry")
        with pytest.raises(ConfigurationError):
            create_local_branch(str(temp_dir / "merge"), "open-telemetry/sandbox", "main",
                                "open-telemetry", "main", user)

    def test_create_local_branch_and_push(self, temp_dir, git_repo, commit_files):
        """Test the merge clone is built from local upstream and fork repositories."""
        commit_files(git_repo, {"a.txt": "a"}, "Upstream work")
        fork = git.Repo.clone_from(git_repo.working_dir, temp_dir / "fork.git", bare=True)
        fork.close()
        user = UserDetails("Test User", "test@example.com", "test-user")

        merge_git = create_local_branch(
            str(temp_dir / "merge"), "test/sandbox", "main", "test-user", "test-user/merge-main", user,
            origin_url=git_repo.working_dir, dest_url=str(temp_dir / "fork.git"),
        )

        assert merge_git.current_branch() == "test-user/merge-main"
        assert set(merge_git.remotes()) == {"origin", "upstream"}
        assert merge_git.get_config("user.email") == "test@example.com"

        (temp_dir / "merge" / "b.txt").write_text("b")
        merge_git.add("b.txt")
        merge_git.commit("Local work")
        assert push_to_branch(merge_git) is True

        fork = git.Repo(temp_dir / "fork.git")
        assert "test-user/merge-main" in [head.name for head in fork.heads]
        fork.close()
