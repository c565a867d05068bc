"""Tests for the command-line interface"""
from unittest.mock import patch

import pytest

from merge_repos.cli import main, parse_args
from merge_repos.cli.main import build_config
from merge_repos.constants import (
    EXIT_BAD_ARGUMENTS,
    EXIT_CLEANUP_FAILED,
    EXIT_FATAL,
    EXIT_INTERRUPTED,
    EXIT_SUCCESS,
)
from merge_repos.core import PipelineResult
from merge_repos.exceptions import CleanupError, PullRequestExistsError, RepoRootNotFoundError


class TestParseArgs:
    """Test argument parsing."""

    def test_sync_defaults(self):
        args = parse_args(["sync"])

        assert args.command == "sync"
        assert args.clone_to == ".auto-merge/temp"
        assert args.origin_repo == "open-telemetry/opentelemetry-sandbox-web-js"
        assert args.staging_branch == "auto-merge/repo-staging"
        assert args.test is False
        assert args.no_pr is False

    def test_merge_options(self):
        args = parse_args([
            "merge", "--dest-branch", "develop", "--staging-start-point", "abc123",
            "--origin-repo", "me/sandbox", "--no-pr", "--test", "--token", "secret",
        ])

        assert args.command == "merge"
        assert args.dest_branch == "develop"
        assert args.staging_start_point == "abc123"
        assert args.origin_repo == "me/sandbox"
        assert args.no_pr is True
        assert args.github_token == "secret"

    def test_missing_command(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args([])
        assert exc_info.value.code == 2

    def test_unknown_option(self):
        with pytest.raises(SystemExit):
            parse_args(["sync", "--dest-branch", "main"])

    def test_build_config(self):
        config = build_config(parse_args(["sync", "--dest-user", "fork-owner", "--no-pr"]))

        assert config.command == "sync"
        assert config.dest_branch == "main"
        assert config.dest_user == "fork-owner"
        assert config.create_pr is False


@patch('merge_repos.cli.main.setup_logging')
@patch('merge_repos.cli.main.find_repo_root', return_value="/work/sandbox")
class TestMain:
    """Test the main entry point and its exit codes."""

    def test_bad_origin_repo(self, mock_root, mock_logging):
        assert main(["sync", "--origin-repo", "not-a-repo"]) == EXIT_BAD_ARGUMENTS

    @patch('merge_repos.cli.main.SyncOrchestrator')
    def test_sync_success(self, mock_sync, mock_root, mock_logging):
        mock_sync.return_value.run.return_value = PipelineResult(working_branch="me/branch", pr_created=True)

        assert main(["sync", "--token", "secret"]) == EXIT_SUCCESS

        config, settings = mock_sync.call_args.args
        assert config.github_token == "secret"
        assert settings.repo_keys == ("otel-js", "otel-js-contrib")
        assert mock_sync.call_args.kwargs["repo_root"] == "/work/sandbox"

    @patch('merge_repos.cli.main.StagingToMainOrchestrator')
    def test_merge_uses_staging_orchestrator(self, mock_merge, mock_root, mock_logging):
        mock_merge.return_value.run.return_value = PipelineResult()

        assert main(["merge", "--no-pr"]) == EXIT_SUCCESS
        mock_merge.return_value.run.assert_called_once()

    @patch('merge_repos.cli.main.SyncOrchestrator')
    def test_fatal_error(self, mock_sync, mock_root, mock_logging):
        mock_sync.return_value.run.side_effect = PullRequestExistsError("test/sandbox", "main")

        assert main(["sync"]) == EXIT_FATAL

    @patch('merge_repos.cli.main.SyncOrchestrator')
    def test_cleanup_error(self, mock_sync, mock_root, mock_logging):
        mock_sync.return_value.run.side_effect = CleanupError([("Restore branch main", OSError("busy"))])

        assert main(["sync"]) == EXIT_CLEANUP_FAILED

    @patch('merge_repos.cli.main.SyncOrchestrator')
    def test_keyboard_interrupt(self, mock_sync, mock_root, mock_logging):
        mock_sync.return_value.run.side_effect = KeyboardInterrupt()

        assert main(["sync"]) == EXIT_INTERRUPTED

    def test_repo_root_not_found(self, mock_root, mock_logging):
        mock_root.side_effect = RepoRootNotFoundError("/tmp")

        assert main(["sync"]) == EXIT_FATAL

    def test_settings_file_error(self, mock_root, mock_logging, temp_dir):
        assert main(["sync", "--settings", str(temp_dir / "missing.json")]) == EXIT_FATAL

    @patch('merge_repos.cli.main.SyncOrchestrator')
    def test_debug_masks_token(self, mock_sync, mock_root, mock_logging, capsys):
        mock_sync.return_value.run.return_value = PipelineResult()

        assert main(["sync", "--debug", "--token", "very-secret"]) == EXIT_SUCCESS

        output = capsys.readouterr().out
        assert "very-secret" not in output
        assert "***" in output
