"""Pytest fixtures for merge-repos tests"""
import json
import tempfile
from pathlib import Path
from unittest.mock import Mock

import git
import pytest

from merge_repos.config import MergeSettings
from merge_repos.models.descriptors import MergePackageDescriptor, RepoDescriptor
from merge_repos.services.git import GitOperations


def _write_files(root: Path, files: dict) -> None:
    for rel_path, content in files.items():
        target = root / rel_path
        if content is None:
            if target.exists():
                target.unlink()
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)


def _configure_user(repo: git.Repo) -> None:
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_config():
    """Create a mock configuration dictionary."""
    return {
        'verbose': False,
        'debug': False,
        'test': False,
        'create_pr': False,
        'origin_repo': 'test/sandbox',
        'origin_repo_url': 'https://github.com/test/sandbox',
        'staging_branch': 'auto-merge/repo-staging',
        'dest_branch': 'main',
        'clone_to': '.auto-merge/temp',
        'github_token': 'test_token_for_testing',
    }


@pytest.fixture
def commit_files():
    """Return a helper writing files into a repo and committing them.

    A value of None deletes the file.
    """
    def _commit(repo: git.Repo, files: dict, message: str = "Update files"):
        root = Path(repo.working_dir)
        _write_files(root, files)
        repo.git.add("-A")
        repo.index.commit(message)
        return repo.head.commit.hexsha

    return _commit


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository for testing."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)
    _configure_user(repo)

    test_file = repo_path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    # Rename master to main if needed
    try:
        repo.git.branch('-M', 'main')
    except git.exc.GitCommandError:
        pass

    try:
        repo.create_remote('origin', 'https://github.com/test-user/sandbox.git')
    except git.exc.GitCommandError:
        pass

    yield repo

    repo.close()


@pytest.fixture
def gateway(git_repo, mock_config):
    """GitOperations for the test repository."""
    return GitOperations(git_repo.working_dir, mock_config)


@pytest.fixture
def upstream_repo(temp_dir, commit_files):
    """An upstream repository shaped like a small JS monorepo."""
    repo_path = temp_dir / "upstream"
    repo_path.mkdir()
    repo = git.Repo.init(repo_path)
    _configure_user(repo)

    commit_files(repo, {
        "README.md": "# Upstream\n",
        "package.json": json.dumps({
            "name": "upstream-root",
            "private": True,
            "devDependencies": {"lerna": "^6.0.0", "typescript": "4.4.4"},
        }, indent=2) + "\n",
        "api/package.json": json.dumps({"name": "@opentelemetry/api", "version": "1.4.0"}, indent=2) + "\n",
        "api/src/index.ts": "export const api = 1;\n",
        "scripts/version-update.js": "// this is autogenerated file, see scripts/version-update.js\n",
    }, "Initial upstream commit")

    try:
        repo.git.branch('-M', 'main')
    except git.exc.GitCommandError:
        pass
    repo.create_tag("v1.0.0")

    yield repo

    repo.close()


@pytest.fixture
def package_descriptor():
    return MergePackageDescriptor(
        name="@opentelemetry/api",
        src_path="auto-merge/js/api",
        dest_path="pkgs/api",
    )


@pytest.fixture
def settings(package_descriptor):
    """Merge settings with a single repo and package."""
    return MergeSettings(
        repos=(RepoDescriptor(key="otel-js", url="https://github.com/open-telemetry/opentelemetry-js",
                              dest_folder="auto-merge/js"),),
        packages=(package_descriptor,),
        files_to_merge=(),
        dependency_versions={"typescript": "4.4.4"},
        add_missing_dev_deps={},
        common_dev_dependency_versions={},
        init_scripts={"build": "rush rebuild"},
        init_dev_dependency_versions={"@microsoft/rush": "^5.93.1"},
        root_dev_dependencies={"typescript": "4.4.4"},
    )


@pytest.fixture
def mock_github_service():
    """Create a mock GitHubService."""
    from merge_repos.services.github_service import GitHubService

    service = Mock(spec=GitHubService)
    service.has_open_auto_merge_pr = Mock(return_value=False)
    service.ensure_fork = Mock(return_value="test-user/sandbox")
    service.create_pull_request = Mock(return_value=42)
    return service
