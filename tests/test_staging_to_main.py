"""Tests for the stage two staging to main pipeline"""
import json
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

import git
import pytest

from merge_repos.core import StagingToMainOrchestrator
from merge_repos.core.ignore import make_relocate_ignore
from merge_repos.core.staging_to_main import STAGING_REMOTE, StagingWorkspace, rewrite_version_script
from merge_repos.exceptions import ConfigurationError, ManifestError, StillConflictedError
from merge_repos.models.commit import CommitRecord
from merge_repos.models.descriptors import MergeFileDescriptor, MergePackageDescriptor
from merge_repos.models.workspace import WorkspaceHandle
from merge_repos.services.conflict_arbitrator import ConflictArbitrator
from merge_repos.services.folder_relocator import FolderRelocator
from merge_repos.services.git import GitOperations, UserDetails
from merge_repos.utils.paths import to_posix

ROOT_MANIFEST = json.dumps({
    "name": "opentelemetry-sandbox-web-js",
    "private": True,
    "devDependencies": {"typescript": "4.4.4"},
}, indent=2) + "\n"

VERSION_SCRIPT = "// this is autogenerated file, see scripts/version-update.js\nconsole.log('version');\n"


def _configure_user(repo):
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()


@pytest.fixture
def origin_repo(temp_dir, commit_files):
    """The destination monorepo with a populated staging branch."""
    repo = git.Repo.init(temp_dir / "origin")
    _configure_user(repo)
    commit_files(repo, {"README.md": "# Sandbox\n", "package.json": ROOT_MANIFEST}, "Sandbox root")
    repo.git.branch("-M", "main")

    repo.git.checkout("-b", "auto-merge/repo-staging")
    commit_files(repo, {
        "auto-merge/js/api/package.json": json.dumps({
            "name": "@opentelemetry/api",
            "version": "1.4.0",
            "scripts": {"compile": "tsc --build"},
            "devDependencies": {"typescript": "4.4.4"},
        }, indent=2) + "\n",
        "auto-merge/js/api/src/index.ts": "export const api = 1;\n",
        "auto-merge/js/scripts/version-update.js": VERSION_SCRIPT,
        "auto-merge/js/tsconfig.base.json": "{}\n",
        "lerna.json": "{}\n",
    }, "Staged otel-js")
    repo.git.checkout("main")

    yield repo

    repo.close()


@pytest.fixture
def merge_clone(temp_dir, origin_repo):
    repo = git.Repo.clone_from(origin_repo.working_dir, temp_dir / "merge", branch="main")
    _configure_user(repo)
    yield repo
    repo.close()


@pytest.fixture
def stage_settings(settings):
    return replace(settings, files_to_merge=(
        MergeFileDescriptor("auto-merge/js/tsconfig.base.json", "tsconfig.base.json"),
        MergeFileDescriptor("auto-merge/js/tsconfig.esm.json", "tsconfig.esm.json", optional=True),
    ))


@pytest.fixture
def orchestrator(git_repo, origin_repo, merge_clone, mock_config, stage_settings, mock_github_service):
    """Stage two pipeline with the merge clone already in place."""
    mock_config['origin_repo_url'] = origin_repo.working_dir
    pipeline = StagingToMainOrchestrator(mock_config, stage_settings, github=mock_github_service,
                                         repo_root=git_repo.working_dir)
    pipeline.merge_root = to_posix(merge_clone.working_dir)
    pipeline.merge_git = GitOperations(merge_clone.working_dir, mock_config)
    pipeline.arbitrator = ConflictArbitrator(pipeline.merge_git)
    pipeline.user = UserDetails("Test User", "test@example.com", "test-user")
    yield pipeline
    pipeline.workspaces.remove_all()


@pytest.fixture
def local_staging(git_repo, gateway):
    """The test repository used directly as a staging workspace."""
    handle = WorkspaceHandle(to_posix(git_repo.working_dir), "main", STAGING_REMOTE)
    return StagingWorkspace(handle, gateway, CommitRecord("staging"))


class TestRewriteVersionScript:
    """Test the version script rewrite."""

    def test_names_package_and_exits(self):
        result = rewrite_version_script(VERSION_SCRIPT)

        assert result.startswith("// this is autogenerated file for ${pjson.name}, see scripts/version-update.js")
        assert result.endswith("process.exit(0);\n")

    def test_existing_exit_is_kept(self):
        text = "console.log('x');\nprocess.exit(0);\n"
        assert rewrite_version_script(text) == text


class TestCheckRootPackage:
    """Test recognising the destination monorepo."""

    def test_matching_root(self, orchestrator):
        orchestrator.check_root_package()
        assert orchestrator.store.get("opentelemetry-sandbox-web-js", destination=True) is not None

    def test_wrong_repository(self, orchestrator, merge_clone):
        (Path(merge_clone.working_dir) / "package.json").write_text('{"name": "something-else"}\n')

        with pytest.raises(ConfigurationError):
            orchestrator.check_root_package()


class TestStagingSteps:
    """Test the individual staging preparation steps."""

    def test_move_package_missing(self, orchestrator, local_staging, stage_settings):
        relocator = FolderRelocator(local_staging.path, local_staging.git, make_relocate_ignore(stage_settings))
        package = MergePackageDescriptor(name="@opentelemetry/api", src_path="auto-merge/js/api", dest_path="pkgs/api")

        with pytest.raises(ManifestError):
            orchestrator.move_package(local_staging, relocator, package)

    def test_move_package_wrong_name(self, orchestrator, local_staging, stage_settings, git_repo, commit_files):
        commit_files(git_repo, {"auto-merge/js/api/package.json": '{"name": "@opentelemetry/core"}\n'})
        relocator = FolderRelocator(local_staging.path, local_staging.git, make_relocate_ignore(stage_settings))
        package = MergePackageDescriptor(name="@opentelemetry/api", src_path="auto-merge/js/api", dest_path="pkgs/api")

        with pytest.raises(ManifestError):
            orchestrator.move_package(local_staging, relocator, package)

    def test_move_files(self, orchestrator, local_staging, git_repo, commit_files):
        commit_files(git_repo, {"auto-merge/js/tsconfig.base.json": "{}\n"})

        orchestrator.move_files(local_staging)

        root = Path(git_repo.working_dir)
        assert (root / "tsconfig.base.json").exists()
        assert not (root / "auto-merge" / "js" / "tsconfig.base.json").exists()

    def test_move_files_required_missing(self, orchestrator, local_staging):
        with pytest.raises(ConfigurationError):
            orchestrator.move_files(local_staging)

    def test_missing_scripts_folder_is_skipped(self, orchestrator, local_staging, stage_settings):
        relocator = FolderRelocator(local_staging.path, local_staging.git, make_relocate_ignore(stage_settings))

        orchestrator.move_scripts(local_staging, relocator)

        assert not (Path(local_staging.path) / "scripts").exists()

    def test_cleanup_files(self, orchestrator, local_staging, git_repo, commit_files):
        commit_files(git_repo, {"lerna.json": "{}\n"})
        root = Path(git_repo.working_dir)
        (root / "untracked.log").write_text("log")

        removed = orchestrator.cleanup_files(local_staging.git, local_staging.path,
                                             ["lerna.json", "untracked.log", "missing.json"])

        assert removed == ["lerna.json", "untracked.log"]
        assert not (root / "lerna.json").exists()
        assert not (root / "untracked.log").exists()


class TestPrepareStagingRepo:
    """Test rearranging the staging branch into the main layout."""

    def test_prepare(self, orchestrator):
        staging = orchestrator.prepare_staging_repo()

        root = Path(staging.path)
        assert staging.record.committed
        assert not staging.git.has_changes()
        assert (root / "pkgs" / "api" / "src" / "index.ts").exists()
        assert not (root / "auto-merge" / "js" / "api").exists()
        assert (root / "tsconfig.base.json").exists()
        assert not (root / "lerna.json").exists()

        script = (root / "scripts" / "version-update.js").read_text()
        assert "// this is autogenerated file for ${pjson.name}," in script
        assert "process.exit(0);" in script

        manifest = json.loads((root / "pkgs" / "api" / "package.json").read_text())
        assert manifest["name"] == "@opentelemetry/sandbox-api"
        assert manifest["version"] == "1.4.0"

        lines = staging.record.lines()
        assert lines[0].startswith("staging @ [")
        assert "### Moving package from auto-merge/js/api to pkgs/api" in lines


class TestMergeStaging:
    """Test merging the rearranged staging branch into main."""

    def test_merge(self, orchestrator, merge_clone):
        orchestrator.check_root_package()
        staging = orchestrator.prepare_staging_repo()
        orchestrator.merge_git.add_remote_and_fetch(STAGING_REMOTE, staging.path, staging.handle.branch_name)

        record = orchestrator.merge_staging(staging)

        root = Path(merge_clone.working_dir)
        assert record.committed
        assert merge_clone.head.commit.message.startswith("[AutoMerge] Merge Staged changes to main")
        assert (root / "pkgs" / "api" / "src" / "index.ts").exists()
        assert not (root / "auto-merge").exists()
        assert not (root / "lerna.json").exists()

        root_manifest = json.loads((root / "package.json").read_text())
        assert root_manifest["devDependencies"]["@microsoft/rush"] == "^5.93.1"
        assert root_manifest["scripts"]["build"] == "rush rebuild"

        metadata = json.loads((root / "rush.json").read_text())
        assert metadata["rushVersion"] == "5.93.1"
        assert metadata["projects"] == [
            {"packageName": "@opentelemetry/sandbox-api", "projectFolder": "pkgs/api", "shouldPublish": True},
        ]

    def test_merge_repairs_bad_package_file(self, orchestrator, merge_clone):
        """Test package files that differ after the merge are recopied from staging."""
        orchestrator.check_root_package()
        staging = orchestrator.prepare_staging_repo()
        root = Path(merge_clone.working_dir)
        (root / "pkgs" / "api").mkdir(parents=True)
        (root / "pkgs" / "api" / "stale.ts").write_text("export {};\n")
        orchestrator.merge_git.add_remote_and_fetch(STAGING_REMOTE, staging.path, staging.handle.branch_name)

        record = orchestrator.merge_staging(staging)

        assert not (root / "pkgs" / "api" / "stale.ts").exists()
        assert any("pkgs/api/stale.ts" in line for line in record.lines())

    def test_staging_submodules_reach_arbitrator(self, orchestrator):
        """Test submodules added while preparing staging are known when resolving conflicts."""
        staging = orchestrator.prepare_staging_repo()
        staging.submodules.append(("https://github.com/example/sdk.git", "pkgs/api/vendor/sdk"))

        with patch.object(orchestrator.merge_git, "merge", return_value=False), \
                patch.object(orchestrator.arbitrator, "resolve",
                             side_effect=StillConflictedError(["pkgs/api/vendor/sdk"])):
            with pytest.raises(StillConflictedError):
                orchestrator.merge_staging(staging)

        assert orchestrator.arbitrator.is_submodule_root("pkgs/api/vendor/sdk")
