"""Stage two: merge the staged packages into the main branch"""
import os
from dataclasses import dataclass, field
from typing import List, Tuple

from merge_repos.constants import MANIFEST_FILE_NAME
from merge_repos.core.ignore import make_main_verify_ignore, make_relocate_ignore
from merge_repos.core.pipeline import MergePipeline, PipelineResult, console
from merge_repos.core.workspaces import scratch_path
from merge_repos.exceptions import ConfigurationError, GitOperationError, ManifestError
from merge_repos.logging_config import get_logger
from merge_repos.models.commit import CommitRecord
from merge_repos.models.descriptors import MergePackageDescriptor
from merge_repos.models.workspace import WorkspaceHandle
from merge_repos.services.folder_relocator import FolderRelocator
from merge_repos.services.git import (
    GitOperations,
    commit_changes,
    get_user,
    set_user,
    working_branch_name,
)
from merge_repos.services.manifest_merger import PackageLayout
from merge_repos.services.package_references import (
    update_config_file_relative_paths,
    update_file_package_references,
)
from merge_repos.services.tree_reconciler import TreeReconciler, validate_file
from merge_repos.services.workspace_metadata import update_workspace_metadata
from merge_repos.utils.paths import to_posix

logger = get_logger(__name__)

STAGING_REMOTE = "staging"

VERSION_SCRIPT = "version-update.js"
_AUTOGENERATED = "// this is autogenerated file,"
_AUTOGENERATED_FOR_PACKAGE = "// this is autogenerated file for ${pjson.name},"
_EXIT_ZERO = "process.exit(0);"
_EXIT_ZERO_BLOCK = "\n// Returning zero to tell npm that we completed successfully\nprocess.exit(0);\n"


def rewrite_version_script(text: str) -> str:
    """Name the package in the generated header and make the script exit with zero."""
    text = text.replace(_AUTOGENERATED, _AUTOGENERATED_FOR_PACKAGE, 1)
    if _EXIT_ZERO not in text:
        text += _EXIT_ZERO_BLOCK
    return text


@dataclass
class StagingWorkspace:
    """The staging branch clone rearranged into the main branch layout."""
    handle: WorkspaceHandle
    git: GitOperations
    record: CommitRecord
    submodules: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.handle.path


class StagingToMainOrchestrator(MergePipeline):
    """Rearranges the staging branch into packages and merges them into the main branch."""

    stage = "Main"
    title_lead = "Merging staged change(s) to main "

    def run(self) -> PipelineResult:
        dest_branch = self.config.get("dest_branch")
        console.print(
            f"[bold]Merging {self.config.get('origin_repo')}@{self.config.get('staging_branch')} "
            f"into {dest_branch}[/bold]"
        )

        with self.cleanup:
            self.register_restore()
            self.check_existing_pr(dest_branch)

            owner = get_user(self.local_git, self.config.get("origin_user")).branch_owner
            self.init_merge_clone(dest_branch, working_branch_name(owner, dest_branch, "merge-"),
                                  temporary_remotes=(STAGING_REMOTE,))
            self.check_root_package()

            staging = self.prepare_staging_repo()
            self.merge_git.add_remote_and_fetch(STAGING_REMOTE, staging.path, staging.handle.branch_name)
            record = self.merge_staging(staging)
            if record.committed:
                self.add_to_pr("", record.message)
                self.result.records.append(record)

            self.publish(dest_branch)

        return self.result

    def check_root_package(self) -> None:
        """Confirm the merge clone is the destination monorepo.

        Raises:
            ConfigurationError: If the root manifest has another name
        """
        root_name = self.settings.root_project_name
        self.store.unregister(root_name, destination=True)
        if not self.store.check_package_name(self.merge_root, root_name, "", destination=True):
            raise ConfigurationError("Current repo folder does not appear to be the sandbox")

    def prepare_staging_repo(self) -> StagingWorkspace:
        """Clone the staging branch and move its content into the main branch layout.

        Every step is recorded in the staging commit, which is committed in the
        scratch clone once all packages, scripts and shared files are in place.
        """
        branch = self.config.get("staging_branch")
        handle = self.workspaces.register(
            WorkspaceHandle(scratch_path(self.merge_root, STAGING_REMOTE), branch, STAGING_REMOTE)
        )
        git = GitOperations.clone(self.config.get("origin_repo_url"), handle.path, branch, self.config)
        git.checkout_reset(branch, self.config.get("staging_start_point"))
        git.reset_hard()
        git.clean()
        if self.user is not None:
            set_user(git, self.user)

        commit_hash, details = git.show_commit()
        record = CommitRecord(
            f"staging @ [{commit_hash[:7]}...]({self.config.get('origin_repo_url')}/commit/{commit_hash})"
        )
        record.append(details)
        staging = StagingWorkspace(handle, git, record)

        relocator = FolderRelocator(staging.path, git, make_relocate_ignore(self.settings))
        for package in self.settings.packages:
            self.move_package(staging, relocator, package)

        self.move_scripts(staging, relocator)
        self.move_files(staging)

        for package in self.settings.packages:
            self.merge_package_manifest(staging, package)

        self.cleanup_files(git, staging.path, self.settings.files_to_cleanup)
        commit_changes(git, record, self.prefix)
        return staging

    def move_package(self, staging: StagingWorkspace, relocator: FolderRelocator,
                     package: MergePackageDescriptor) -> List[str]:
        """Relocate one package and load its manifests.

        Raises:
            ManifestError: If the package is missing or its manifest has another name
        """
        source = to_posix(os.path.join(staging.path, package.src_path))
        if not os.path.exists(source):
            raise ManifestError(f"[{source}] - does not exist!")
        if not self.store.check_package_name(source, package.name, package.dest_path):
            raise ManifestError(f"[{source}] - Not as expected!")

        logger.info(f"Moving [{package.name}] from {package.src_path} into {package.dest_path}")
        staging.record.append(f"### Moving package from {package.src_path} to {package.dest_path}")
        os.makedirs(os.path.join(staging.path, package.dest_path), exist_ok=True)
        moved = relocator.relocate(package.src_path, package.dest_path)
        staging.record.extend(f" - {path}" for path in moved)

        dest = os.path.join(staging.path, package.dest_path)
        self.store.load(dest, self.settings.transform_package_name(package.name), package.dest_path, destination=True)
        update_config_file_relative_paths(staging.git, staging.path, package.dest_path)
        return moved

    def move_scripts(self, staging: StagingWorkspace, relocator: FolderRelocator) -> None:
        source = os.path.join(staging.path, self.settings.scripts_folder_src)
        if not os.path.isdir(source):
            logger.warning(f"Missing scripts folder - {to_posix(source)}")
            return

        logger.info("Moving Scripts folder")
        relocator.relocate(self.settings.scripts_folder_src, self.settings.scripts_folder_dest)
        self.update_version_script(staging)

    def update_version_script(self, staging: StagingWorkspace) -> bool:
        rel_path = f"{self.settings.scripts_folder_dest}/{VERSION_SCRIPT}"
        script = os.path.join(staging.path, rel_path)
        if not os.path.isfile(script):
            logger.warning(f"Missing - {to_posix(script)}")
            return False

        with open(script, "r", encoding="utf-8") as script_file:
            text = script_file.read()
        new_text = rewrite_version_script(text)
        if new_text == text:
            return False

        with open(script, "w", encoding="utf-8") as script_file:
            script_file.write(new_text)
        staging.git.add(rel_path)
        return True

    def move_files(self, staging: StagingWorkspace) -> None:
        """Move the shared root files out of the relocated repository folders.

        Raises:
            ConfigurationError: If a required file is missing
        """
        logger.info("Moving Files")
        for item in self.settings.files_to_merge:
            source = os.path.join(staging.path, item.src_path)
            if not os.path.exists(source):
                if item.optional:
                    logger.debug(f" - (Skipping missing optional) {item.src_path}")
                    continue
                raise ConfigurationError(f"[{to_posix(source)}] - does not exist!")

            logger.debug(f" - (Moving) {item.src_path} -> {item.dest_path}")
            staging.git.move(item.src_path, item.dest_path)

    def merge_package_manifest(self, staging: StagingWorkspace, package: MergePackageDescriptor) -> bool:
        """Merge the source manifest into the relocated one, then fix submodules and references."""
        dest_name = self.settings.transform_package_name(package.name)
        source = self.store.require(package.name)
        dest = self.store.require(dest_name, destination=True)
        package_folder = os.path.join(staging.path, package.dest_path)
        layout = PackageLayout.scan(package_folder, os.path.join(staging.path, self.settings.scripts_folder_dest))

        logger.info(f"Updating [{package.name}] => [{dest_name}]")
        self.merger.merge_package(source, dest, package, layout)
        written = self.store.persist(dest)
        if written:
            staging.git.add(f"{package.dest_path}/{MANIFEST_FILE_NAME}")

        for submodule in package.submodules:
            module_path = f"{package.dest_path}/{submodule.path}"
            logger.info(f"Adding submodule {module_path} => {submodule.url}")
            staging.git.submodule_add(submodule.url, module_path)
            staging.submodules.append((submodule.url, module_path))

        renames = {pkg.name: self.settings.transform_package_name(pkg.name) for pkg in self.settings.packages}
        update_file_package_references(staging.git, staging.path, package.dest_path, renames)
        return written

    def cleanup_files(self, git: GitOperations, base: str, paths) -> List[str]:
        """Remove ``paths`` from the index, or from disk when they are not tracked."""
        removed = []
        for path in paths:
            if not os.path.lexists(os.path.join(base, path)):
                continue
            logger.info(f" - (Removing) {path}")
            try:
                git.remove(path, recursive=True)
            except GitOperationError as e:
                logger.debug(f" - (Git rm failed Removing) {path} - {e}")
                git.remove_from_disk(path)
            removed.append(path)
        return removed

    def merge_staging(self, staging: StagingWorkspace) -> CommitRecord:
        """Merge the rearranged staging branch and repair everything the merge got wrong."""
        record = CommitRecord("Merge Staged changes to main")
        merge_git = self.merge_git

        if not merge_git.merge(f"{STAGING_REMOTE}/{staging.handle.branch_name}"):
            self.cleanup_files(merge_git, self.merge_root, self.settings.merge_files_to_cleanup)
            self.arbitrator.add_submodule_paths(path for _, path in staging.submodules)
            self.arbitrator.resolve(record)

        record.append("Identifying and fixing merge issues from staged repos")
        submodule_paths = [path for _, path in staging.submodules]
        packages_folder = self.settings.packages_folder
        reconciler = TreeReconciler(
            merge_git,
            make_main_verify_ignore(self.settings, self.merge_root, submodule_paths),
            record_root=self.merge_root,
        )
        reconciler.reconcile(
            os.path.join(staging.path, packages_folder),
            os.path.join(self.merge_root, packages_folder),
            STAGING_REMOTE,
            record,
        )

        for name in self.settings.fix_bad_merge_root_files:
            source = os.path.join(staging.path, name)
            if not os.path.isfile(source):
                continue
            change = validate_file(source, os.path.join(self.merge_root, name))
            if change is not None:
                record.append(change.audit_line(self.merge_root))
                merge_git.add_force(name)

        self.restore_submodules(staging.submodules)

        self.check_root_package()
        self.cleanup_files(merge_git, self.merge_root, self.settings.merge_files_to_cleanup)
        self.update_root_manifest()
        update_workspace_metadata(merge_git, self.merge_root, self.store, self.settings)

        commit_changes(merge_git, record, self.prefix)
        return record

    def restore_submodules(self, submodules: List[Tuple[str, str]]) -> None:
        logger.info("Resetting up submodules")
        for url, path in submodules:
            try:
                self.merge_git.submodule_add(url, path)
            except GitOperationError as e:
                if "already exists" not in str(e):
                    raise
                logger.debug(f" - Submodule {path} already exists")

    def update_root_manifest(self) -> bool:
        root = self.store.require(self.settings.root_project_name, destination=True)
        self.merger.seed_root(root)
        self.merger.update_root_package(root)
        if self.store.persist(root):
            self.merge_git.add(MANIFEST_FILE_NAME)
            return True
        return False
