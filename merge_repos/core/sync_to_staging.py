"""Stage one: sync every upstream repository into the staging branch"""
import os
from typing import List, Tuple

from merge_repos.constants import MANIFEST_FILE_NAME
from merge_repos.core.ignore import is_ignore_folder, make_relocate_ignore, make_staging_verify_ignore
from merge_repos.core.pipeline import MergePipeline, PipelineResult, console, merge_message
from merge_repos.core.workspaces import scratch_path
from merge_repos.logging_config import get_logger
from merge_repos.models.commit import CommitRecord
from merge_repos.models.descriptors import RepoDescriptor
from merge_repos.models.workspace import WorkspaceHandle
from merge_repos.services.folder_relocator import FolderRelocator
from merge_repos.services.git import (
    GitOperations,
    commit_changes,
    get_user,
    remove_stale_merge_branches,
    rename_tags,
    set_user,
    working_branch_name,
)
from merge_repos.services.manifest_store import ManifestStore
from merge_repos.services.tree_reconciler import TreeReconciler
from merge_repos.utils.paths import to_posix

logger = get_logger(__name__)


class SyncOrchestrator(MergePipeline):
    """Brings each configured repository, moved under its destination folder,
    into a working branch created from the staging branch and raises a PR.
    """

    stage = "Staging"
    title_lead = "Merging change(s) from "

    def run(self) -> PipelineResult:
        staging_branch = self.config.get("staging_branch")
        console.print(
            f"[bold]Syncing {len(self.settings.repos)} repo(s) into "
            f"{self.config.get('origin_repo')}@{staging_branch}[/bold]"
        )

        with self.cleanup:
            self.register_restore()
            self.check_existing_pr(staging_branch)

            owner = get_user(self.local_git, self.config.get("origin_user")).branch_owner
            self.init_merge_clone(staging_branch, working_branch_name(owner, staging_branch))
            remove_stale_merge_branches(self.merge_git, [repo.merge_branch_name for repo in self.settings.repos])
            self.remove_potential_merge_conflicts()

            synced = []
            for repo in self.settings.repos:
                handle, record = self.sync_source_repo(repo)
                self.merge_source_repo(repo, handle, record)
                synced.append((repo, handle))

            self.fix_merge_issues(synced)
            self.publish(staging_branch)

        return self.result

    def remove_potential_merge_conflicts(self) -> CommitRecord:
        """Remove every top level entry that does not belong to a synced repository."""
        removed = []
        for name in sorted(os.listdir(self.merge_root)):
            if is_ignore_folder(self.settings.repos, name, True, self.settings.ignore_folders):
                continue
            logger.debug(f" - Removing {name}")
            self.merge_git.remove(name, recursive=True)
            removed.append(name)

        record = CommitRecord(f"Removed {len(removed)} potential conflicting file(s)")
        if removed:
            record.append("Deleted...")
            record.extend(f" - {name}" for name in removed)
            commit_changes(self.merge_git, record, self.prefix)
            self.result.records.append(record)
        return record

    def sync_source_repo(self, repo: RepoDescriptor) -> Tuple[WorkspaceHandle, CommitRecord]:
        """Clone ``repo`` into a scratch workspace and move its content under its destination folder.

        Returns:
            The scratch workspace and the commit record describing the sync
        """
        handle = self.workspaces.register(
            WorkspaceHandle(scratch_path(self.merge_root, repo.key), repo.branch, repo.key)
        )
        console.print(f"Syncing [cyan]{repo.key}[/cyan] from {repo.url}@{repo.branch}")
        logger.debug(f"Merging {repo.key} using {repo.merge_branch_name} into {repo.dest_folder}")

        scratch = GitOperations.clone(repo.url, handle.path, repo.branch, self.config)
        if self.user is not None:
            set_user(scratch, self.user)
        scratch.checkout_reset(repo.branch, repo.branch_start_point)
        scratch.reset_hard()
        scratch.clean()

        commit_hash, details = scratch.show_commit()
        rename_tags(scratch, f"{repo.tag_prefix}/", self.settings.tag_prefixes)

        record = CommitRecord(f"{repo.key} @ [{commit_hash[:7]}...]({repo.url}/commit/{commit_hash})")
        record.append(details)
        record.append(f"### Moving files from ./ to {repo.dest_folder}")
        relocator = FolderRelocator(handle.path, scratch, make_relocate_ignore(self.settings))
        record.extend(f" - {path}" for path in relocator.relocate("", repo.dest_folder))

        self.update_repo_manifest(scratch, handle.path, repo, record)
        commit_changes(scratch, record, self.prefix)
        return handle, record

    def update_repo_manifest(self, scratch: GitOperations, base: str, repo: RepoDescriptor,
                             record: CommitRecord) -> List[str]:
        """Strip drop-listed dependencies from the relocated root manifest, if there is one."""
        folder = os.path.join(base, repo.dest_folder)
        if not os.path.isfile(os.path.join(folder, MANIFEST_FILE_NAME)):
            return []

        store = ManifestStore()
        manifest = store.load(folder, repo.key, repo.dest_folder)
        dropped = self.merger.drop_dependencies(manifest)
        if dropped and store.persist(manifest):
            rel_path = to_posix(os.path.join(repo.dest_folder, MANIFEST_FILE_NAME))
            scratch.add(rel_path)
            record.append(f"Removed {', '.join(dropped)} from {rel_path}")
        return dropped

    def merge_source_repo(self, repo: RepoDescriptor, handle: WorkspaceHandle, record: CommitRecord) -> CommitRecord:
        """Merge the synced scratch workspace into the working branch."""
        self.merge_git.add_remote_and_fetch(repo.key, handle.path, repo.branch)

        merge_record = CommitRecord(f"Merging {repo.key}@{repo.branch}")
        merge_record.append(merge_message(record))
        try:
            if not self.merge_git.merge(handle.merge_ref, allow_unrelated=True):
                self.arbitrator.add_submodule_paths(GitOperations(handle.path, self.config).submodule_paths())
                self.arbitrator.resolve(merge_record)

            if commit_changes(self.merge_git, merge_record, self.prefix):
                self.add_to_pr(f"{repo.key}; ", f"# Changes from {repo.key}@{repo.branch} ({repo.url})\n{record.message}")
                self.result.records.append(merge_record)
        finally:
            self.merge_git.remove_remote(repo.key)

        return merge_record

    def fix_merge_issues(self, synced: List[Tuple[RepoDescriptor, WorkspaceHandle]]) -> CommitRecord:
        """Force each repository folder of the merge clone to match its scratch workspace."""
        record = CommitRecord("Identifying and fixing merge issues from staged repos")
        reconciler = TreeReconciler(
            self.merge_git,
            make_staging_verify_ignore(self.settings, self.merge_root, self.merge_git.submodule_paths()),
            record_root=self.merge_root,
        )
        for repo, handle in synced:
            record.append(f"Processing {repo.key}")
            reconciler.reconcile(handle.path, self.merge_root, repo.key, record)

        if commit_changes(self.merge_git, record, self.prefix):
            self.result.records.append(record)
            if not self.result.pr_required:
                keys = "".join(f"{repo.key}; " for repo, _ in synced)
                self.add_to_pr(keys, f"# Found and Fixed merge issues\n{record.message}")
        return record
