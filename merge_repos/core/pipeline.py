"""Shared setup, publishing and teardown for the merge pipelines"""
import os
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union, TYPE_CHECKING

from rich.console import Console

from merge_repos.config import MergeSettings
from merge_repos.constants import MERGE_MESSAGE_LINES
from merge_repos.exceptions import ConfigurationError, GitOperationError, PullRequestExistsError
from merge_repos.logging_config import get_logger
from merge_repos.models.commit import CommitRecord
from merge_repos.services.conflict_arbitrator import ConflictArbitrator
from merge_repos.services.git import (
    GitOperations,
    UserDetails,
    create_local_branch,
    get_user,
    push_to_branch,
    remove_temporary_remotes,
)
from merge_repos.services.github_service import GitHubService
from merge_repos.services.manifest_merger import ManifestMerger
from merge_repos.services.manifest_store import ManifestStore
from merge_repos.core.cleanup import CleanupStack
from merge_repos.core.workspaces import WorkspaceRegistry
from merge_repos.utils.paths import find_repo_root, to_posix

if TYPE_CHECKING:
    from merge_repos.config import Config

console = Console()
logger = get_logger(__name__)


def merge_message(record: CommitRecord, max_lines: int = MERGE_MESSAGE_LINES) -> str:
    """Short digest of a commit record used as a merge commit message.

    The first line becomes a heading, the next lines a bullet list.
    """
    lines = record.lines()
    if not lines:
        return ""

    text = f"## {lines[0].strip()}"
    for line in lines[1:max_lines]:
        text += f"\n  - {line.strip()}"
    if len(lines) > max_lines:
        text += "\n  - ..."
    return text


@dataclass
class PipelineResult:
    """What a pipeline run produced."""
    working_branch: str = ""
    pr_title: str = ""
    pr_body: str = ""
    pr_required: bool = False
    pr_created: bool = False
    records: List[CommitRecord] = field(default_factory=list)


class MergePipeline:
    """Base class holding the merge clone, the scratch clones and their cleanup."""

    # Shown in the PR title, e.g. [AutoMerge][Staging]
    stage = ""
    title_lead = ""

    def __init__(self, config: Union["Config", dict], settings: MergeSettings,
                 github: Optional[GitHubService] = None, repo_root: Optional[str] = None):
        """Initialize the pipeline.

        Args:
            config: Run configuration
            settings: Static merge configuration
            github: PR gateway, created from ``config`` when not given
            repo_root: Root of the local repository, located from the working directory when not given
        """
        self.config = config
        self.settings = settings
        self.repo_root = to_posix(repo_root or find_repo_root())
        self.local_git = GitOperations(self.repo_root, config)
        self.github = github if github is not None else GitHubService(config)

        self.cleanup = CleanupStack()
        self.workspaces = WorkspaceRegistry()
        self.store = ManifestStore()
        self.merger = ManifestMerger(settings, self.store)

        clone_to = config.get("effective_clone_to") or config.get("clone_to")
        self.merge_root = to_posix(os.path.normpath(os.path.join(self.repo_root, clone_to)))
        self.merge_git: Optional[GitOperations] = None
        self.arbitrator: Optional[ConflictArbitrator] = None
        self.user: Optional[UserDetails] = None
        self.dest_owner = ""
        self.result = PipelineResult()

    @property
    def prefix(self) -> str:
        return self.settings.commit_prefix

    @property
    def title_prefix(self) -> str:
        title = f"{self.prefix}[{self.stage}] {self.title_lead}"
        if self.config.get("test"):
            title = "[Test]" + title
        return title

    def register_restore(self) -> None:
        """Put the local repository back on its current branch when the run ends."""
        self.cleanup.register("Close GitHub session", self.github.close)
        current = self.local_git.current_branch()

        def _restore():
            if self.local_git.current_branch() != current:
                logger.info(f"Restoring branch {current}")
                self.local_git.checkout(current)

        self.cleanup.register(f"Restore branch {current}", _restore)
        self.cleanup.register("Remove scratch workspaces", self.workspaces.remove_all)

    def check_existing_pr(self, base: str) -> None:
        """Abort when this account still has an open automatic merge PR against ``base``.

        Raises:
            PullRequestExistsError: If such a PR is open
        """
        if not self.config.get("create_pr", True) or self.config.get("test"):
            return
        origin_repo = self.config.get("origin_repo")
        if self.github.has_open_auto_merge_pr(origin_repo, base):
            raise PullRequestExistsError(origin_repo, base)

    def init_merge_clone(self, origin_branch: str, working_branch: str,
                         temporary_remotes: Iterable[str] = ()) -> GitOperations:
        """Clone the origin repository and create the working branch.

        Returns:
            GitOperations for the merge clone
        """
        override = self.config.get("dest_user") or self.config.get("origin_user")
        self.user = get_user(self.local_git, override)
        self.dest_owner = self.config.get("dest_user") or self.user.user
        if not self.dest_owner:
            raise ConfigurationError("Unable to identify the GitHub account for the fork, use --dest-user")

        origin_repo = self.config.get("origin_repo")
        self.github.ensure_fork(origin_repo)

        self.result.working_branch = working_branch
        self.merge_git = create_local_branch(
            self.merge_root,
            origin_repo,
            origin_branch,
            self.dest_owner,
            working_branch,
            self.user,
            token=self.config.get("github_token"),
            origin_url=self.config.get("origin_repo_url"),
        )
        remove_temporary_remotes(self.merge_git, tuple(self.settings.repo_keys) + tuple(temporary_remotes))
        self.arbitrator = ConflictArbitrator(
            self.merge_git,
            submodule_paths=self.merge_git.submodule_paths(),
            submodule_folder_names=self.settings.submodule_folder_names,
        )
        return self.merge_git

    def add_to_pr(self, title: str, body: str) -> None:
        self.result.pr_required = True
        self.result.pr_title += title
        if self.result.pr_body:
            self.result.pr_body += "\n"
        self.result.pr_body += body

    def push_tags(self, remote: str) -> None:
        """Push tags to ``remote``, a failure only warns."""
        try:
            self.merge_git.push_tags(remote)
        except GitOperationError as e:
            logger.warning(f"Unable to push tags to {remote}: {e}")

    def publish(self, base: str) -> bool:
        """Push the working branch and open the PR when one is needed.

        Returns:
            True if a PR was created
        """
        result = self.result
        if not result.pr_required:
            console.print("[green]Nothing to merge, no PR required[/green]")
            return False

        title = self.title_prefix + result.pr_title
        if self.config.get("test") or not self.config.get("create_pr", True):
            reason = "Test mode" if self.config.get("test") else "PR creation disabled"
            console.print(f"[yellow]{reason}, changes left on {result.working_branch}[/yellow]")
            logger.info(f"PR title: {title}")
            return False

        if not push_to_branch(self.merge_git):
            return False

        self.github.create_pull_request(
            self.config.get("origin_repo"),
            base,
            f"{self.dest_owner}:{result.working_branch}",
            title,
            result.pr_body,
        )
        result.pr_created = True

        self.push_tags("origin")
        self.push_tags("upstream")
        return True
