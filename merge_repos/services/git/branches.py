"""Working branch creation and publishing"""

import os
import shutil
from typing import Iterable, List, Optional

from merge_repos.exceptions import ConfigurationError, MergeReposError
from merge_repos.logging_config import get_logger
from merge_repos.services.git.identity import UserDetails, set_user
from merge_repos.services.git.operations import GitOperations

logger = get_logger(__name__)


def working_branch_name(owner: str, branch: str, prefix: str = "") -> str:
    """Name of the local working branch, e.g. ``alice/merge-main``."""
    return f"{owner}/{prefix}{branch.replace('/', '-')}"


def remove_stale_merge_branches(gateway: GitOperations, branch_names: Iterable[str]) -> List[str]:
    """Delete local per-repository merge branches left behind by an earlier run."""
    existing = set(gateway.local_branches())
    current = gateway.current_branch()
    removed = []
    for name in branch_names:
        if name in existing and name != current:
            logger.info(f"Removing Local branch {name}")
            gateway.delete_branch(name, force=True)
            removed.append(name)
    return removed


def fork_url(dest_repo: str, token: Optional[str] = None) -> str:
    if token:
        return f"https://{token}@github.com/{dest_repo}"
    return f"https://github.com/{dest_repo}"


def create_local_branch(
    fork_dest: str,
    origin_repo: str,
    origin_branch: str,
    dest_user: str,
    working_branch: str,
    user: UserDetails,
    token: Optional[str] = None,
    origin_url: Optional[str] = None,
    dest_url: Optional[str] = None,
) -> GitOperations:
    """Clone the origin repository and prepare the working branch.

    The clone gets the user's fork as ``origin`` and the canonical
    repository as ``upstream``; the fork branch is force-reset to the
    upstream branch before the working branch is created from it.

    Args:
        fork_dest: Folder for the merge clone, removed first when present
        origin_repo: Canonical repository as <owner>/<name>
        origin_branch: Branch of the canonical repository to start from
        dest_user: Account owning the fork
        working_branch: Local branch that collects the merge
        user: Identity written into the clone
        token: Optional token embedded in the fork push URL
        origin_url: Override for the canonical repository URL
        dest_url: Override for the fork URL

    Returns:
        GitOperations for the new clone

    Raises:
        ConfigurationError: If the fork and branch are the origin's own
    """
    if os.path.exists(fork_dest):
        logger.info(f"Removing previous working dest {fork_dest}")
        shutil.rmtree(fork_dest)
        if os.path.exists(fork_dest):
            raise MergeReposError(f"Failed to remove previous {fork_dest}")

    repo_name = origin_repo.split("/")[1]
    dest_repo = f"{dest_user}/{repo_name}"
    if dest_repo == origin_repo and origin_branch == working_branch:
        raise ConfigurationError(
            f"Unable to continue: The destination repo {dest_repo} and branch {working_branch} "
            f"for the current user {user.name} cannot be the same as the origin repo "
            f"{origin_repo} and branch {origin_branch}. The destination user credentials must be provided."
        )

    origin_url = origin_url or f"https://github.com/{origin_repo}"
    dest_url = dest_url or fork_url(dest_repo, token)

    merge_git = GitOperations.clone(origin_url, fork_dest, origin_branch)
    set_user(merge_git, user)

    remotes = merge_git.remotes()
    logger.info(f"Setting origin repo as {dest_repo}")
    if "origin" in remotes:
        merge_git.remove_remote("origin")
    merge_git.add_remote_and_fetch("origin", dest_url)

    logger.info(f"Setting upstream repo to {origin_repo}")
    if "upstream" in remotes:
        merge_git.remove_remote("upstream")
    merge_git.add_remote_and_fetch("upstream", origin_url, origin_branch)

    merge_git.reset_hard(f"upstream/{origin_branch}")
    merge_git.push("origin", origin_branch, force=True)

    logger.info(f"Creating new local branch {working_branch} from origin/{origin_branch}")
    merge_git.checkout("-b", working_branch, f"origin/{origin_branch}")

    # Start from upstream so the final PR carries no stale fork commits
    merge_git.reset_hard(f"upstream/{origin_branch}")

    return merge_git


def push_to_branch(gateway: GitOperations) -> bool:
    """Force-push the current branch to ``origin`` when it differs from its upstream.

    Returns:
        True if a push was performed
    """
    branch = gateway.current_branch()
    ahead, behind = gateway.ahead_behind()
    logger.info(f"{branch}, status = ahead {ahead}; behind {behind}")
    if ahead == 0 and behind == 0:
        logger.info("No push required...")
        return False

    if "origin" not in gateway.remotes():
        raise ConfigurationError("Origin remote does not exist")

    gateway.push("origin", branch, force=True, set_upstream=True)
    gateway.push_tags("origin")
    return True
