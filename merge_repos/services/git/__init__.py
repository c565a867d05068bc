"""Git-related services for merge-repos."""

from .operations import GitOperations
from .commit import commit_changes
from .tags import rename_tags
from .identity import UserDetails, get_user, set_user
from .remotes import remove_temporary_remotes
from .branches import create_local_branch, push_to_branch, remove_stale_merge_branches, working_branch_name

__all__ = [
    "GitOperations",
    "commit_changes",
    "rename_tags",
    "UserDetails",
    "get_user",
    "set_user",
    "remove_temporary_remotes",
    "create_local_branch",
    "push_to_branch",
    "remove_stale_merge_branches",
    "working_branch_name",
]
