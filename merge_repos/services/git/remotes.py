"""Remote housekeeping"""
from typing import Iterable, List

from merge_repos.logging_config import get_logger
from merge_repos.services.git.operations import GitOperations

logger = get_logger(__name__)


def remove_temporary_remotes(gateway: GitOperations, repo_keys: Iterable[str]) -> List[str]:
    """Remove remotes left behind by an earlier run, named after configured repos."""
    keys = set(repo_keys)
    removed = []
    for name, urls in gateway.remotes().items():
        if urls.get("fetch") and name in keys:
            logger.info(f"Removing previous remote {name} - {urls['fetch']}")
            gateway.remove_remote(name)
            removed.append(name)
    return removed
