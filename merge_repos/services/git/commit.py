"""Committing accumulated work"""

from merge_repos.exceptions import StillConflictedError
from merge_repos.logging_config import get_logger
from merge_repos.models.commit import CommitRecord
from merge_repos.services.git.operations import GitOperations
from merge_repos.utils.text import format_indent_lines

logger = get_logger(__name__)


def commit_changes(gateway: GitOperations, record: CommitRecord, prefix: str) -> bool:
    """Commit the working tree with the record's message if anything is pending.

    A merge that left the tree unchanged is concluded without a commit so
    that the next merge can start.

    Args:
        gateway: Working tree to commit
        record: Accumulated commit message, marked committed on success
        prefix: Prefix placed in front of the message

    Returns:
        True if the record has been committed (now or earlier)

    Raises:
        StillConflictedError: If conflicted paths remain in the working tree
    """
    conflicts = gateway.conflicted()
    if conflicts:
        raise StillConflictedError([entry.path for entry in conflicts], "Conflicting files! -- unable to commit")

    if gateway.has_changes():
        logger.info(f"Committing Changes - {format_indent_lines(21, record.message)}")
        gateway.commit(record.prefixed(prefix))
        record.mark_committed()
    elif gateway.merge_in_progress():
        logger.info("Merge brought no changes, concluding it without a commit")
        gateway.quit_merge()
    else:
        logger.info("No commit required...")

    return record.committed
