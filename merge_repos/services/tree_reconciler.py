"""Directory tree comparison and repair between a source tree and its merged copy"""
import os
import shutil
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from merge_repos.exceptions import GitOperationError
from merge_repos.logging_config import get_logger
from merge_repos.models.commit import CommitRecord
from merge_repos.utils.paths import relative_to, to_posix

logger = get_logger(__name__)

# (repo key, destination folder being examined, entry name, is root level) -> ignore?
IgnorePredicate = Callable[[str, str, str, bool], bool]

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class TreeChange:
    """One repair made to the destination tree."""
    code: str
    path: str
    description: str
    index: str = "x"

    def audit_line(self, root: Optional[str] = None) -> str:
        path = relative_to(self.path, root) if root else self.path
        return f"({self.index},{self.code}) {path} - {self.description}"


@dataclass
class ReconcileResult:
    changes: List[TreeChange] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def _same_content(first: str, second: str) -> bool:
    with open(first, "rb") as a, open(second, "rb") as b:
        while True:
            block_a = a.read(_CHUNK_SIZE)
            block_b = b.read(_CHUNK_SIZE)
            if block_a != block_b:
                return False
            if not block_a:
                return True


def validate_file(source_file: str, dest_file: str) -> Optional[TreeChange]:
    """Make ``dest_file`` byte-identical to ``source_file``.

    Sizes are compared first, then content. The destination is
    overwritten on any difference.

    Returns:
        The change made, or None when the files already matched
    """
    change = None
    if not os.path.exists(dest_file):
        change = TreeChange("missing", dest_file, "Re-Copying master file")
    else:
        source_size = os.path.getsize(source_file)
        dest_size = os.path.getsize(dest_file)
        if source_size != dest_size:
            change = TreeChange("M", dest_file, f"Re-Copying master file as size mismatch {dest_size} !== {source_size}")
        elif not _same_content(source_file, dest_file):
            change = TreeChange("C", dest_file, "Re-Copying master file as content is different")

    if change is not None:
        shutil.copyfile(source_file, dest_file)
        shutil.copymode(source_file, dest_file)
    return change


class TreeReconciler:
    """Forces a destination subtree to match its source subtree.

    Only filesystem operations plus index bookkeeping (force-add of
    repaired files, removal of extra paths) are performed.
    """

    def __init__(self, gateway, ignore: IgnorePredicate, record_root: Optional[str] = None):
        """Initialize the reconciler.

        Args:
            gateway: GitOperations (or compatible) owning the destination tree
            ignore: Predicate selecting entries that are neither copied nor removed
            record_root: Folder audit paths are shown relative to
        """
        self.gateway = gateway
        self.ignore = ignore
        self.record_root = record_root

    def reconcile(self, source: str, dest: str, repo_key: str = "",
                  record: Optional[CommitRecord] = None) -> ReconcileResult:
        """Repair ``dest`` so that it mirrors ``source``.

        Returns:
            ReconcileResult listing every change; empty when the trees already matched
        """
        result = ReconcileResult()
        os.makedirs(dest, exist_ok=True)
        self._walk(to_posix(source), to_posix(dest), repo_key, 0, result)

        if record is not None:
            for change in result.changes:
                record.append(change.audit_line(self.record_root))
        return result

    def _walk(self, source: str, dest: str, repo_key: str, level: int, result: ReconcileResult) -> None:
        is_root = level == 0
        source_names = sorted(os.listdir(source))
        dest_names = sorted(os.listdir(dest)) if os.path.isdir(dest) else []

        logger.debug(f" - (Verifying) {source} <=> {dest}")
        for name in source_names:
            if self.ignore(repo_key, dest, name, is_root):
                logger.debug(f" - (Ignored) {source}/{name}")
                continue

            source_path = f"{source}/{name}"
            dest_path = f"{dest}/{name}"
            if os.path.isdir(source_path):
                if os.path.isdir(dest_path):
                    pass
                elif os.path.lexists(dest_path):
                    logger.info(f" - (Mismatch) {dest_path} is not a folder")
                    result.changes.append(TreeChange("T", dest_path, "Dest is file should be folder"))
                    self._remove(dest_path, recursive=False)
                    os.makedirs(dest_path)
                else:
                    os.makedirs(dest_path)
                self._walk(source_path, dest_path, repo_key, level + 1, result)
            else:
                if os.path.isdir(dest_path):
                    result.changes.append(TreeChange("T", dest_path, "Dest is folder should be file", "*"))
                    self._remove(dest_path, recursive=True)
                change = validate_file(source_path, dest_path)
                if change is not None:
                    result.changes.append(change)
                    self.gateway.add_force(dest_path)

        source_set = set(source_names)
        for name in dest_names:
            if name in source_set or self.ignore(repo_key, dest, name, is_root):
                continue

            dest_path = f"{dest}/{name}"
            if os.path.isdir(dest_path) and not os.path.islink(dest_path):
                result.changes.append(TreeChange("F", dest_path, f"Removing extra folder {name}", "*"))
                self._remove(dest_path, recursive=True)
            else:
                result.changes.append(TreeChange("E", dest_path, "Removing extra file", "*"))
                self._remove(dest_path, recursive=False)

    def _remove(self, path: str, recursive: bool) -> None:
        """Remove through the index, falling back to the filesystem for untracked leftovers."""
        try:
            self.gateway.remove(path, recursive=recursive)
        except GitOperationError as e:
            logger.debug(f" - git rm failed for {path}, removing from disk: {e}")
        if os.path.lexists(path):
            self.gateway.remove_from_disk(path)
