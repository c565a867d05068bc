"""Automatic conflict arbitration in favour of the upstream (their) side"""
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Tuple

from merge_repos.exceptions import GitOperationError, StillConflictedError
from merge_repos.logging_config import get_logger
from merge_repos.models.commit import CommitRecord
from merge_repos.models.status import FileStatus, StatusCode

logger = get_logger(__name__)


class ResolutionAction(Enum):
    """Terminal action applied to a conflicted path."""
    CHECKOUT_THEIRS = "checkout-theirs"
    CHECKOUT_OURS = "checkout-ours"
    REMOVE = "remove"


@dataclass(frozen=True)
class Resolution:
    action: ResolutionAction
    description: str


@dataclass
class ArbitrationResult:
    """Paths resolved by one arbitration pass and the count per state pair."""
    resolved: List[Tuple[FileStatus, Resolution]] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=OrderedDict)

    @property
    def count(self) -> int:
        return len(self.resolved)


def decide(index: StatusCode, working_dir: StatusCode) -> Resolution:
    """Map an (index, working tree) status pair to its resolution.

    The upstream version always wins, except for paths only added on our
    side which are kept for the tree reconciliation pass to judge.
    """
    theirs = ResolutionAction.CHECKOUT_THEIRS

    if index is StatusCode.DELETED:
        if working_dir is StatusCode.UPDATED:
            return Resolution(theirs, "Deleted by us => checkout theirs")
        if working_dir is StatusCode.DELETED:
            return Resolution(ResolutionAction.REMOVE, "Removed from both")
        return Resolution(ResolutionAction.REMOVE, "Removed from theirs")

    if index is StatusCode.ADDED:
        if working_dir is StatusCode.ADDED:
            return Resolution(theirs, "Added in both => checkout theirs")
        if working_dir is StatusCode.MODIFIED:
            return Resolution(theirs, "Added in theirs, modified in ours => checkout theirs")
        if working_dir is StatusCode.DELETED:
            return Resolution(theirs, "Added in theirs, deleted in ours => checkout theirs")
        if working_dir is StatusCode.UPDATED:
            return Resolution(ResolutionAction.CHECKOUT_OURS, "Added in ours => checkout ours")

    elif index is StatusCode.RENAMED:
        if working_dir is StatusCode.MODIFIED:
            return Resolution(theirs, "Renamed in theirs, modified in ours => checkout theirs")
        if working_dir is StatusCode.DELETED:
            return Resolution(theirs, "Renamed in theirs, deleted in ours => checkout theirs")

    elif index is StatusCode.UPDATED:
        if working_dir is StatusCode.DELETED:
            return Resolution(ResolutionAction.REMOVE, "Unmerged, deleted by them => remove")
        if working_dir is StatusCode.ADDED:
            return Resolution(theirs, "Unmerged, added by them => checkout theirs")
        if working_dir is StatusCode.UPDATED:
            return Resolution(theirs, "Unmerged, both modified => checkout theirs")

    return Resolution(theirs, "=> checkout theirs")


def audit_line(entry: FileStatus, description: str) -> str:
    return f"({entry.index.letter},{entry.working_dir.letter}) {entry.path} - {description}"


class ConflictArbitrator:
    """Resolves every conflicted path of a working tree after a merge attempt."""

    def __init__(self, gateway, submodule_paths: Iterable[str] = (),
                 submodule_folder_names: Iterable[str] = ("protos",)):
        """Initialize the arbitrator.

        Args:
            gateway: GitOperations (or compatible) for the working tree being merged
            submodule_paths: Registered submodule roots, relative to the working tree
            submodule_folder_names: Folder names that are always submodule roots
        """
        self.gateway = gateway
        self.submodule_paths = set(submodule_paths)
        self.submodule_folder_names = tuple(submodule_folder_names)

    def add_submodule_paths(self, paths: Iterable[str]) -> None:
        """Register more submodule roots, e.g. ones brought in by the merge being resolved."""
        self.submodule_paths.update(paths)

    def is_submodule_root(self, path: str) -> bool:
        if path in self.submodule_paths:
            return True
        return any(path == name or path.endswith("/" + name) for name in self.submodule_folder_names)

    def _force_add(self, path: str) -> bool:
        """Force-add ``path``; returns False when it was removed as a submodule root instead."""
        try:
            self.gateway.add_force(path)
            return True
        except GitOperationError:
            if not self.is_submodule_root(path):
                raise
            logger.info(f" - Ignoring git add for known submodule folder - {path}")
            self.gateway.remove(path)
            return False

    def apply(self, entry: FileStatus, resolution: Resolution) -> ResolutionAction:
        """Apply one resolution and return the action that was finally taken."""
        if resolution.action is ResolutionAction.REMOVE:
            self.gateway.remove(entry.path)
            return ResolutionAction.REMOVE

        side = "--theirs" if resolution.action is ResolutionAction.CHECKOUT_THEIRS else "--ours"
        self.gateway.checkout(side, "--", entry.path)
        if not self._force_add(entry.path):
            return ResolutionAction.REMOVE
        return resolution.action

    def resolve(self, record: CommitRecord) -> ArbitrationResult:
        """Resolve all conflicts, appending an audit trail to ``record``.

        Raises:
            StillConflictedError: If any path is still conflicted afterwards
        """
        result = ArbitrationResult()
        conflicts = self.gateway.conflicted()
        if not conflicts:
            logger.info("No Conflicts")
            return result

        count = len(conflicts)
        logger.info(f"Resolving {count} conflicts")
        record.append(
            f"### Auto resolving {count} conflict{'s' if count > 1 else ''} to select the master repo version"
        )

        audit = []
        for entry in conflicts:
            result.summary[entry.state] = result.summary.get(entry.state, 0) + 1
            resolution = decide(entry.index, entry.working_dir)
            action = self.apply(entry, resolution)
            if action is not resolution.action:
                resolution = Resolution(action, resolution.description + " (submodule removed)")
            audit.append(audit_line(entry, resolution.description))
            logger.debug(audit[-1])
            result.resolved.append((entry, resolution))

        remaining = self.gateway.conflicted()
        if remaining:
            raise StillConflictedError([entry.path for entry in remaining], "\n".join(audit))

        record.append("Summary of changes by file state")
        for state, total in result.summary.items():
            first = StatusCode.parse(state[0]).description
            second = StatusCode.parse(state[1]).description
            record.append(f"{state} ({first} <=> {second}): {total}")
        record.extend(audit)

        return result
