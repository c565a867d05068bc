"""Recursive relocation of a folder under version control"""
import os
import posixpath
import shutil
from typing import Callable, Iterable, List

from merge_repos.constants import ALWAYS_IGNORED
from merge_repos.exceptions import PartialMoveError
from merge_repos.logging_config import get_logger

logger = get_logger(__name__)

# (path relative to the base folder, is top level call) -> ignore?
RelocateIgnore = Callable[[str, bool], bool]


def _normalize(path: str) -> str:
    path = path.replace("\\", "/").strip("/")
    return "" if path in ("", ".") else posixpath.normpath(path)


class FolderRelocator:
    """Moves a folder's contents to a new location with ``git mv``.

    Folders are moved whole when possible; when the destination already
    exists (or at the top level) they are merged file by file instead.
    """

    def __init__(self, base: str, gateway, ignore: RelocateIgnore,
                 verify_ignore_names: Iterable[str] = ALWAYS_IGNORED):
        """Initialize the relocator.

        Args:
            base: Working tree root, all paths are relative to it
            gateway: GitOperations (or compatible) for the working tree
            ignore: Predicate for entries that must stay where they are
            verify_ignore_names: Entry names that may remain once a folder has been moved
        """
        self.base = base
        self.gateway = gateway
        self.ignore = ignore
        self.verify_ignore_names = set(verify_ignore_names)

    def _full(self, path: str) -> str:
        return os.path.join(self.base, path) if path else self.base

    def relocate(self, source: str, dest: str, level: int = 0) -> List[str]:
        """Relocate ``source`` to ``dest``.

        Returns:
            Moved paths, folders moved in one operation end with ``/``

        Raises:
            PartialMoveError: If real files are left behind in ``source``
        """
        source = _normalize(source)
        dest = _normalize(dest)
        if source == dest or self.ignore(source, level == 0):
            logger.debug(f" - Ignoring {source} ({dest})")
            return []

        source_full = self._full(source)
        if not os.path.isdir(source_full):
            logger.debug(f" - {source} => {dest}")
            self.gateway.move(source, dest)
            return [source]

        files = []
        folders = []
        for name in sorted(os.listdir(source_full)):
            child = posixpath.join(source, name) if source else name
            if self.ignore(child, level == 0):
                continue
            if os.path.isdir(os.path.join(source_full, name)):
                folders.append(name)
            else:
                files.append(child)

        moved: List[str] = []
        dest_full = self._full(dest)
        if not files or level == 0 or os.path.isdir(dest_full):
            if not os.path.isdir(dest_full):
                logger.debug(f" - (Creating) {dest_full}")
                os.makedirs(dest_full)

            for child in files:
                logger.debug(f" - (File) {child} -> {dest}")
                self.gateway.move(child, dest)
                moved.append(child)

            for name in folders:
                child = posixpath.join(source, name) if source else name
                moved.extend(self.relocate(child, f"{dest}/{name}", level + 1))
        else:
            logger.debug(f" - (Moving) {source} -> {dest}")
            self.gateway.move(source, posixpath.dirname(dest) or ".")
            moved.append(source + "/")

        self._verify_moved(source)
        return moved

    def _verify_moved(self, source: str) -> None:
        """Fail when real files remain in ``source``, otherwise remove the emptied folder."""
        source_full = self._full(source)
        if not source or not os.path.isdir(source_full):
            return

        remaining = 0
        for current, dirs, names in os.walk(source_full):
            dirs[:] = [name for name in dirs if name not in self.verify_ignore_names]
            remaining += sum(1 for name in names if name not in self.verify_ignore_names)

        if remaining > 0:
            logger.error(f"!!! Not all files moved!! {remaining} - {source}")
            raise PartialMoveError(source, remaining)

        logger.debug(f" - (unlinking) {source_full}")
        shutil.rmtree(source_full)
