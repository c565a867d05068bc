"""Scratch workspace bookkeeping"""
import os
import shutil
from typing import Dict, List

from merge_repos.exceptions import ConfigurationError
from merge_repos.logging_config import get_logger
from merge_repos.models.workspace import WorkspaceHandle
from merge_repos.utils.paths import to_posix

logger = get_logger(__name__)


def scratch_path(merge_root: str, name: str) -> str:
    """Folder of the scratch clone ``name`` next to the merge clone."""
    return to_posix(f"{merge_root.rstrip('/')}-{name}")


class WorkspaceRegistry:
    """Scratch clones that exist during one run.

    Paths and merge refs must be unique among the live workspaces.
    """

    def __init__(self):
        self._handles: Dict[str, WorkspaceHandle] = {}

    @property
    def handles(self) -> List[WorkspaceHandle]:
        return list(self._handles.values())

    def register(self, handle: WorkspaceHandle) -> WorkspaceHandle:
        for existing in self._handles.values():
            if existing.path == handle.path:
                raise ConfigurationError(f"Scratch workspace {handle.path} is already in use")
            if existing.merge_ref == handle.merge_ref:
                raise ConfigurationError(
                    f"Scratch workspaces {existing.path} and {handle.path} both use {handle.merge_ref}"
                )

        if os.path.exists(handle.path):
            logger.info(f"Removing previous scratch workspace {handle.path}")
            shutil.rmtree(handle.path)

        self._handles[handle.path] = handle
        return handle

    def remove(self, handle: WorkspaceHandle) -> None:
        self._handles.pop(handle.path, None)
        if os.path.exists(handle.path):
            logger.debug(f"Removing scratch workspace {handle.path}")
            shutil.rmtree(handle.path)

    def remove_all(self) -> None:
        for handle in self.handles:
            self.remove(handle)
