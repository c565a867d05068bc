"""Scratch workspace model"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class WorkspaceHandle:
    """A disposable local clone used for one repository during one run."""
    path: str
    branch_name: str
    remote_name: Optional[str] = None

    @property
    def merge_ref(self) -> str:
        """Ref to merge once the workspace has been added as a remote."""
        remote = self.remote_name or "origin"
        return f"{remote}/{self.branch_name}"
