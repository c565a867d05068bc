"""Data models for merge-repos."""

from .status import StatusCode, FileStatus, parse_porcelain
from .commit import CommitRecord
from .workspace import WorkspaceHandle
from .manifest import PackageManifest
from .descriptors import (
    RepoDescriptor,
    MergePackageDescriptor,
    MergeFileDescriptor,
    SubmoduleDescriptor,
)

__all__ = [
    "StatusCode",
    "FileStatus",
    "parse_porcelain",
    "CommitRecord",
    "WorkspaceHandle",
    "PackageManifest",
    "RepoDescriptor",
    "MergePackageDescriptor",
    "MergeFileDescriptor",
    "SubmoduleDescriptor",
]
