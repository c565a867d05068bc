"""Static configuration descriptors"""
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class RepoDescriptor:
    """One upstream repository synchronised into the destination."""
    key: str
    url: str
    branch: str = "main"
    dest_folder: str = ""
    tag_prefix: str = ""
    merge_branch_name: str = ""
    branch_start_point: Optional[str] = None

    def with_defaults(self, dest_base: str, branch_prefix: str) -> "RepoDescriptor":
        """Fill in the derived fields that were left empty."""
        return replace(
            self,
            dest_folder=self.dest_folder or f"{dest_base}/{self.key}",
            merge_branch_name=self.merge_branch_name or f"{branch_prefix}/{self.key}",
            tag_prefix=self.tag_prefix or self.key,
        )

    @classmethod
    def from_dict(cls, key: str, values: dict) -> "RepoDescriptor":
        return cls(
            key=key,
            url=values["url"],
            branch=values.get("branch", "main"),
            dest_folder=values.get("destFolder", ""),
            tag_prefix=values.get("tagPrefix", ""),
            merge_branch_name=values.get("mergeBranchName", ""),
            branch_start_point=values.get("branchStartPoint"),
        )


@dataclass(frozen=True)
class SubmoduleDescriptor:
    """A submodule registered under a relocated package."""
    url: str
    path: str


@dataclass(frozen=True)
class MergePackageDescriptor:
    """How a single package is relocated and configured in the destination."""
    name: str
    src_path: str
    dest_path: str
    no_tests: bool = False
    no_build: bool = False
    no_lint: bool = False
    no_version: bool = False
    no_browser_tests: bool = False
    no_worker_tests: bool = False
    no_node_tests: bool = False
    compile_pre: Tuple[str, ...] = field(default_factory=tuple)
    compile_post: Tuple[str, ...] = field(default_factory=tuple)
    scripts: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    submodules: Tuple[SubmoduleDescriptor, ...] = field(default_factory=tuple)

    @property
    def custom_scripts(self) -> Dict[str, str]:
        return dict(self.scripts)

    @classmethod
    def from_dict(cls, name: str, values: dict) -> "MergePackageDescriptor":
        return cls(
            name=name,
            src_path=values["srcPath"],
            dest_path=values["destPath"],
            no_tests=values.get("noTests", False),
            no_build=values.get("noBuild", False),
            no_lint=values.get("noLint", False),
            no_version=values.get("noVersion", False),
            no_browser_tests=values.get("noBrowserTests", False),
            no_worker_tests=values.get("noWorkerTests", False),
            no_node_tests=values.get("noNodeTests", False),
            compile_pre=tuple(values.get("compileScripts", {}).get("pre", [])),
            compile_post=tuple(values.get("compileScripts", {}).get("post", [])),
            scripts=tuple(sorted(values.get("scripts", {}).items())),
            submodules=tuple(
                SubmoduleDescriptor(url=sub["url"], path=sub["path"])
                for sub in values.get("submodules", [])
            ),
        )


@dataclass(frozen=True)
class MergeFileDescriptor:
    """A root level file moved from a synced repo into the destination root."""
    src_path: str
    dest_path: str
    optional: bool = False

    @classmethod
    def from_dict(cls, values: dict) -> "MergeFileDescriptor":
        return cls(values["srcPath"], values["destPath"], values.get("optional", False))
