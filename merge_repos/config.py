"""Configuration handling for merge-repos"""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from merge_repos.constants import COMMIT_PREFIX
from merge_repos.exceptions import ConfigurationError
from merge_repos.models.descriptors import (
    MergeFileDescriptor,
    MergePackageDescriptor,
    RepoDescriptor,
)

DEFAULT_ORIGIN_REPO = "open-telemetry/opentelemetry-sandbox-web-js"
DEFAULT_MAIN_BRANCH = "main"
DEFAULT_STAGING_BRANCH = "auto-merge/repo-staging"
DEFAULT_CLONE_LOCATION = ".auto-merge/temp"
DEFAULT_DEST_BASE_FOLDER = "auto-merge"
DEFAULT_BRANCH_PREFIX = "auto-merge"
DEFAULT_ROOT_PROJECT_NAME = "opentelemetry-sandbox-web-js"


@dataclass
class Config:
    """Run options for a single merge-repos invocation, with validation."""

    command: str = "sync"  # sync, merge

    # Locations and branches
    clone_to: str = DEFAULT_CLONE_LOCATION
    origin_repo: str = DEFAULT_ORIGIN_REPO
    staging_branch: str = DEFAULT_STAGING_BRANCH
    dest_branch: str = DEFAULT_MAIN_BRANCH
    staging_start_point: Optional[str] = None

    # Execution modes
    test: bool = False
    no_pr: bool = False
    verbose: bool = False
    debug: bool = False

    # Identity overrides
    origin_user: Optional[str] = None
    dest_user: Optional[str] = None

    # GitHub integration
    github_token: Optional[str] = None
    github_url: Optional[str] = None

    settings_file: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_command()
        self._validate_origin_repo()
        self._validate_branches()
        self._validate_clone_to()
        if not self.github_token:
            self.github_token = os.environ.get("GITHUB_TOKEN")

    def _validate_command(self):
        allowed = ["sync", "merge"]
        if self.command not in allowed:
            raise ValueError(f"command must be one of {allowed}, got '{self.command}'")

    def _validate_origin_repo(self):
        """Validate origin_repo is in the <owner>/<repo-name> form."""
        tokens = (self.origin_repo or "").strip().split("/")
        if len(tokens) != 2 or not all(tokens):
            raise ValueError(f"{self.origin_repo} must be in the format <owner>/<repo-name>")
        self.origin_repo = self.origin_repo.strip()

    def _validate_branches(self):
        for name in ("staging_branch", "dest_branch"):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValueError(f"{name} cannot be empty")
            setattr(self, name, value.strip())

    def _validate_clone_to(self):
        if not self.clone_to or not self.clone_to.strip():
            raise ValueError("clone_to cannot be empty")

    @property
    def origin_repo_name(self) -> str:
        return self.origin_repo.split("/")[1]

    @property
    def origin_repo_url(self) -> str:
        return "https://github.com/" + self.origin_repo

    @property
    def effective_clone_to(self) -> str:
        """Clone location, moved up one directory in test mode."""
        if self.test:
            return "../" + self.clone_to
        return self.clone_to

    @property
    def create_pr(self) -> bool:
        return not self.no_pr

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "command": self.command,
            "clone_to": self.clone_to,
            "origin_repo": self.origin_repo,
            "staging_branch": self.staging_branch,
            "dest_branch": self.dest_branch,
            "staging_start_point": self.staging_start_point,
            "test": self.test,
            "no_pr": self.no_pr,
            "verbose": self.verbose,
            "debug": self.debug,
            "origin_user": self.origin_user,
            "dest_user": self.dest_user,
            "github_token": self.github_token,
            "github_url": self.github_url,
            "settings_file": self.settings_file,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        known_fields = {
            "command",
            "clone_to",
            "origin_repo",
            "staging_branch",
            "dest_branch",
            "staging_start_point",
            "test",
            "no_pr",
            "verbose",
            "debug",
            "origin_user",
            "dest_user",
            "github_token",
            "github_url",
            "settings_file",
        }

        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)


def _default_repos() -> Tuple[RepoDescriptor, ...]:
    return (
        RepoDescriptor(
            key="otel-js",
            url="https://github.com/open-telemetry/opentelemetry-js",
            branch="main",
            dest_folder=DEFAULT_DEST_BASE_FOLDER + "/js",
        ),
        RepoDescriptor(
            key="otel-js-contrib",
            url="https://github.com/open-telemetry/opentelemetry-js-contrib",
            branch="main",
            dest_folder=DEFAULT_DEST_BASE_FOLDER + "/contrib",
        ),
    )


def _default_packages() -> Tuple[MergePackageDescriptor, ...]:
    return (
        MergePackageDescriptor(
            name="@opentelemetry/api",
            src_path="auto-merge/js/api",
            dest_path="pkgs/api",
        ),
        MergePackageDescriptor(
            name="@opentelemetry/semantic-conventions",
            src_path="auto-merge/js/packages/opentelemetry-semantic-conventions",
            dest_path="pkgs/semantic-conventions",
            no_tests=True,
        ),
        MergePackageDescriptor(
            name="@opentelemetry/core",
            src_path="auto-merge/js/packages/opentelemetry-core",
            dest_path="pkgs/core",
        ),
    )


def _default_files_to_merge() -> Tuple[MergeFileDescriptor, ...]:
    optional = {
        "tsconfig.base.es5.json",
        "tsconfig.base.esm.json",
        "tsconfig.es5.json",
        "tsconfig.esm.json",
        "tsconfig.esnext.json",
    }
    names = (
        ".markdownlint.json",
        "eslint.config.js",
        "karma.base.js",
        "karma.webpack.js",
        "karma.worker.js",
        "tsconfig.base.es5.json",
        "tsconfig.base.esm.json",
        "tsconfig.base.esnext.json",
        "tsconfig.base.json",
        "tsconfig.es5.json",
        "tsconfig.esm.json",
        "tsconfig.esnext.json",
        "tsconfig.json",
        "webpack.node-polyfills.js",
        "prettier.config.js",
    )
    return tuple(
        MergeFileDescriptor("auto-merge/js/" + name, name, name in optional)
        for name in names
    )


DEFAULT_DEPENDENCY_VERSIONS = {
    "@types/mocha": "^10.0.0",
    "@types/node": "^18.6.5",
    "@types/sinon": "^10.0.13",
    "@types/webpack-env": "1.16.3",
    "@types/jquery": "^3.5.14",
    "@typescript-eslint/eslint-plugin": "5.3.1",
    "@typescript-eslint/parser": "5.3.1",
    "zone-js": "^0.11.4",
}

DEFAULT_MISSING_DEV_DEPS = {
    "@types/mocha": "^10.0.0",
    "@types/node": "^18.6.5",
    "@types/sinon": "^10.0.13",
    "@types/webpack-env": "1.16.3",
    "@types/jquery": "^3.5.14",
    "karma-mocha-webworker": "1.3.0",
    "@typescript-eslint/eslint-plugin": "5.3.1",
    "@typescript-eslint/parser": "5.3.1",
    "eslint": "7.32.0",
    "eslint-plugin-header": "3.1.1",
    "eslint-plugin-node": "11.1.0",
    "typedoc": "0.22.18",
    "typedoc-plugin-missing-exports": "1.0.0",
    "typedoc-plugin-resolve-crossmodule-references": "0.2.2",
}

DEFAULT_INIT_SCRIPTS = {
    "build": "rush rebuild --verbose",
    "rebuild": "npm run build",
    "compile": "npm run build",
    "postinstall": "rush update",
    "test": "rush test --verbose",
    "lint": "rush lint --verbose",
    "lint:fix": "rush lint:fix --verbose",
    "rush-update": "rush update --recheck --purge --full",
    "rush-purge": "rush purge",
    "fullClean": "git clean -xdf && npm install && rush update --recheck --full",
    "fullCleanBuild": "npm run fullClean && npm run rebuild",
}

DEFAULT_INIT_DEV_DEPENDENCY_VERSIONS = {
    "@microsoft/rush": "5.86.0",
    "markdownlint-cli": "^0.31.1",
    "typedoc": "^0.22.17",
    "codecov": "^3.8.3",
    "rollup": "^3.10.0",
    "@rollup/plugin-commonjs": "^24.0.0",
    "@rollup/plugin-node-resolve": "^15.0.1",
    "@rollup/plugin-replace": "^5.0.2",
    "rollup-plugin-cleanup": "^3.2.1",
    "rollup-plugin-minify-es": "^1.1.1",
    "uglify-js": "^3.17.4",
}

DEFAULT_COMMON_DEV_DEPENDENCY_VERSIONS = {
    "@typescript-eslint/eslint-plugin": "5.3.1",
    "@typescript-eslint/parser": "5.3.1",
    "eslint": "7.32.0",
    "eslint-plugin-header": "3.1.1",
    "eslint-plugin-import": "2.25.3",
    "eslint-plugin-node": "11.1.0",
    "eslint-config-prettier": "8.5.0",
    "eslint-plugin-prettier": "4.2.1",
    "istanbul-instrumenter-loader": "3.0.1",
    "karma": "6.3.16",
    "karma-chrome-launcher": "3.1.0",
    "karma-coverage-istanbul-reporter": "3.0.3",
    "karma-mocha": "^2.0.1",
    "karma-spec-reporter": "^0.0.34",
    "karma-webpack": "^4.0.2",
    "karma-typescript": "^5.5.3",
    "mocha": "10.0.0",
    "chromium": "^3.0.3",
    "puppeteer": "^14.2.1",
    "sinon": "^14.0.0",
    "nyc": "^15.1.0",
    "ts-loader": "8.4.0",
    "ts-mocha": "10.0.0",
    "typescript": "^4.7.4",
    "webpack": "^4.46.0",
    "pako": "^2.0.3",
}


@dataclass(frozen=True)
class WorkspaceMetadataDefaults:
    """Initial values used when the workspace project list does not exist yet."""
    file_name: str = "rush.json"
    schema: str = "https://developer.microsoft.com/json-schemas/rush/v5/rush.schema.json"
    npm_version: str = "9.5.1"
    rush_version: str = "5.93.1"
    project_folder_max_depth: int = 8
    tool_dependency: str = "@microsoft/rush"


@dataclass(frozen=True)
class MergeSettings:
    """Static tables driving both pipelines.

    Every component receives the settings at construction time; nothing
    reads module level state while a pipeline is running.
    """

    repos: Tuple[RepoDescriptor, ...] = field(default_factory=_default_repos)
    packages: Tuple[MergePackageDescriptor, ...] = field(default_factory=_default_packages)
    files_to_merge: Tuple[MergeFileDescriptor, ...] = field(default_factory=_default_files_to_merge)

    # Paths removed from the staging clone before its commit, and from the merge result
    files_to_cleanup: Tuple[str, ...] = ("lerna.json",)
    merge_files_to_cleanup: Tuple[str, ...] = ()
    fix_bad_merge_root_files: Tuple[str, ...] = ()

    drop_dependencies: Tuple[str, ...] = ("lerna",)
    dependency_versions: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_DEPENDENCY_VERSIONS))
    add_missing_dev_deps: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MISSING_DEV_DEPS))
    common_dev_dependency_versions: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_COMMON_DEV_DEPENDENCY_VERSIONS)
    )
    root_dev_dependencies: Dict[str, str] = field(default_factory=dict)
    init_scripts: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_INIT_SCRIPTS))
    init_dev_dependency_versions: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_INIT_DEV_DEPENDENCY_VERSIONS)
    )
    cleanup_scripts: Tuple[str, ...] = ()

    # Folder names that are never walked, moved or reconciled
    ignore_folders: Tuple[str, ...] = (".vs", "protos")
    # Folder names of submodule roots inside relocated packages
    submodule_folder_names: Tuple[str, ...] = ("protos",)

    # Relocated packages are renamed by swapping this prefix
    package_rename_from: str = "@opentelemetry/"
    package_rename_to: str = "@opentelemetry/sandbox-"

    scripts_folder_src: str = "auto-merge/js/scripts"
    scripts_folder_dest: str = "scripts"
    packages_folder: str = "pkgs"

    workspace_metadata: WorkspaceMetadataDefaults = field(default_factory=WorkspaceMetadataDefaults)

    commit_prefix: str = COMMIT_PREFIX
    dest_base_folder: str = DEFAULT_DEST_BASE_FOLDER
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    root_project_name: str = DEFAULT_ROOT_PROJECT_NAME

    def __post_init__(self):
        keys = [repo.key for repo in self.repos]
        if len(set(keys)) != len(keys):
            raise ConfigurationError(f"Duplicate repo keys configured: {keys}")
        if not self.repos:
            raise ConfigurationError("At least one repo must be configured")

        # Derived descriptor fields are filled in once, up front
        object.__setattr__(self, "repos", apply_repo_defaults(self.repos, self.dest_base_folder, self.branch_prefix))

    @property
    def repo_keys(self) -> Tuple[str, ...]:
        return tuple(repo.key for repo in self.repos)

    @property
    def tag_prefixes(self) -> Tuple[str, ...]:
        return tuple(repo.tag_prefix + "/" for repo in self.repos)

    def is_drop_dependency(self, name: str) -> bool:
        return name in self.drop_dependencies

    def transform_package_name(self, name: str) -> str:
        """Destination name of a relocated package, other names are returned as is."""
        if not any(pkg.name == name for pkg in self.packages):
            return name
        if name.startswith(self.package_rename_from) and not name.startswith(self.package_rename_to):
            return self.package_rename_to + name[len(self.package_rename_from):]
        return name

    @classmethod
    def from_dict(cls, values: dict) -> "MergeSettings":
        """Create settings from a (JSON) dictionary, missing tables keep their defaults."""
        kwargs = {}
        if "repos" in values:
            kwargs["repos"] = tuple(
                RepoDescriptor.from_dict(key, details) for key, details in values["repos"].items()
            )
        if "packages" in values:
            kwargs["packages"] = tuple(
                MergePackageDescriptor.from_dict(pkg["name"], pkg) for pkg in values["packages"]
            )
        if "files_to_merge" in values:
            kwargs["files_to_merge"] = tuple(
                MergeFileDescriptor.from_dict(item) for item in values["files_to_merge"]
            )
        if "workspace_metadata" in values:
            kwargs["workspace_metadata"] = WorkspaceMetadataDefaults(**values["workspace_metadata"])

        for name in (
            "files_to_cleanup",
            "merge_files_to_cleanup",
            "fix_bad_merge_root_files",
            "drop_dependencies",
            "cleanup_scripts",
            "ignore_folders",
            "submodule_folder_names",
        ):
            if name in values:
                kwargs[name] = tuple(values[name])

        for name in (
            "dependency_versions",
            "add_missing_dev_deps",
            "common_dev_dependency_versions",
            "root_dev_dependencies",
            "init_scripts",
            "init_dev_dependency_versions",
        ):
            if name in values:
                kwargs[name] = dict(values[name])

        for name in (
            "package_rename_from",
            "package_rename_to",
            "scripts_folder_src",
            "scripts_folder_dest",
            "packages_folder",
            "commit_prefix",
            "dest_base_folder",
            "branch_prefix",
            "root_project_name",
        ):
            if name in values:
                kwargs[name] = values[name]

        return cls(**kwargs)


def apply_repo_defaults(repos, dest_base: str, branch_prefix: str) -> Tuple[RepoDescriptor, ...]:
    """Fill in destination folder, merge branch and tag prefix defaults for every repo."""
    return tuple(repo.with_defaults(dest_base, branch_prefix) for repo in repos)


def load_settings(path: Optional[str] = None) -> MergeSettings:
    """Load settings from a JSON file, or the built-in defaults when no path is given.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    if not path:
        return MergeSettings()

    try:
        with open(path, "r", encoding="utf-8") as settings_file:
            values = json.load(settings_file)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Unable to load settings from {path}: {e}") from e

    if not isinstance(values, dict):
        raise ConfigurationError(f"Settings file {path} must contain a JSON object")

    try:
        return MergeSettings.from_dict(values)
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"Invalid settings in {path}: {e}") from e
