"""Merging source package manifests into their relocated destination copies"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from merge_repos.config import MergeSettings
from merge_repos.constants import DEPENDENCY_SECTIONS, MANIFEST_SORTED_SECTIONS
from merge_repos.logging_config import get_logger
from merge_repos.models.descriptors import MergePackageDescriptor
from merge_repos.models.manifest import PackageManifest
from merge_repos.services.manifest_store import ManifestStore

logger = get_logger(__name__)

_REMOVED_SCRIPTS = ("precompile", "prewatch")


@dataclass
class MergeResult:
    """Outcome of merging one manifest."""
    changed: bool = False
    dropped: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


@dataclass(frozen=True)
class PackageLayout:
    """Build related files found in a relocated package folder."""
    tsconfigs: tuple = ()
    has_tsconfig_all: bool = False
    has_karma_browser: bool = False
    has_karma_worker: bool = False
    has_karma_conf: bool = False
    scripts_path: str = "../../scripts"

    @classmethod
    def scan(cls, package_folder: str, scripts_folder: str) -> "PackageLayout":
        def exists(name):
            return os.path.exists(os.path.join(package_folder, name))

        return cls(
            tsconfigs=tuple(
                name for name in ("tsconfig.json", "tsconfig.esm.json", "tsconfig.esnext.json") if exists(name)
            ),
            has_tsconfig_all=exists("tsconfig.all.json"),
            has_karma_browser=exists("karma.browser.conf.js"),
            has_karma_worker=exists("karma.worker.conf.js"),
            has_karma_conf=exists("karma.conf.js"),
            scripts_path=os.path.relpath(scripts_folder, package_folder).replace("\\", "/"),
        )

    @property
    def tsconfig_args(self) -> str:
        if self.has_tsconfig_all:
            return "tsconfig.all.json"
        return " ".join(self.tsconfigs)


def sort_sections(manifest: PackageManifest) -> None:
    """Sort the keys of every dependency and scripts section."""
    for name in MANIFEST_SORTED_SECTIONS:
        section = manifest.data.get(name)
        if section:
            manifest.data[name] = {key: section[key] for key in sorted(section)}


def _script_enabled(script: str, descriptor: MergePackageDescriptor, layout: PackageLayout) -> bool:
    if script.startswith("test"):
        if descriptor.no_tests:
            return False
        if script.startswith("test:browser"):
            return layout.has_karma_browser and not descriptor.no_browser_tests
        if script.startswith("test:webworker"):
            return layout.has_karma_worker and not descriptor.no_worker_tests
        if script.startswith("test:node"):
            return not descriptor.no_node_tests
        return True
    if script.startswith(("build", "compile", "clean")):
        return not descriptor.no_build
    if script.startswith("lint"):
        return not descriptor.no_lint
    if script.startswith("version"):
        return not descriptor.no_version
    return True


def standard_scripts(descriptor: MergePackageDescriptor, layout: PackageLayout,
                     existing: Dict[str, str]) -> Dict[str, str]:
    """The script table every relocated package is given."""
    tsconfig = layout.tsconfig_args
    scripts = {
        "build": "npm run compile && npm run package",
        "rebuild": "npm run clean && npm run build",
        "compile": f"npm run lint:fix-quiet && npm run version && tsc --build {tsconfig}".rstrip(),
        "clean": f"tsc --build --clean {tsconfig}".rstrip(),
        "package": "npx rollup -c ./rollup.config.js --bundleConfigAsCjs",
        "test": "npm run test:node && npm run test:browser && npm run test:webworker",
        "test:node": "nyc ts-mocha -p tsconfig.json 'test/**/*.test.ts' --exclude 'test/browser/**/*.ts'",
        "test:browser": "nyc karma start ./karma.browser.conf.js --single-run",
        "test:webworker": "nyc karma start karma.worker.js --single-run",
        "test:debug": "nyc karma start ./karma.debug.conf.js --wait",
        "lint": "eslint . --ext .ts",
        "lint:fix": "eslint . --ext .ts --fix",
        "lint:fix-quiet": "eslint . --ext .ts --fix --quiet",
        "version": f"node {layout.scripts_path}/version-update.js",
        "watch": f"npm run version && tsc --build --watch {tsconfig}".rstrip(),
    }

    pre = descriptor.compile_pre
    if not pre and existing.get("protos"):
        pre = ("protos",)
    if pre:
        scripts["pre-build"] = " && ".join(f"npm run {name}" for name in pre)
        scripts["compile"] = scripts["compile"].replace("&& tsc --build", "&& npm run pre-build && tsc --build")
    if descriptor.compile_post:
        scripts["post-build"] = " && ".join(f"npm run {name}" for name in descriptor.compile_post)
        scripts["compile"] += " && npm run post-build"

    if not layout.has_karma_browser and layout.has_karma_conf:
        scripts["test:browser"] = "nyc karma start ./karma.conf.js --single-run"

    return scripts


class ManifestMerger:
    """Applies version precedence, script rewriting and sorting to destination manifests."""

    def __init__(self, settings: MergeSettings, store: ManifestStore):
        self.settings = settings
        self.store = store

    @property
    def root(self) -> Optional[PackageManifest]:
        return self.store.get(self.settings.root_project_name, destination=True)

    def update_dependencies(self, source: PackageManifest, dest: PackageManifest, section: str,
                            result: Optional[MergeResult] = None) -> bool:
        """Merge one dependency section of ``source`` into ``dest``.

        For each source key the written version is, in order of precedence:
        the current version of a package relocated by this run, a differing
        root manifest pin (warning), a pinned override (warning), or the
        source version.

        Returns:
            True if the destination section changed
        """
        result = result if result is not None else MergeResult()
        source_deps = source.section(section)
        if not source_deps:
            return False

        root = self.root
        root_deps = (root.section(section) if root is not None else None) or {}
        dest_deps = dest.section(section, create=True)
        changed = False
        logger.debug(f" -- {source.name}[{section}]")

        for key, source_version in source_deps.items():
            if self.settings.is_drop_dependency(key):
                if key in dest_deps:
                    del dest_deps[key]
                    logger.info(f"    -- {key} -- dropped")
                    result.dropped.append(key)
                    changed = True
                continue

            dest_key = self.settings.transform_package_name(key)
            relocated = self.store.get(key)
            version = source_version
            if relocated is not None and relocated.version:
                version = relocated.version
            elif key in root_deps and root_deps[key] != source_version:
                version = root_deps[key]
                result.warn(f"   -- {key}  Using root version: [{version}] (source [{source_version}])")
            elif key in self.settings.dependency_versions and self.settings.dependency_versions[key] != source_version:
                version = self.settings.dependency_versions[key]
                result.warn(f"   -- {key}  Using pinned version: [{version}] (source [{source_version}])")

            if dest_key != key and key in dest_deps:
                # Renamed relocated package, drop the upstream name
                del dest_deps[key]
                changed = True

            if dest_deps.get(dest_key) != version:
                logger.debug(f"   -- {dest_key} => {version}")
                dest_deps[dest_key] = version
                changed = True

        result.changed = result.changed or changed
        return changed

    def update_scripts(self, dest: PackageManifest, descriptor: MergePackageDescriptor,
                       layout: PackageLayout) -> bool:
        """Rewrite the script table of a relocated package.

        Disabled scripts are kept as empty strings. Running this twice in a
        row changes nothing the second time.
        """
        changed = False
        scripts = dest.section("scripts", create=True)

        if scripts.get("protos:generate"):
            generator = f"node {layout.scripts_path}/generate-protos.js"
            if scripts["protos:generate"] != generator:
                scripts["protos:generate"] = generator
                changed = True

        for name, value in standard_scripts(descriptor, layout, scripts).items():
            target = value if _script_enabled(name, descriptor, layout) else ""
            if scripts.get(name) != target:
                scripts[name] = target
                changed = True

        for name in _REMOVED_SCRIPTS:
            if name in scripts:
                del scripts[name]
                changed = True

        for name, value in descriptor.custom_scripts.items():
            if scripts.get(name) != value:
                scripts[name] = value
                changed = True

        return changed

    def add_missing_dev_dependencies(self, dest: PackageManifest) -> bool:
        dev_deps = dest.section("devDependencies", create=True)
        changed = False
        for table in (self.settings.add_missing_dev_deps, self.settings.common_dev_dependency_versions):
            for key, version in table.items():
                if not dev_deps.get(key):
                    dev_deps[key] = version
                    changed = True
        return changed

    def merge_package(self, source: PackageManifest, dest: PackageManifest,
                      descriptor: MergePackageDescriptor, layout: PackageLayout) -> MergeResult:
        """Bring ``dest`` in line with ``source`` for one relocated package."""
        result = MergeResult()
        dest_name = self.settings.transform_package_name(descriptor.name)

        if source.version != dest.version:
            dest.data["version"] = source.version
            result.changed = True
        if dest.name != dest_name:
            dest.data["name"] = dest_name
            result.changed = True

        if self.update_scripts(dest, descriptor, layout):
            result.changed = True
        for section in DEPENDENCY_SECTIONS:
            self.update_dependencies(source, dest, section, result)
        if self.add_missing_dev_dependencies(dest):
            result.changed = True

        sort_sections(dest)
        return result

    def seed_root(self, root: PackageManifest) -> bool:
        """Add the initial root dev dependencies and scripts that are missing."""
        changed = False
        dev_deps = root.section("devDependencies", create=True)
        for table in (self.settings.init_dev_dependency_versions, self.settings.common_dev_dependency_versions):
            for key, version in table.items():
                if not dev_deps.get(key):
                    dev_deps[key] = version
                    changed = True

        scripts = root.section("scripts", create=True)
        for key, value in self.settings.init_scripts.items():
            if not scripts.get(key):
                scripts[key] = value
                changed = True

        for key in self.settings.cleanup_scripts:
            if key in scripts:
                del scripts[key]
                changed = True

        return changed

    def update_root_package(self, root: PackageManifest) -> bool:
        """Force the configured root dev dependencies and sort the root manifest."""
        dev_deps = root.section("devDependencies", create=True)
        changed = False
        for key, version in self.settings.root_dev_dependencies.items():
            if dev_deps.get(key) != version:
                dev_deps[key] = version
                changed = True
        sort_sections(root)
        return changed

    def drop_dependencies(self, manifest: PackageManifest) -> List[str]:
        """Remove drop-listed dependencies from every section of ``manifest``."""
        dropped = []
        for section in DEPENDENCY_SECTIONS:
            deps = manifest.section(section) or {}
            for key in [key for key in deps if self.settings.is_drop_dependency(key)]:
                del deps[key]
                dropped.append(f"{section}/{key}")
        if dropped:
            logger.info(f"Dropped {', '.join(dropped)} from {manifest.path}")
        return dropped
