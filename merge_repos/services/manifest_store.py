"""Loading, registering and persisting package manifests"""
import json
import os
from typing import Dict, Optional

from merge_repos.constants import MANIFEST_FILE_NAME
from merge_repos.exceptions import ManifestError
from merge_repos.logging_config import get_logger
from merge_repos.models.manifest import PackageManifest
from merge_repos.utils.paths import to_posix
from merge_repos.utils.text import remove_trailing_comma

logger = get_logger(__name__)


class ManifestStore:
    """Registries of source and destination manifests keyed by package name.

    This is the only component that writes package.json files; a
    manifest is written only when its serialized form differs from the
    text it was loaded from.
    """

    def __init__(self):
        self.source: Dict[str, PackageManifest] = {}
        self.destination: Dict[str, PackageManifest] = {}

    def _registry(self, destination: bool) -> Dict[str, PackageManifest]:
        return self.destination if destination else self.source

    def load(self, folder: str, key: str, rel_path: str = "", destination: bool = False) -> PackageManifest:
        """Read ``folder/package.json`` and register it under ``key``.

        Raises:
            ManifestError: If the manifest is missing or is not valid JSON
        """
        manifest_path = to_posix(os.path.join(folder, MANIFEST_FILE_NAME))
        logger.debug(f"Loading package {manifest_path}")
        if not os.path.isfile(manifest_path):
            raise ManifestError(f"Missing package manifest {manifest_path}")

        with open(manifest_path, "r", encoding="utf-8") as manifest_file:
            text = manifest_file.read()

        try:
            # Some upstream manifests carry trailing commas
            data = json.loads(remove_trailing_comma(text))
        except ValueError as e:
            raise ManifestError(f"Unable to parse {manifest_path}: {e}") from e

        manifest = PackageManifest(
            key=key,
            path=manifest_path,
            data=data,
            original_text=text,
            folder=to_posix(folder),
            rel_path=rel_path.strip("/"),
        )
        self._registry(destination)[key] = manifest
        return manifest

    def get(self, key: str, destination: bool = False) -> Optional[PackageManifest]:
        return self._registry(destination).get(key)

    def require(self, key: str, destination: bool = False) -> PackageManifest:
        manifest = self.get(key, destination)
        if manifest is None:
            side = "destination" if destination else "source"
            raise ManifestError(f"Package {key} has not been loaded as a {side} manifest")
        return manifest

    def unregister(self, key: str, destination: bool = False) -> None:
        self._registry(destination).pop(key, None)

    def check_package_name(self, folder: str, expected_name: str, rel_path: str = "",
                           destination: bool = False) -> bool:
        """Load (if needed) and confirm the manifest in ``folder`` is named ``expected_name``."""
        manifest = self.get(expected_name, destination)
        if manifest is None:
            try:
                manifest = self.load(folder, expected_name, rel_path, destination)
            except ManifestError as e:
                logger.error(str(e))
                return False

        if manifest.name == expected_name:
            return True

        logger.error(f"Incorrect package [{manifest.name}] !== [{expected_name}]")
        self.unregister(expected_name, destination)
        return False

    def is_relocated(self, name: str) -> bool:
        """True when ``name`` is a package being relocated by this run."""
        return name in self.source

    def persist(self, manifest: PackageManifest) -> bool:
        """Write the manifest if it changed since it was loaded.

        Returns:
            True if the file was written
        """
        text = manifest.serialize()
        if text == manifest.original_text:
            return False

        logger.info(f"{manifest.path} changed -- rewriting...")
        with open(manifest.path, "w", encoding="utf-8") as manifest_file:
            manifest_file.write(text)
        manifest.original_text = text
        return True
