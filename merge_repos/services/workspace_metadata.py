"""Workspace project list (rush.json) maintenance"""
import json
import os
from typing import Optional

from merge_repos.config import MergeSettings
from merge_repos.exceptions import ManifestError
from merge_repos.logging_config import get_logger
from merge_repos.services.manifest_store import ManifestStore
from merge_repos.utils.paths import to_posix
from merge_repos.utils.text import remove_trailing_comma

logger = get_logger(__name__)


def build_workspace_metadata(existing: Optional[dict], store: ManifestStore, settings: MergeSettings) -> dict:
    """Return the project list updated for every destination package.

    Existing projects keep their entries with a refreshed folder; new
    packages are appended; the list is sorted by package name.
    """
    defaults = settings.workspace_metadata
    metadata = existing if existing is not None else {
        "$schema": defaults.schema,
        "npmVersion": defaults.npm_version,
        "rushVersion": defaults.rush_version,
        "projectFolderMaxDepth": defaults.project_folder_max_depth,
        "projects": [],
    }

    root = store.get(settings.root_project_name, destination=True)
    if root is not None:
        tool_version = (root.section("devDependencies") or {}).get(defaults.tool_dependency)
        if tool_version:
            metadata["rushVersion"] = tool_version.replace("^", "", 1)

    metadata["projectFolderMaxDepth"] = defaults.project_folder_max_depth

    projects = metadata.setdefault("projects", [])
    by_name = {project.get("packageName"): project for project in projects}
    for key, manifest in store.destination.items():
        if key == settings.root_project_name:
            continue
        project = by_name.get(key)
        if project is not None:
            project["projectFolder"] = manifest.rel_path
        else:
            project = {
                "packageName": key,
                "projectFolder": manifest.rel_path,
                "shouldPublish": not manifest.private,
            }
            projects.append(project)
            by_name[key] = project

    metadata["projects"] = sorted(projects, key=lambda project: project.get("packageName") or "")
    return metadata


def update_workspace_metadata(gateway, root_folder: str, store: ManifestStore, settings: MergeSettings) -> bool:
    """Create or refresh the workspace project list in ``root_folder``.

    Returns:
        True if the file was written (and staged)
    """
    path = to_posix(os.path.join(root_folder, settings.workspace_metadata.file_name))
    text = None
    existing = None
    if os.path.exists(path):
        logger.debug(f"Loading {path}")
        with open(path, "r", encoding="utf-8") as metadata_file:
            text = metadata_file.read()
        try:
            existing = json.loads(remove_trailing_comma(text))
        except ValueError as e:
            raise ManifestError(f"Unable to parse {path}: {e}") from e

    new_text = json.dumps(build_workspace_metadata(existing, store, settings), indent=2) + "\n"
    if new_text == text:
        return False

    logger.info(f"{settings.workspace_metadata.file_name} changed -- rewriting...")
    with open(path, "w", encoding="utf-8") as metadata_file:
        metadata_file.write(new_text)
    gateway.add(settings.workspace_metadata.file_name)
    return True
