"""Ignore predicates shared by relocation and reconciliation"""
import os
from typing import Iterable, Sequence

from merge_repos.config import MergeSettings
from merge_repos.constants import ALWAYS_IGNORED
from merge_repos.models.descriptors import RepoDescriptor
from merge_repos.services.folder_relocator import RelocateIgnore
from merge_repos.services.tree_reconciler import IgnorePredicate
from merge_repos.utils.paths import relative_to


def _within(path: str, folder: str) -> bool:
    """True when ``path`` is ``folder`` or lies below it."""
    return path == folder or path.startswith(folder + "/")


def is_ignore_folder(repos: Sequence[RepoDescriptor], path: str, is_root: bool,
                     ignore_folders: Iterable[str] = ()) -> bool:
    """Whether ``path`` must stay where it is during relocation.

    Fixed names are always ignored; at the top level any folder that is
    (or contains) a repository destination folder is ignored as well.
    """
    if path in ALWAYS_IGNORED or path in tuple(ignore_folders):
        return True

    if is_root:
        return any(_within(repo.dest_folder, path) for repo in repos)

    return False


def make_relocate_ignore(settings: MergeSettings) -> RelocateIgnore:
    def _ignore(path: str, is_root: bool) -> bool:
        return is_ignore_folder(settings.repos, path, is_root, settings.ignore_folders)

    return _ignore


def make_staging_verify_ignore(settings: MergeSettings, merge_root: str,
                               submodule_paths: Iterable[str] = ()) -> IgnorePredicate:
    """Reconciliation filter used when fixing each synced repository.

    Entries of the repository being checked, and the folders leading to
    them, are processed; everything inside another repository's
    destination folder is left alone.
    """
    submodules = tuple(submodule_paths)
    fixed = set(ALWAYS_IGNORED) | {".vs"}

    def _ignore(repo_key: str, dest_folder: str, name: str, is_root: bool) -> bool:
        if name in fixed:
            return True

        rel = relative_to(os.path.join(dest_folder, name), merge_root)
        if any(_within(rel, sub) for sub in submodules):
            return True

        for repo in settings.repos:
            if repo.key == repo_key:
                if _within(rel, repo.dest_folder) or _within(repo.dest_folder, rel):
                    return False
            elif _within(rel, repo.dest_folder):
                return True

        return False

    return _ignore


def make_main_verify_ignore(settings: MergeSettings, merge_root: str,
                            submodule_paths: Iterable[str] = ()) -> IgnorePredicate:
    """Reconciliation filter used when fixing the staged packages on the main branch."""
    submodules = tuple(submodule_paths)
    fixed = set(ALWAYS_IGNORED) | {".vs", "node_modules", settings.dest_base_folder}

    def _ignore(repo_key: str, dest_folder: str, name: str, is_root: bool) -> bool:
        if name in fixed:
            return True

        rel = relative_to(os.path.join(dest_folder, name), merge_root)
        return any(_within(rel, sub) for sub in submodules)

    return _ignore
