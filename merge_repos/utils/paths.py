"""Path helpers"""
import os
from pathlib import Path
from typing import Optional, Union

from merge_repos.exceptions import RepoRootNotFoundError

MAX_ROOT_SEARCH_DEPTH = 10


def to_posix(path: Union[str, Path]) -> str:
    return str(path).replace("\\", "/")


def relative_to(path: Union[str, Path], base: Union[str, Path]) -> str:
    """Relative posix path from ``base`` to ``path``."""
    return to_posix(os.path.relpath(str(path), str(base)))


def find_repo_root(start: Optional[Union[str, Path]] = None) -> str:
    """Walk up from ``start`` (the working directory by default) to the folder holding ``.git``.

    Raises:
        RepoRootNotFoundError: If no repository is found within the search depth
    """
    current = Path(start or os.getcwd()).resolve()
    for _ in range(MAX_ROOT_SEARCH_DEPTH):
        if (current / ".git").exists():
            return to_posix(current)
        if current.parent == current:
            break
        current = current.parent

    raise RepoRootNotFoundError(to_posix(start or os.getcwd()))
