"""Git operations service"""

import os
import re
import shutil
from typing import Dict, List, Optional, Union, TYPE_CHECKING

import git

from merge_repos.exceptions import GitOperationError
from merge_repos.logging_config import get_logger
from merge_repos.models.status import FileStatus, StatusCode, parse_porcelain

if TYPE_CHECKING:
    from merge_repos.config import Config

logger = get_logger(__name__)

_REMOTE_LINE = re.compile(r"^(\S+)\s+(\S+)\s+\(([^)]*)\)$")
_COMMIT_LINE = re.compile(r"^commit\s+(\w+)", re.MULTILINE)


class GitOperations:
    """Service for Git operations on a single working tree.

    Every method waits for the underlying git process to exit before
    returning; failures are raised as GitOperationError.
    """

    def __init__(self, repo_path: str, config: Union["Config", dict, None] = None):
        """Initialize the service.

        Args:
            repo_path: Path to the git working tree (string path, not repo object)
            config: Configuration dictionary or Config object
        """
        self.repo_path = str(repo_path)
        self.config = config if config is not None else {}

    def _get_repo(self) -> git.Repo:
        """Open the repository.

        GitPython repos are lightweight - they don't clone, just open the existing repo.
        """
        try:
            return git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise GitOperationError("open", self.repo_path, f"not a git repository ({e})") from e

    def _run(self, command: str, *args, path: Optional[str] = None) -> str:
        """Run a git command in this working tree, wrapping failures."""
        repo = self._get_repo()
        try:
            return getattr(repo.git, command.replace("-", "_"))(*args)
        except git.exc.GitCommandError as e:
            stderr = (e.stderr or "").strip() or str(e)
            raise GitOperationError(command, path, stderr) from e
        finally:
            repo.close()

    @classmethod
    def clone(cls, url: str, dest: str, branch: Optional[str] = None,
              config: Union["Config", dict, None] = None) -> "GitOperations":
        """Clone ``url`` into ``dest`` and return a service for the new working tree."""
        logger.info(f"Cloning {url} (branch {branch or 'default'}) to {dest}")
        kwargs = {"branch": branch} if branch else {}
        try:
            repo = git.Repo.clone_from(url, dest, **kwargs)
            repo.close()
        except git.exc.GitCommandError as e:
            raise GitOperationError("clone", url, (e.stderr or "").strip() or str(e)) from e
        return cls(dest, config)

    # Branches and working tree

    def current_branch(self) -> str:
        return self._run("rev-parse", "--abbrev-ref", "HEAD").strip()

    def checkout(self, *args) -> None:
        self._run("checkout", *args)

    def checkout_reset(self, branch: str, start_point: Optional[str] = None) -> None:
        """Create or reset ``branch`` at ``start_point`` (HEAD by default) and switch to it."""
        self._run("checkout", "--progress", "-B", branch, start_point or "HEAD", path=branch)

    def local_branches(self) -> List[str]:
        output = self._run("branch", "--list", "--format=%(refname:short)")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def delete_branch(self, name: str, force: bool = False) -> None:
        self._run("branch", "-D" if force else "-d", name, path=name)

    def reset_hard(self, ref: Optional[str] = None) -> None:
        args = ["--hard"]
        if ref:
            args.append(ref)
        self._run("reset", *args, path=ref)

    def clean(self, excludes=("/.vs",)) -> None:
        """Remove untracked files and folders, keeping the excluded paths."""
        args = ["-f", "-d"]
        for exclude in excludes:
            args.extend(["-e", exclude])
        self._run("clean", *args)

    # Status

    def status(self) -> List[FileStatus]:
        """Scan the working tree status.

        The result is never cached, each call runs a fresh scan.
        """
        return parse_porcelain(self._run("status", "--porcelain", "-z"))

    def conflicted(self) -> List[FileStatus]:
        return [entry for entry in self.status() if entry.is_conflicted]

    def has_changes(self) -> bool:
        """True when any tracked path is staged, modified, deleted, created or renamed."""
        for entry in self.status():
            if entry.index in (StatusCode.UNTRACKED, StatusCode.IGNORED):
                continue
            return True
        return False

    # Index

    def add(self, *paths: str) -> None:
        self._run("add", "--", *paths, path=", ".join(paths))

    def add_force(self, path: str) -> None:
        """Stage ``path`` even when ordinary add rules would refuse it."""
        self._run("add", "-f", "--", path, path=path)

    def remove(self, path: str, recursive: bool = False) -> None:
        """Remove ``path`` from the index and the working tree."""
        args = ["-f"]
        if recursive:
            args.append("-r")
        self._run("rm", *args, "--", path, path=path)

    def remove_from_disk(self, path: str) -> None:
        """Remove ``path`` with plain filesystem operations."""
        full_path = path if os.path.isabs(path) else os.path.join(self.repo_path, path)
        if os.path.isdir(full_path) and not os.path.islink(full_path):
            shutil.rmtree(full_path)
        elif os.path.lexists(full_path):
            os.remove(full_path)

    def move(self, source: str, dest: str) -> str:
        """Move ``source`` to ``dest`` under version control, returns git's verbose output."""
        return self._run("mv", "--force", "--verbose", os.path.normpath(source),
                         os.path.normpath(dest), path=source)

    # History

    def commit(self, message: str) -> None:
        self._run("commit", "-m", message, "--no-edit")

    def merge(self, ref: str, allow_unrelated: bool = False) -> bool:
        """Merge ``ref`` without committing, preferring their side for hunks.

        Returns:
            True if the merge applied cleanly, False if conflicts were left behind

        Raises:
            GitOperationError: If the merge failed for a reason other than conflicts
        """
        args = []
        if allow_unrelated:
            args.append("--allow-unrelated-histories")
        args.extend(["--no-commit", "-X", "theirs", "--progress", "--no-ff", "--no-edit", ref])
        try:
            self._run("merge", *args, path=ref)
            return True
        except GitOperationError as e:
            conflicts = self.conflicted()
            if conflicts:
                logger.info(f"Merge of {ref} left {len(conflicts)} conflict(s)")
                return False
            raise e

    def merge_in_progress(self) -> bool:
        """True while an uncommitted merge is recorded (MERGE_HEAD exists)."""
        try:
            self._run("rev-parse", "-q", "--verify", "MERGE_HEAD")
        except GitOperationError:
            return False
        return True

    def quit_merge(self) -> None:
        """Forget the in-progress merge, leaving the index and working tree untouched."""
        self._run("merge", "--quit")

    def show_commit(self, ref: str = "HEAD") -> tuple[str, str]:
        """Return the full commit hash and the ``show -s`` summary for ``ref``."""
        details = self._run("show", "-s", ref, path=ref)
        match = _COMMIT_LINE.search(details)
        return (match.group(1) if match else "", details)

    # Tags

    def tags(self) -> List[str]:
        output = self._run("tag", "--list")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def create_tag(self, name: str, target: str) -> None:
        self._run("tag", name, target, path=name)

    def delete_tag(self, name: str) -> None:
        self._run("tag", "-d", name, path=name)

    # Remotes

    def remotes(self) -> Dict[str, Dict[str, str]]:
        """Parse ``remote -v`` into ``{name: {"fetch": url, "push": url}}``."""
        details: Dict[str, Dict[str, str]] = {}
        for line in self._run("remote", "-v").splitlines():
            match = _REMOTE_LINE.match(line.strip())
            if match:
                name, url, kind = match.groups()
                details.setdefault(name, {})[kind] = url
        return details

    def add_remote(self, name: str, url: str, branch: Optional[str] = None) -> None:
        args = ["add"]
        if branch:
            args.extend(["-t", branch])
        self._run("remote", *args, name, url, path=name)

    def remove_remote(self, name: str) -> None:
        self._run("remote", "remove", name, path=name)

    def fetch(self, remote: str) -> None:
        self._run("fetch", remote, "--tags", "--progress", path=remote)

    def add_remote_and_fetch(self, name: str, url: str, branch: Optional[str] = None) -> None:
        logger.info(f"Fetching {name} - {url}")
        self.add_remote(name, url, branch)
        self.fetch(name)
        logger.debug(f"{name} remote fetched")

    def push(self, remote: str, branch: str, force: bool = False, set_upstream: bool = False) -> None:
        args = []
        if force:
            args.append("-f")
        if set_upstream:
            args.append("--set-upstream")
        self._run("push", *args, remote, branch, path=branch)

    def push_tags(self, remote: str) -> None:
        self._run("push", remote, "--tags", path=remote)

    def ahead_behind(self) -> tuple[int, int]:
        """Commits ahead of and behind the upstream of the current branch.

        A branch without an upstream is reported as one commit ahead so
        that it is always pushed.
        """
        try:
            output = self._run("rev-list", "--left-right", "--count", "HEAD...@{u}")
        except GitOperationError:
            return (1, 0)
        ahead, behind = output.split()
        return (int(ahead), int(behind))

    # Config

    def get_config(self, key: str) -> Optional[str]:
        try:
            value = self._run("config", "--get", key, path=key).strip()
        except GitOperationError:
            return None
        return value or None

    def set_config(self, key: str, value: str) -> None:
        self._run("config", key, value, path=key)

    # Submodules

    def submodule_add(self, url: str, path: str) -> None:
        self._run("submodule", "add", url, path, path=path)

    def submodule_paths(self) -> List[str]:
        repo = self._get_repo()
        try:
            return [submodule.path for submodule in repo.submodules]
        finally:
            repo.close()
