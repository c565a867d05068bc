"""Custom exceptions for merge-repos"""

from typing import Optional


class MergeReposError(Exception):
    """Base exception for all merge-repos errors."""
    pass


class GitOperationError(MergeReposError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, path: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.path = path
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if path:
            error_msg += f" for '{path}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class GitHubAPIError(MergeReposError):
    """Exception raised for errors in GitHub API operations."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        self.message = message

        error_msg = f"GitHub API operation '{operation}' failed"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class FatalAbortError(MergeReposError):
    """Pipeline failure that aborts the whole run after cleanup."""
    pass


class ConfigurationError(FatalAbortError):
    """Exception raised when the static or command-line configuration is unusable."""
    pass


class RepoRootNotFoundError(FatalAbortError):
    """Exception raised when no enclosing git repository can be located."""

    def __init__(self, start_path: str):
        self.start_path = start_path
        super().__init__(f"Unable to locate the repo root from {start_path}")


class StillConflictedError(FatalAbortError):
    """Exception raised when conflicts remain after automatic arbitration."""

    def __init__(self, paths, audit: str = ""):
        self.paths = list(paths)
        self.audit = audit
        message = f"Still has {len(self.paths)} conflict(s) we can't auto resolve: {', '.join(self.paths)}"
        if audit:
            message += f"\n{audit}"
        super().__init__(message)


class PartialMoveError(FatalAbortError):
    """Exception raised when a folder move leaves real files behind."""

    def __init__(self, folder: str, remaining: int):
        self.folder = folder
        self.remaining = remaining
        super().__init__(f"Not all files moved from '{folder}' ({remaining} file(s) remain)")


class ManifestError(FatalAbortError):
    """Exception raised when a package manifest is missing, unreadable or unexpected."""
    pass


class PullRequestExistsError(FatalAbortError):
    """Exception raised when an automatic merge PR is already open."""

    def __init__(self, repo: str, base: str):
        self.repo = repo
        self.base = base
        super().__init__(
            f"A PR already exists for {repo} => {base} -- please commit or close the previous PR"
        )


class CleanupError(MergeReposError):
    """Exception raised when one or more registered cleanup actions failed."""

    def __init__(self, failures):
        self.failures = list(failures)
        super().__init__(
            "Cleanup failed: " + "; ".join(f"{name}: {error}" for name, error in self.failures)
        )
