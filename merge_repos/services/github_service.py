"""GitHub API integration service"""

import os
from typing import Iterable, Optional, TYPE_CHECKING, Union

from github import Auth, Github, GithubException
from rich.console import Console

from merge_repos.constants import MAX_PR_BODY_LOG_LENGTH, PR_MARKER
from merge_repos.exceptions import GitHubAPIError
from merge_repos.logging_config import get_logger

if TYPE_CHECKING:
    from merge_repos.config import Config

console = Console()
logger = get_logger(__name__)


class GitHubService:
    """Pull request and fork gateway backed by PyGithub."""

    def __init__(self, config: Union["Config", dict]):
        self.config = config
        self.github_token = config.get("github_token") or os.environ.get("GITHUB_TOKEN")
        self.github_api_url: Optional[str] = config.get("github_url")
        self.github: Optional[Github] = None
        self._login: Optional[str] = None

    def _client(self) -> Github:
        """Create the API client on first use."""
        if self.github is None:
            if not self.github_token:
                raise GitHubAPIError(
                    "authenticate", "A GitHub token is required (GITHUB_TOKEN or --token)"
                )
            kwargs = {"auth": Auth.Token(self.github_token)}
            if self.github_api_url:
                kwargs["base_url"] = self.github_api_url
            self.github = Github(**kwargs)
        return self.github

    @property
    def login(self) -> str:
        """Login of the authenticated account."""
        if self._login is None:
            try:
                self._login = self._client().get_user().login
            except GithubException as e:
                raise GitHubAPIError("get_user", str(e)) from e
        return self._login

    def has_open_auto_merge_pr(self, repo: str, base: str, marker: str = PR_MARKER) -> bool:
        """Check for an open PR against ``base`` that this account raised earlier.

        Args:
            repo: Repository as <owner>/<name>
            base: Target branch of the PR
            marker: Title marker identifying automatic merge PRs

        Returns:
            True if a matching PR is still open
        """
        try:
            login = self.login
            pulls = self._client().get_repo(repo).get_pulls(state="open", base=base)
            for pr in pulls:
                if pr.user.login == login and marker in pr.title:
                    logger.warning(f"[GitHub] Found open PR #{pr.number}: {pr.title}")
                    return True
            logger.debug(f"[GitHub] No open {marker} PRs for {repo} => {base}")
            return False
        except GithubException as e:
            raise GitHubAPIError("list_pulls", f"{repo}: {e}") from e

    def ensure_fork(self, origin_repo: str) -> str:
        """Make sure the authenticated account has a fork of ``origin_repo``.

        Returns:
            Full name of the fork
        """
        name = origin_repo.split("/")[1]
        client = self._client()
        try:
            user = client.get_user()
            try:
                existing = user.get_repo(name)
                if existing.fork and existing.parent and existing.parent.full_name == origin_repo:
                    logger.debug(f"[GitHub] Fork {existing.full_name} already exists")
                    return existing.full_name
                logger.warning(f"[GitHub] {existing.full_name} exists but is not a fork of {origin_repo}")
                return existing.full_name
            except GithubException as e:
                if e.status != 404:
                    raise

            logger.info(f"[GitHub] Creating fork of {origin_repo}")
            fork = client.get_repo(origin_repo).create_fork()
            return fork.full_name
        except GithubException as e:
            raise GitHubAPIError("create_fork", f"{origin_repo}: {e}") from e

    def create_pull_request(self, repo: str, base: str, head: str, title: str, body: str,
                            draft: bool = False, labels: Iterable[str] = ()) -> int:
        """Open a pull request.

        Args:
            repo: Repository receiving the PR as <owner>/<name>
            base: Target branch
            head: Source as <fork owner>:<branch>
            title: PR title
            body: PR body, the title is used when empty
            draft: Open as a draft
            labels: Labels to add after creation

        Returns:
            The PR number
        """
        if len(body) > MAX_PR_BODY_LOG_LENGTH:
            logger.info(f"Creating PR '{title}' ({len(body)} character body)")
        else:
            logger.info(f"Creating PR '{title}'\n{body}")

        try:
            gh_repo = self._client().get_repo(repo)
            pr = gh_repo.create_pull(title=title, body=body or title, base=base, head=head, draft=draft)
            labels = list(labels)
            if labels:
                pr.add_to_labels(*labels)
        except GithubException as e:
            raise GitHubAPIError("create_pull", f"{repo} {head} => {base}: {e}") from e

        console.print(f"[green]Created PR #{pr.number}[/green] {pr.html_url}")
        return pr.number

    def close(self) -> None:
        """Close the GitHub API connection to clean up resources."""
        if self.github:
            self.github.close()
            logger.debug("[GitHub] Closed GitHub API connection")
