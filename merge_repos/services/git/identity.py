"""User identity used for commits and fork ownership"""
import re
from dataclasses import dataclass
from typing import Optional

from merge_repos.logging_config import get_logger
from merge_repos.services.git.operations import GitOperations

logger = get_logger(__name__)

_NOREPLY_EMAIL = re.compile(r"\d+\+([^@]+)@users\.noreply\.github\.com")


@dataclass(frozen=True)
class UserDetails:
    """Git identity plus the GitHub account owning the fork."""
    name: str
    email: str
    user: str

    @property
    def branch_owner(self) -> str:
        """Name used as the working branch prefix, the account when the name has spaces."""
        if not self.name or " " in self.name:
            return self.user
        return self.name


def get_user(gateway: GitOperations, override_user: Optional[str] = None) -> UserDetails:
    """Read the git identity of ``gateway`` and work out the GitHub account.

    The account comes from a noreply email address or from the ``origin``
    remote (``github.com/<owner>/``); ``override_user`` wins over both.
    """
    email = gateway.get_config("user.email") or ""
    name = gateway.get_config("user.name") or ""

    account = ""
    match = _NOREPLY_EMAIL.search(email.strip())
    if match:
        account = match.group(1)

    origin = gateway.remotes().get("origin", {})
    fetch_url = origin.get("fetch", "")
    idx = fetch_url.find("github.com/")
    if idx != -1:
        end = fetch_url.find("/", idx + 11)
        if end != -1:
            account = fetch_url[idx + 11:end]

    return UserDetails(name=name, email=email, user=override_user or account)


def set_user(gateway: GitOperations, user: UserDetails) -> None:
    logger.debug(f"Setting user.name {user.name} and email {user.email}")
    gateway.set_config("user.email", user.email)
    gateway.set_config("user.name", user.name)
