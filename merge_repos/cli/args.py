"""Command-line argument parsing for merge-repos."""

import argparse
from typing import List, Optional

from merge_repos.__version__ import __version__
from merge_repos.config import (
    DEFAULT_CLONE_LOCATION,
    DEFAULT_MAIN_BRANCH,
    DEFAULT_ORIGIN_REPO,
    DEFAULT_STAGING_BRANCH,
)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--clone-to",
        default=DEFAULT_CLONE_LOCATION,
        help=f"Folder for the merge clone, relative to the repo root (default: {DEFAULT_CLONE_LOCATION})",
    )
    parser.add_argument(
        "--origin-repo",
        default=DEFAULT_ORIGIN_REPO,
        help=f"Destination repository as <owner>/<name> (default: {DEFAULT_ORIGIN_REPO})",
    )
    parser.add_argument(
        "--staging-branch",
        default=DEFAULT_STAGING_BRANCH,
        help=f"Branch collecting the synced repositories (default: {DEFAULT_STAGING_BRANCH})",
    )
    parser.add_argument("--origin-user", help="GitHub account used for the working branch name")
    parser.add_argument("--dest-user", help="GitHub account owning the fork that receives the pushes")
    parser.add_argument("--settings", dest="settings_file", help="JSON file overriding the built-in merge settings")
    parser.add_argument("--token", dest="github_token", help="GitHub token (default: GITHUB_TOKEN)")
    parser.add_argument("--github-url", help="GitHub API base URL for GitHub Enterprise")
    parser.add_argument("--test", action="store_true", help="Test mode: clone one level up, no PR is created")
    parser.add_argument("--no-pr", action="store_true", help="Prepare the working branch but do not push or open a PR")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--debug", action="store_true", help="Show debug information and log to a file")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="merge-repos",
        description="Consolidate upstream repositories into a monorepo through a staging branch",
        epilog="Setup: Requires GITHUB_TOKEN environment variable or --token. "
        "Get a token at https://github.com/settings/tokens (scopes: repo or public_repo)",
    )
    parser.add_argument("--version", action="version", version=f"merge-repos {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="command")

    sync = subparsers.add_parser("sync", help="Sync the upstream repositories into the staging branch")
    _add_common_arguments(sync)

    merge = subparsers.add_parser("merge", help="Merge the staging branch into the main branch")
    _add_common_arguments(merge)
    merge.add_argument(
        "--dest-branch",
        default=DEFAULT_MAIN_BRANCH,
        help=f"Branch receiving the staged packages (default: {DEFAULT_MAIN_BRANCH})",
    )
    merge.add_argument("--staging-start-point", help="Commit of the staging branch to merge instead of its head")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return create_parser().parse_args(argv)
