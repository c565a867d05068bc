"""Command-line interface for merge-repos"""

import sys
from typing import List, Optional

from rich.console import Console

from merge_repos.config import DEFAULT_MAIN_BRANCH, Config, load_settings
from merge_repos.constants import (
    EXIT_BAD_ARGUMENTS,
    EXIT_CLEANUP_FAILED,
    EXIT_FATAL,
    EXIT_INTERRUPTED,
    EXIT_SUCCESS,
)
from merge_repos.core import StagingToMainOrchestrator, SyncOrchestrator
from merge_repos.exceptions import CleanupError, MergeReposError
from merge_repos.logging_config import get_logger, setup_logging
from merge_repos.utils.paths import find_repo_root

from .args import parse_args

console = Console()
logger = get_logger(__name__)


def build_config(parsed_args) -> Config:
    return Config(
        command=parsed_args.command,
        clone_to=parsed_args.clone_to,
        origin_repo=parsed_args.origin_repo,
        staging_branch=parsed_args.staging_branch,
        dest_branch=getattr(parsed_args, "dest_branch", None) or DEFAULT_MAIN_BRANCH,
        staging_start_point=getattr(parsed_args, "staging_start_point", None),
        test=parsed_args.test,
        no_pr=parsed_args.no_pr,
        verbose=parsed_args.verbose,
        debug=parsed_args.debug,
        origin_user=parsed_args.origin_user,
        dest_user=parsed_args.dest_user,
        github_token=parsed_args.github_token,
        github_url=parsed_args.github_url,
        settings_file=parsed_args.settings_file,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = parse_args(argv)
    setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

    try:
        config = build_config(parsed_args)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_BAD_ARGUMENTS

    if config.debug:
        console.print("[yellow]Configuration:[/yellow]")
        for key, value in config.to_dict().items():
            if key == "github_token" and value:
                value = "***"
            console.print(f"  {key}: {value}")

    try:
        settings = load_settings(config.settings_file)
        repo_root = find_repo_root()
        if config.command == "merge":
            orchestrator = StagingToMainOrchestrator(config, settings, repo_root=repo_root)
        else:
            orchestrator = SyncOrchestrator(config, settings, repo_root=repo_root)

        result = orchestrator.run()
        if result.pr_created:
            console.print(f"[green]Done, PR raised from {result.working_branch}[/green]")
        else:
            console.print("[green]Done[/green]")
        return EXIT_SUCCESS
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return EXIT_INTERRUPTED
    except CleanupError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_CLEANUP_FAILED
    except MergeReposError as e:
        console.print(f"[red]Error: {e}[/red]")
        if config.debug:
            console.print_exception()
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
