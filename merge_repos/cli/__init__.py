"""Command-line interface for merge-repos.

This package provides the CLI entry point and argument parsing.
"""

from .main import main
from .args import create_parser, parse_args

__all__ = ["main", "create_parser", "parse_args"]
