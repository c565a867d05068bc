"""Utility functions for merge-repos.

This package provides utility modules:
- text: message formatting and JSON text clean-up
- paths: repository root discovery and path helpers
"""

from .text import format_indent_lines, remove_trailing_comma
from .paths import find_repo_root, to_posix, relative_to

__all__ = [
    "format_indent_lines",
    "remove_trailing_comma",
    "find_repo_root",
    "to_posix",
    "relative_to",
]
