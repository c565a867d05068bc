"""merge-repos - consolidate several upstream repositories into one destination repository"""

from merge_repos.__version__ import __version__

__all__ = ["__version__"]
