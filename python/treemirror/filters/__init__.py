"""
Filter pipeline and built-in filters.
"""

from .base import FileFilter, FilterFactory, FilterPipeline
from .dist import DistFilter, dist_filter
from .git import (
    GitFolderFilter,
    GitIgnoreFilter,
    PatternFilter,
    git_folder_filter,
    gitignore_filter,
    patterns_filter,
)

DEFAULT_FILTERS = [git_folder_filter, gitignore_filter, dist_filter]

__all__ = [
    "DEFAULT_FILTERS",
    "DistFilter",
    "FileFilter",
    "FilterFactory",
    "FilterPipeline",
    "GitFolderFilter",
    "GitIgnoreFilter",
    "PatternFilter",
    "dist_filter",
    "git_folder_filter",
    "gitignore_filter",
    "patterns_filter",
]
