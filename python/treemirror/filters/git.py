"""
Git-aware filters.

``gitignore_filter`` reads each ``.gitignore`` lazily, the first time the
walk hands it that file, and scopes its patterns to the directory the file
lives in. Matching uses pathspec's gitwildmatch implementation.

Siblings seen before a ``.gitignore`` was loaded may have slipped through;
callers re-run the pipeline over the finished walk to catch them.
"""

import logging
from typing import Iterable

from pathspec import PathSpec

from ..entries import EntryKind
from ..paths import SEPARATOR, entry_name, is_descendant, parent_path
from .defaults import GITIGNORE_FILE_NAME, VCS_DIRECTORY_NAMES

logger = logging.getLogger(__name__)


def _is_vcs_directory(path: str, handle) -> bool:
    return handle.kind == EntryKind.DIRECTORY and entry_name(path.rstrip(SEPARATOR)) in VCS_DIRECTORY_NAMES


def _parse_patterns(text: str) -> list[str]:
    # Filter out empty lines and comments
    return [line for line in text.splitlines() if line.strip() and not line.strip().startswith("#")]


class GitFolderFilter:
    """Excludes ``.git`` directories."""

    async def ignore(self, path: str, handle) -> bool:
        return _is_vcs_directory(path, handle)


class GitIgnoreFilter:
    """Excludes ``.git`` directories and paths matched by ``.gitignore`` files."""

    def __init__(self) -> None:
        # directory path -> compiled patterns of that directory's .gitignore
        self._specs: dict[str, PathSpec] = {}
        self._loaded: set[str] = set()

    @property
    def loaded_files(self) -> set[str]:
        return set(self._loaded)

    async def _load(self, path: str, handle) -> None:
        self._loaded.add(path)
        try:
            snapshot = await handle.get_file()
            text = await snapshot.text()
        except Exception as e:
            logger.warning(f"Could not read {path}: {e}")
            return
        patterns = _parse_patterns(text)
        if patterns:
            self._specs[parent_path(path)] = PathSpec.from_lines("gitwildmatch", patterns)

    async def ignore(self, path: str, handle) -> bool:
        if (
            handle.kind == EntryKind.FILE
            and entry_name(path) == GITIGNORE_FILE_NAME
            and path not in self._loaded
        ):
            await self._load(path, handle)
            return False

        if _is_vcs_directory(path, handle):
            return True

        suffix = SEPARATOR if handle.kind == EntryKind.DIRECTORY else ""
        for base, spec in self._specs.items():
            if not is_descendant(path, base):
                continue
            relative = path[len(base) + 1 :] + suffix
            if spec.match_file(relative):
                return True
        return False


class PatternFilter:
    """Excludes root-relative paths matched by caller-supplied gitwildmatch patterns."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.spec = PathSpec.from_lines("gitwildmatch", list(patterns))

    async def ignore(self, path: str, handle) -> bool:
        if SEPARATOR not in path:
            return False
        relative = path.split(SEPARATOR, 1)[1]
        if handle.kind == EntryKind.DIRECTORY:
            relative += SEPARATOR
        return self.spec.match_file(relative)


async def git_folder_filter() -> GitFolderFilter:
    return GitFolderFilter()


async def gitignore_filter() -> GitIgnoreFilter:
    return GitIgnoreFilter()


def patterns_filter(*patterns: str):
    """Build a filter factory for a fixed set of gitwildmatch patterns.

    >>> factory = patterns_filter("*.log", "tmp/")
    """

    async def factory() -> PatternFilter:
        return PatternFilter(patterns)

    return factory
