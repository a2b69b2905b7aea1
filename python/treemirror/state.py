"""
Mutable state owned by one mirror instance.

Mutation operations, the loader and the poll cycle all work on the same
``MirrorState``; nothing here is module-global.
"""

from dataclasses import dataclass, field
from typing import Optional

from .cache import ContentCache
from .entries import EntryIndex
from .filters import FilterPipeline
from .handles import PermissionMode


@dataclass
class MirrorState:
    root: Optional[object] = None
    mode: PermissionMode = PermissionMode.READWRITE
    index: EntryIndex = field(default_factory=EntryIndex)
    previous: EntryIndex = field(default_factory=EntryIndex)
    # directory path -> directory handle, for loaded directories only
    watched: dict = field(default_factory=dict)
    cache: ContentCache = field(default_factory=ContentCache)
    pipeline: FilterPipeline = field(default_factory=FilterPipeline)
    ignored: set = field(default_factory=set)
    # Paths edited while a poll cycle runs its callbacks; None otherwise
    journal: Optional[set] = None

    @property
    def root_path(self) -> Optional[str]:
        return self.root.name if self.root is not None else None

    def set_entry(self, path: str, entry) -> None:
        """Insert into both the live index and the diff baseline."""
        self.index.set(path, entry)
        self.previous.set(path, entry)
        self.touch(path)

    def drop_entry(self, path: str) -> None:
        """Forget ``path`` everywhere it may be tracked."""
        self.index.delete(path)
        self.previous.delete(path)
        self.watched.pop(path, None)
        self.cache.invalidate(path)
        self.touch(path)

    def touch(self, *paths: str) -> None:
        if self.journal is not None:
            self.journal.update(paths)

    def roll_baseline(self) -> None:
        self.previous = self.index.copy()

    def clear(self) -> None:
        self.root = None
        self.mode = PermissionMode.READWRITE
        self.index.clear()
        self.previous.clear()
        self.watched.clear()
        self.cache.clear()
        self.pipeline = FilterPipeline()
        self.ignored.clear()
