"""
Entry model and the flat path-keyed index.

An entry is either a file or a directory record keyed by its path. The
index maps path -> entry with O(1) lookup; the watch index and previous
snapshot are separate mappings owned by ``MirrorState``.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Optional, Union

from .paths import is_at_or_under, is_root_path, parent_path


class EntryKind(str, Enum):
    """Kind tag shared by entries and store handles."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class FileEntry:
    """A file known to the index.

    ``content`` is present iff ``opened`` is true.
    """

    name: str
    path: str
    handle: Any = field(repr=False)
    size: int = 0
    last_modified: float = 0.0
    type: str = ""
    content: Optional[str] = field(default=None, repr=False)
    opened: bool = False

    @property
    def kind(self) -> EntryKind:
        return EntryKind.FILE


@dataclass
class DirectoryEntry:
    """A directory known to the index.

    ``loaded`` becomes true once all immediate children were enumerated.
    """

    name: str
    path: str
    handle: Any = field(repr=False)
    loaded: bool = False

    @property
    def kind(self) -> EntryKind:
        return EntryKind.DIRECTORY


Entry = Union[FileEntry, DirectoryEntry]


def is_file(entry: Optional[Entry]) -> bool:
    return isinstance(entry, FileEntry)


def is_directory(entry: Optional[Entry]) -> bool:
    return isinstance(entry, DirectoryEntry)


class EntryIndex:
    """Mapping from path to entry.

    Thin wrapper over a dict so that every writer goes through the same
    small surface (get/set/delete) and subtree helpers live in one place.
    """

    def __init__(self, entries: Optional[dict[str, Entry]] = None) -> None:
        self._entries: dict[str, Entry] = dict(entries) if entries else {}

    def get(self, path: str) -> Optional[Entry]:
        return self._entries.get(path)

    def set(self, path: str, entry: Entry) -> None:
        self._entries[path] = entry

    def delete(self, path: str) -> Optional[Entry]:
        return self._entries.pop(path, None)

    def clear(self) -> None:
        self._entries.clear()

    def copy(self) -> "EntryIndex":
        """Shallow copy: new mapping, same entry objects."""
        return EntryIndex(self._entries)

    def replace(self, other: "EntryIndex") -> None:
        """Swap in the contents of ``other`` in one step."""
        entries = dict(other._entries)
        self._entries.clear()
        self._entries.update(entries)

    def subtree(self, path: str) -> list[str]:
        """Paths at or under ``path`` currently in the index."""
        return [key for key in self._entries if is_at_or_under(key, path)]

    def children(self, path: str) -> list[Entry]:
        return [
            entry
            for key, entry in self._entries.items()
            if not is_root_path(key) and parent_path(key) == path
        ]

    def snapshot(self) -> dict[str, Entry]:
        return dict(self._entries)

    def view(self) -> MappingProxyType:
        """Read-only live view of the mapping."""
        return MappingProxyType(self._entries)

    def items(self):
        return self._entries.items()

    def keys(self):
        return self._entries.keys()

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"EntryIndex({len(self._entries)} entries)"
