"""
Watcher type definitions.

This module defines the values a poll cycle produces and consumes:
- ChangeKind enum: The three change categories reported to callbacks
- ChangeSet: Paths that changed between two snapshots
- WatcherState enum: Poller lifecycle state
- ChangeCallbacks: User callbacks invoked once per category per cycle
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from ..entries import Entry


class ChangeKind(Enum):
    """Change categories, disjoint within one cycle."""

    ADDED = "added"  # Path present now, absent (or a different kind) before
    DELETED = "deleted"  # Path present before, absent now
    MODIFIED = "modified"  # Opened file whose modification timestamp changed


class WatcherState(Enum):
    """Poller lifecycle state."""

    IDLE = "idle"
    CYCLE_IN_FLIGHT = "cycle-in-flight"
    PAUSED = "paused"


@dataclass
class ChangeSet:
    """
    Result of one diff cycle.

    Each mapping is path -> entry. For ``deleted`` the entry is the one from
    the previous snapshot; for the others it is the freshly built entry.
    """

    added: dict[str, Entry] = field(default_factory=dict)
    deleted: dict[str, Entry] = field(default_factory=dict)
    modified: dict[str, Entry] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.deleted or self.modified)

    def __bool__(self) -> bool:
        return self.has_changes

    def get(self, kind: ChangeKind) -> dict[str, Entry]:
        return getattr(self, kind.value)


ChangeCallback = Callable[[dict[str, Entry]], Union[None, Awaitable[Any]]]


@dataclass
class ChangeCallbacks:
    """Optional per-category callbacks (sync or async)."""

    on_added: Optional[ChangeCallback] = None
    on_deleted: Optional[ChangeCallback] = None
    on_modified: Optional[ChangeCallback] = None

    def get(self, kind: ChangeKind) -> Optional[ChangeCallback]:
        return getattr(self, f"on_{kind.value}")
