"""
Polling watcher: snapshot diffing, poll loop and debounced publication.
"""

from .debouncer import DebouncedValue
from .diff import SnapshotDiffer, VirtualEntry, WalkResult
from .poller import PollingWatcher
from .types import ChangeCallback, ChangeCallbacks, ChangeKind, ChangeSet, WatcherState

__all__ = [
    "ChangeCallback",
    "ChangeCallbacks",
    "ChangeKind",
    "ChangeSet",
    "DebouncedValue",
    "PollingWatcher",
    "SnapshotDiffer",
    "VirtualEntry",
    "WalkResult",
    "WatcherState",
]
