"""
TreeMirror - In-memory mirror of an external directory tree

Keeps a flat, filtered, path-keyed index of a permission-scoped directory
store in sync with the store through polling, and applies create, write,
delete, rename and copy operations to both.
"""

__version__ = "0.1.0"

from .config import MirrorConfig
from .entries import DirectoryEntry, Entry, EntryKind, FileEntry
from .errors import (
    ConflictError,
    ExternalOperationError,
    InvalidArgumentError,
    InvalidTopologyError,
    MirrorError,
    NotFoundError,
    PermissionDeniedError,
)
from .filters import DEFAULT_FILTERS
from .mirror import TreeMirror
from .watcher import ChangeSet

__all__ = [
    "ChangeSet",
    "ConflictError",
    "DEFAULT_FILTERS",
    "DirectoryEntry",
    "Entry",
    "EntryKind",
    "ExternalOperationError",
    "FileEntry",
    "InvalidArgumentError",
    "InvalidTopologyError",
    "MirrorConfig",
    "MirrorError",
    "NotFoundError",
    "PermissionDeniedError",
    "TreeMirror",
]
