"""
External store handles (capability interface and implementations).
"""

from .base import (
    DirectoryHandle,
    FileHandle,
    FileSnapshot,
    Handle,
    PermissionMode,
    PermissionState,
    WritableStream,
)
from .local import LocalDirectoryHandle, LocalFileHandle
from .memory import MemoryDirectoryHandle, MemoryFileHandle

__all__ = [
    "DirectoryHandle",
    "FileHandle",
    "FileSnapshot",
    "Handle",
    "LocalDirectoryHandle",
    "LocalFileHandle",
    "MemoryDirectoryHandle",
    "MemoryFileHandle",
    "PermissionMode",
    "PermissionState",
    "WritableStream",
]
