"""Directory stores: persistence for previously opened roots."""

from .base import DirectoryStore
from .json_store import JsonDirectoryStore, SavedDirectory
from .memory import MemoryDirectoryStore

__all__ = ["DirectoryStore", "JsonDirectoryStore", "MemoryDirectoryStore", "SavedDirectory"]
