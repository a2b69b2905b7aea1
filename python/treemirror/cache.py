"""
Time-bounded content cache for opened files.
"""

import time
from dataclasses import dataclass
from typing import Optional


@dataclass
class CacheEntry:
    content: str
    timestamp: float


class ContentCache:
    """Maps path -> (content, timestamp) for opened files.

    ``get`` treats entries older than ``ttl`` seconds as absent and evicts
    them, so callers re-read the file.
    """

    def __init__(self, ttl: float = 10.0) -> None:
        self.ttl = ttl
        self._entries: dict[str, CacheEntry] = {}

    def get(self, path: str, now: Optional[float] = None) -> Optional[CacheEntry]:
        entry = self._entries.get(path)
        if entry is None:
            return None
        now = time.time() if now is None else now
        if now - entry.timestamp >= self.ttl:
            del self._entries[path]
            return None
        return entry

    def put(self, path: str, content: str, timestamp: Optional[float] = None) -> CacheEntry:
        entry = CacheEntry(content, time.time() if timestamp is None else timestamp)
        self._entries[path] = entry
        return entry

    def refresh(self, path: str, content: str) -> None:
        """Update ``path`` only if it is already cached."""
        if path in self._entries:
            self.put(path, content)

    def invalidate(self, path: str) -> None:
        self._entries.pop(path, None)

    def clear(self) -> None:
        self._entries.clear()

    def paths(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)
