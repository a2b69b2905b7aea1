"""
Runtime configuration for a mirror instance.

Environment Variables (read by ``MirrorConfig.from_env``):
- TREEMIRROR_POLL_INTERVAL: seconds between poll cycles (default: 1.0)
- TREEMIRROR_CACHE_TTL: seconds opened-file content stays cached (default: 10.0)
- TREEMIRROR_BATCH_SIZE: paths classified concurrently per batch (default: 50)
- TREEMIRROR_LOAD_DEPTH: directory levels loaded on open (default: 2)
- TREEMIRROR_MAX_DIRECTORY_ENTRIES: directories larger than this are skipped by a poll (default: 1000)
- TREEMIRROR_DEBOUNCE_DELAY: seconds the published index is debounced (default: 0.05)
- TREEMIRROR_WATCH: "1"/"true" to start polling when a root is opened (default: off)
- TREEMIRROR_DEBUG: "1"/"true" to log every change set at INFO (default: off)
"""

import os
from dataclasses import dataclass

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_CACHE_TTL = 10.0
DEFAULT_BATCH_SIZE = 50
DEFAULT_LOAD_DEPTH = 2
DEFAULT_MAX_DIRECTORY_ENTRIES = 1000
DEFAULT_DEBOUNCE_DELAY = 0.05

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class MirrorConfig:
    poll_interval: float = DEFAULT_POLL_INTERVAL
    cache_ttl: float = DEFAULT_CACHE_TTL
    batch_size: int = DEFAULT_BATCH_SIZE
    load_depth: int = DEFAULT_LOAD_DEPTH
    max_directory_entries: int = DEFAULT_MAX_DIRECTORY_ENTRIES
    debounce_delay: float = DEFAULT_DEBOUNCE_DELAY
    enable_watcher: bool = False
    debug: bool = False

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.cache_ttl < 0:
            raise ValueError("cache_ttl must not be negative")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.load_depth < 1:
            raise ValueError("load_depth must be at least 1")
        if self.max_directory_entries < 1:
            raise ValueError("max_directory_entries must be at least 1")
        if not 0 <= self.debounce_delay <= 10:
            raise ValueError("debounce_delay must be between 0 and 10 seconds")

    @classmethod
    def from_env(cls, **overrides) -> "MirrorConfig":
        values = {
            "poll_interval": float(os.getenv("TREEMIRROR_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))),
            "cache_ttl": float(os.getenv("TREEMIRROR_CACHE_TTL", str(DEFAULT_CACHE_TTL))),
            "batch_size": int(os.getenv("TREEMIRROR_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))),
            "load_depth": int(os.getenv("TREEMIRROR_LOAD_DEPTH", str(DEFAULT_LOAD_DEPTH))),
            "max_directory_entries": int(
                os.getenv("TREEMIRROR_MAX_DIRECTORY_ENTRIES", str(DEFAULT_MAX_DIRECTORY_ENTRIES))
            ),
            "debounce_delay": float(os.getenv("TREEMIRROR_DEBOUNCE_DELAY", str(DEFAULT_DEBOUNCE_DELAY))),
            "enable_watcher": os.getenv("TREEMIRROR_WATCH", "").lower() in _TRUE_VALUES,
            "debug": os.getenv("TREEMIRROR_DEBUG", "").lower() in _TRUE_VALUES,
        }
        values.update(overrides)
        return cls(**values)
