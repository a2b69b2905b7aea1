"""
JSON-file directory store for local roots.

Roots are stored in a JSON file at .treemirror/directories.json, keyed by
the name they were saved under. Only ``LocalDirectoryHandle`` roots can be
persisted: the file records their filesystem path and rebuilds the handle
on load.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict

from ..handles import LocalDirectoryHandle

logger = logging.getLogger(__name__)


@dataclass
class SavedDirectory:
    """A remembered local root."""

    key: str
    path: str
    saved_at: int  # Unix timestamp


class JsonDirectoryStore:
    """
    Remembers local directory roots in a JSON file.

    The file is read once on construction and rewritten on every change.
    """

    def __init__(self, path: str = ".treemirror/directories.json"):
        """
        Initialize directory store.

        Args:
            path: Path to the JSON file
        """
        self.path = Path(path)
        self.directories: Dict[str, SavedDirectory] = {}
        self._load()

    async def get_all(self) -> dict[str, LocalDirectoryHandle]:
        """
        Return handles for every saved root that still exists.

        Returns:
            Mapping of key -> handle
        """
        handles = {}
        for key, saved in self.directories.items():
            if not Path(saved.path).is_dir():
                logger.warning(f"Saved directory {key} no longer exists: {saved.path}")
                continue
            handles[key] = LocalDirectoryHandle(saved.path)
        return handles

    async def save(self, key: str, handle) -> None:
        """
        Add or update a saved root.

        Raises:
            TypeError: If the handle is not a local directory handle
        """
        if not isinstance(handle, LocalDirectoryHandle):
            raise TypeError(f"Only local directories can be saved, got {type(handle).__name__}")

        self.directories[key] = SavedDirectory(
            key=key,
            path=str(handle.path.resolve()),
            saved_at=int(datetime.now().timestamp()),
        )
        self._save()

    async def remove(self, key: str) -> bool:
        """
        Forget a saved root.

        Returns:
            True if removed, False if not found
        """
        if key in self.directories:
            del self.directories[key]
            self._save()
            return True
        return False

    async def clear(self) -> None:
        self.directories.clear()
        self._save()

    def _load(self):
        """Load saved roots from disk."""
        if self.path.exists():
            with open(self.path) as f:
                data = json.load(f)
                self.directories = {k: SavedDirectory(**v) for k, v in data.items()}

    def _save(self):
        """Save roots to disk (pretty-printed JSON)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(
                {k: asdict(v) for k, v in self.directories.items()}, f, indent=2, sort_keys=True
            )
            f.write("\n")
