"""
Depth-bounded, concurrent tree loading.

Populates the index and the watch index for one directory subtree:

1. Walk: files eagerly, subdirectories recursed while depth > 1, otherwise
   inserted as unloaded placeholders. A directory is marked loaded only
   after every child task finished.
2. Watch pass: walk directories again (same depth) and register every
   loaded directory's handle in the watch index.
3. Sweep: re-run the filter pipeline over the whole index. Filters can
   change their mind mid-walk (a .gitignore discovered after its siblings
   were inserted), so the first pass alone is not trusted.
"""

import asyncio
import logging

from .entries import DirectoryEntry, EntryIndex, EntryKind, FileEntry, is_directory, is_file
from .paths import is_at_or_under, join_path
from .state import MirrorState

logger = logging.getLogger(__name__)


async def list_children(handle) -> tuple[list, list]:
    """Enumerate a directory handle into ([(name, file)], [(name, dir)])."""
    files = []
    directories = []
    async for name, child in handle.entries():
        if child.kind == EntryKind.DIRECTORY:
            directories.append((name, child))
        else:
            files.append((name, child))
    return files, directories


class TreeLoader:
    """Loads subtrees of the external store into a ``MirrorState``."""

    def __init__(self, state: MirrorState) -> None:
        self.state = state

    async def load(self, handle, base_path: str, depth: int = 1) -> EntryIndex:
        """
        Materialize ``base_path`` down to ``depth`` levels.

        Args:
            handle: Directory handle for ``base_path``
            base_path: Index path of the directory
            depth: 1 loads immediate children only; each extra level also
                loads the subdirectories' children

        Returns:
            The live index
        """
        await self._load_directory(handle, base_path, depth)
        await self._register_watched(handle, base_path, depth)
        await self.sweep()
        self.state.roll_baseline()
        return self.state.index

    async def _load_directory(self, handle, path: str, depth: int) -> None:
        state = self.state
        if await state.pipeline.ignore(path, handle):
            state.ignored.add(path)
            return

        is_node = depth > 1
        entry = state.index.get(path)
        if not is_directory(entry):
            entry = DirectoryEntry(name=handle.name, path=path, handle=handle, loaded=False)
            state.index.set(path, entry)

        try:
            files, directories = await list_children(handle)
        except Exception as e:
            logger.warning(f"Could not read directory {path}: {e}")
            return

        await asyncio.gather(*(self._load_file(join_path(path, name), child) for name, child in files))

        if is_node:
            await asyncio.gather(
                *(self._load_directory(child, join_path(path, name), depth - 1) for name, child in directories)
            )
        else:
            await asyncio.gather(
                *(self._add_placeholder(join_path(path, name), child) for name, child in directories)
            )

        # All children loaded, so mark this directory entry as loaded
        entry.loaded = True

    async def _load_file(self, path: str, handle) -> None:
        state = self.state
        if await state.pipeline.ignore(path, handle):
            state.ignored.add(path)
            return

        try:
            snapshot = await handle.get_file()
        except Exception as e:
            logger.warning(f"Could not read file metadata for {path}: {e}")
            return

        existing = state.index.get(path)
        if is_file(existing):
            existing.handle = handle
            existing.size = snapshot.size
            existing.last_modified = snapshot.last_modified
            existing.type = snapshot.type
            return

        state.index.set(
            path,
            FileEntry(
                name=snapshot.name,
                path=path,
                handle=handle,
                size=snapshot.size,
                last_modified=snapshot.last_modified,
                type=snapshot.type,
            ),
        )

    async def _add_placeholder(self, path: str, handle) -> None:
        state = self.state
        if await state.pipeline.ignore(path, handle):
            state.ignored.add(path)
            return
        if not is_directory(state.index.get(path)):
            state.index.set(path, DirectoryEntry(name=handle.name, path=path, handle=handle, loaded=False))

    async def _register_watched(self, handle, path: str, depth: int) -> None:
        entry = self.state.index.get(path)
        if not (is_directory(entry) and entry.loaded):
            return
        self.state.watched.setdefault(path, handle)
        if depth <= 1:
            return

        try:
            _, directories = await list_children(handle)
        except Exception as e:
            logger.warning(f"Could not read directory {path}: {e}")
            return

        await asyncio.gather(
            *(self._register_watched(child, join_path(path, name), depth - 1) for name, child in directories)
        )

    async def sweep(self) -> list[str]:
        """Drop every indexed path the pipeline now excludes, with its subtree."""
        state = self.state
        items = list(state.index.items())
        verdicts = await asyncio.gather(*(state.pipeline.ignore(path, entry.handle) for path, entry in items))
        excluded = [path for (path, _), ignored in zip(items, verdicts) if ignored]

        removed = []
        for path in excluded:
            for key in state.index.subtree(path):
                state.index.delete(key)
                removed.append(key)
            for key in [w for w in state.watched if is_at_or_under(w, path)]:
                del state.watched[key]
            state.ignored.add(path)
        if removed:
            logger.debug(f"Filter sweep removed {len(removed)} entries")
        return removed
