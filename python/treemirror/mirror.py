"""
TreeMirror: the public entry point.

Owns one ``MirrorState`` and wires the loader, the mutation operations,
the snapshot differ, the poller and the debounced publication together.

Example Usage:
--------------
>>> root = LocalDirectoryHandle("/path/to/project")
>>> async with TreeMirror(on_modified=print) as mirror:
...     await mirror.open_root(root)
...     await mirror.open_file("project/README.md")
...     await mirror.write_file("project/notes.txt", "hello")
...     mirror.start_watching()
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from .config import MirrorConfig
from .entries import DirectoryEntry, Entry, FileEntry, is_directory
from .errors import ExternalOperationError, InvalidArgumentError, NotFoundError, PermissionDeniedError
from .filters import DEFAULT_FILTERS, FilterFactory, FilterPipeline
from .handles import DirectoryHandle, PermissionMode, PermissionState
from .loader import TreeLoader
from .mutations import Data, MutationOperations
from .paths import ensure_path
from .state import MirrorState
from .stores import DirectoryStore
from .tree import FileTreeNode, build_file_tree
from .watcher import ChangeCallback, ChangeCallbacks, ChangeSet, DebouncedValue, PollingWatcher, SnapshotDiffer

logger = logging.getLogger(__name__)


class TreeMirror:
    """
    In-memory mirror of a directory tree in an external store.

    Args:
        config: Runtime settings (defaults to ``MirrorConfig()``)
        filters: Filter factories, applied in order (defaults to
            ``DEFAULT_FILTERS``)
        store: Optional persistence for opened roots
        on_added / on_deleted / on_modified: Change callbacks, sync or async,
            each called with a path -> entry mapping once per poll cycle
    """

    def __init__(
        self,
        config: Optional[MirrorConfig] = None,
        filters: Optional[Sequence[FilterFactory]] = None,
        store: Optional[DirectoryStore] = None,
        on_added: Optional[ChangeCallback] = None,
        on_deleted: Optional[ChangeCallback] = None,
        on_modified: Optional[ChangeCallback] = None,
    ) -> None:
        self.config = config or MirrorConfig()
        self.filters = list(filters) if filters is not None else list(DEFAULT_FILTERS)
        self.store = store
        self.callbacks = ChangeCallbacks(on_added=on_added, on_deleted=on_deleted, on_modified=on_modified)

        self.state = MirrorState()
        self.state.cache.ttl = self.config.cache_ttl
        self._published: DebouncedValue[Mapping[str, Entry]] = DebouncedValue(
            MappingProxyType({}), delay=self.config.debounce_delay
        )

        self.loader = TreeLoader(self.state)
        self.differ = SnapshotDiffer(
            self.state,
            self.filters,
            callbacks=self.callbacks,
            publish=self._publish,
            batch_size=self.config.batch_size,
            max_directory_entries=self.config.max_directory_entries,
            debug=self.config.debug,
        )
        self.watcher = PollingWatcher(self.differ.run_cycle, interval=self.config.poll_interval)
        self.operations = MutationOperations(self.state, pause=self.watcher.paused, publish=self._publish)

    async def __aenter__(self) -> "TreeMirror":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close_root()

    # ========================================================================
    # Observation
    # ========================================================================

    @property
    def root(self) -> Optional[DirectoryHandle]:
        return self.state.root

    @property
    def index(self) -> Mapping[str, Entry]:
        """Read-only view of the live index (changes as operations run)."""
        return self.state.index.view()

    @property
    def files(self) -> Mapping[str, Entry]:
        """Last published index snapshot (debounced)."""
        return self._published.value

    def get(self, path: str) -> Optional[Entry]:
        return self.state.index.get(path)

    def subscribe(self, listener: Callable[[Mapping[str, Entry]], Any]) -> Callable[[], None]:
        """Call ``listener`` with every published snapshot; returns an unsubscribe function."""
        return self._published.subscribe(listener)

    def flush_published(self) -> None:
        """Publish a pending snapshot immediately."""
        self._published.flush()

    def tree(self, sort: bool = True) -> Optional[FileTreeNode]:
        return build_file_tree(self.state.index, sort=sort)

    def _publish(self) -> None:
        self._published.set(MappingProxyType(self.state.index.snapshot()))

    # ========================================================================
    # Root lifecycle
    # ========================================================================

    async def open_root(
        self,
        handle: DirectoryHandle,
        mode: Union[PermissionMode, str] = PermissionMode.READWRITE,
        depth: Optional[int] = None,
        save: bool = True,
    ) -> Mapping[str, Entry]:
        """
        Open ``handle`` as the root, discarding any previous root.

        Args:
            handle: Directory handle to mirror
            mode: Access mode to request
            depth: Levels to load (defaults to ``config.load_depth``)
            save: Remember the root in ``store`` when one is configured

        Returns:
            Read-only view of the index

        Raises:
            PermissionDeniedError: If the store does not grant ``mode``
        """
        if handle is None:
            raise InvalidArgumentError("A directory handle is required")
        mode = PermissionMode(mode)
        depth = depth or self.config.load_depth

        try:
            permission = await handle.request_permission(mode)
        except Exception as e:
            raise ExternalOperationError(f"Unable to request permission for {handle.name}", handle.name) from e
        if PermissionState(permission) != PermissionState.GRANTED:
            raise PermissionDeniedError(f"Permission '{mode.value}' was not granted for {handle.name}", handle.name)

        self.stop_watching()
        async with self.operations.exclusive():
            self._published.cancel()
            self.state.clear()
            self.state.root = handle
            self.state.mode = mode
            self.state.pipeline = await FilterPipeline.create(self.filters)

            await self.loader.load(handle, handle.name, depth)
            self._publish()
        logger.info(f"Opened {handle.name} ({mode.value}): {len(self.state.index)} entries")

        if self.config.enable_watcher:
            self.start_watching()

        if save and self.store is not None:
            await self.store.save(handle.name, handle)
        return self.index

    def close_root(self) -> None:
        """Stop watching and discard every piece of state."""
        if self.state.root is not None:
            logger.info(f"Closed {self.state.root_path}")
        self.stop_watching()
        self.state.clear()
        self._published.set(MappingProxyType({}))
        self._published.flush()

    async def expand_directory(self, path: str) -> DirectoryEntry:
        """Load the immediate children of an unloaded directory (no-op if loaded)."""
        ensure_path(path)
        async with self.operations.exclusive():
            entry = self.state.index.get(path)
            if entry is None:
                raise NotFoundError(f"Directory not found: {path}", path)
            if not is_directory(entry):
                raise InvalidArgumentError(f"Not a directory: {path}", path)
            if not entry.loaded:
                await self.loader.load(entry.handle, path, 1)
                self.state.touch(*self.state.index.subtree(path))
                self._publish()
            return entry

    # ========================================================================
    # Saved roots
    # ========================================================================

    async def saved_directories(self) -> dict[str, DirectoryHandle]:
        if self.store is None:
            return {}
        return await self.store.get_all()

    async def remove_saved_directory(self, key: str) -> bool:
        if self.store is None:
            return False
        return await self.store.remove(key)

    async def clear_saved_directories(self) -> None:
        if self.store is not None:
            await self.store.clear()

    # ========================================================================
    # File operations
    # ========================================================================

    async def open_file(self, path: str) -> FileEntry:
        return await self.operations.open_file(path)

    async def close_file(self, path: str) -> FileEntry:
        return await self.operations.close_file(path)

    async def write_file(
        self,
        path: str,
        data: Optional[Data] = None,
        *,
        create: bool = True,
        opened: Optional[bool] = None,
        keep_data: bool = False,
    ) -> FileEntry:
        return await self.operations.write_file(path, data, create=create, opened=opened, keep_data=keep_data)

    async def create_directory(self, name: str, parent: str) -> DirectoryEntry:
        return await self.operations.create_directory(name, parent)

    async def delete_entry(self, path: str, recursive: bool = False) -> Entry:
        return await self.operations.delete_entry(path, recursive=recursive)

    async def rename_entry(self, path: str, new_name: str, auto_rename: bool = True) -> Entry:
        return await self.operations.rename_entry(path, new_name, auto_rename=auto_rename)

    async def copy_entry(
        self, path: str, destination: str, replace: bool = False, auto_rename: bool = True
    ) -> Entry:
        return await self.operations.copy_entry(path, destination, replace=replace, auto_rename=auto_rename)

    # ========================================================================
    # Watching
    # ========================================================================

    def start_watching(self) -> None:
        """Start the poll timer (must be called with a running event loop)."""
        if self.state.root is None:
            raise RuntimeError("No root directory is open")
        if not self.watcher.is_running():
            self.watcher.start()

    def stop_watching(self) -> None:
        self.watcher.stop()
        self.differ.discard()

    def is_watching(self) -> bool:
        return self.watcher.is_running()

    async def poll_once(self) -> Optional[ChangeSet]:
        """Run a single poll cycle now."""
        return await self.watcher.poll_once()
