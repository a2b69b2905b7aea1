"""
Mutation operations: create, write, delete, rename and copy entries.

Every operation has the same shape:

1. Validate arguments (synchronous, before any store call)
2. Enter the exclusive scope: pause the watcher (awaiting an in-flight
   poll cycle), then take the operation lock so operations never overlap
3. Resolve the parent entry from the index, failing fast when absent
4. Perform the store operation; store exceptions become
   ``ExternalOperationError``
5. Update the index (and watch index / content cache) to match

Directory rename and copy rebuild the subtree into scratch copies of the
index and watch index, and only swap them in after every store call has
succeeded.
"""

import asyncio
import dataclasses
import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable, Optional, Union

from .entries import DirectoryEntry, Entry, EntryIndex, EntryKind, FileEntry, is_directory, is_file
from .errors import (
    ConflictError,
    ExternalOperationError,
    InvalidArgumentError,
    InvalidTopologyError,
    MirrorError,
    NotFoundError,
    PermissionDeniedError,
)
from .handles import PermissionMode
from .paths import (
    ensure_name,
    ensure_path,
    entry_name,
    is_at_or_under,
    is_root_path,
    join_path,
    parent_path,
    split_name,
)
from .state import MirrorState

logger = logging.getLogger(__name__)

Data = Union[str, bytes]


class MutationOperations:
    """Index-editing operations bound to one ``MirrorState``.

    Args:
        state: Shared mirror state
        pause: Factory for the watcher pause scope (async context manager)
        publish: Called after every successful index update
    """

    def __init__(
        self,
        state: MirrorState,
        pause: Callable[[], AsyncContextManager],
        publish: Callable[[], None],
    ) -> None:
        self.state = state
        self._pause = pause
        self._publish = publish
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Pause polling, then hold the operation lock for the block."""
        async with self._pause():
            async with self._lock:
                yield

    # ========================================================================
    # Open / close
    # ========================================================================

    async def open_file(self, path: str) -> FileEntry:
        """Load a file's content into its entry and seed the content cache."""
        ensure_path(path)
        async with self.exclusive():
            entry = self._require_file(path)
            try:
                snapshot = await entry.handle.get_file()
                content = await snapshot.text()
            except Exception as e:
                raise ExternalOperationError(f"Unable to open file: {path}", path) from e

            entry.size = snapshot.size
            entry.last_modified = snapshot.last_modified
            entry.type = snapshot.type
            entry.content = content
            entry.opened = True
            self.state.cache.put(path, content)
            self.state.touch(path)
            self._publish()
            return entry

    async def close_file(self, path: str) -> FileEntry:
        """Drop a file's content and its cache entry."""
        ensure_path(path)
        async with self.exclusive():
            entry = self._require_file(path)
            entry.content = None
            entry.opened = False
            self.state.cache.invalidate(path)
            self.state.touch(path)
            self._publish()
            return entry

    # ========================================================================
    # Create / write
    # ========================================================================

    async def write_file(
        self,
        path: str,
        data: Optional[Data] = None,
        *,
        create: bool = True,
        opened: Optional[bool] = None,
        keep_data: bool = False,
    ) -> FileEntry:
        """
        Create and/or write a file.

        Args:
            path: Target path. With ``create=True`` the last segment is a
                requested name; a collision-free variant may be used instead.
            data: Payload to write; ``None`` only resolves/creates the file
            create: Create a new file. When false the path must already be
                an indexed file.
            opened: Mark the entry opened (``True``) or closed (``False``);
                ``None`` keeps the current state
            keep_data: Append to the existing bytes instead of replacing them

        Returns:
            The resulting file entry (also inserted into the index when the
            parent directory is loaded)
        """
        ensure_path(path)
        if is_root_path(path):
            raise InvalidArgumentError(f"Cannot write to the root path: {path}", path)
        name = ensure_name(entry_name(path), path)

        async with self.exclusive():
            self._require_writable(path)
            parent = self._require_parent(path)
            existing = None

            if create:
                name = await self._unique_name(parent, name)
                path = join_path(parent.path, name)
            else:
                existing = self.state.index.get(path)
                if existing is None:
                    raise ConflictError(f"File does not exist and create is disabled: {path}", path)
                if not is_file(existing):
                    raise InvalidArgumentError(f"Not a file: {path}", path)

            try:
                handle = existing.handle if existing is not None else await parent.handle.get_file_handle(name, create=True)
                if data is not None:
                    await write_stream(handle, data, keep_existing_data=keep_data)
                snapshot = await handle.get_file()
                is_opened = opened if opened is not None else (existing is not None and existing.opened)
                content = None
                if is_opened:
                    if data is not None or existing is None or existing.content is None:
                        content = await snapshot.text()
                    else:
                        content = existing.content
            except MirrorError:
                raise
            except Exception as e:
                raise ExternalOperationError(f"Unable to write file: {path}", path) from e

            if existing is not None:
                entry = dataclasses.replace(existing, handle=handle)
            else:
                entry = FileEntry(name=name, path=path, handle=handle)
            entry.size = snapshot.size
            entry.last_modified = snapshot.last_modified
            entry.type = snapshot.type
            entry.content = content
            entry.opened = is_opened

            if parent.loaded:
                if not is_opened:
                    self.state.cache.invalidate(path)
                elif existing is not None and existing.opened:
                    self.state.cache.refresh(path, content)
                else:
                    self.state.cache.put(path, content)
                self.state.set_entry(path, entry)
                self._publish()
            return entry

    async def create_directory(self, name: str, parent: str) -> DirectoryEntry:
        """Create a subdirectory of ``parent`` under a collision-free name."""
        ensure_name(name)
        ensure_path(parent)

        async with self.exclusive():
            self._require_writable(parent)
            parent_entry = self.state.index.get(parent)
            if not is_directory(parent_entry):
                raise NotFoundError(f"Parent directory not found: {parent}", parent)

            name = await self._unique_name(parent_entry, name)
            path = join_path(parent, name)
            try:
                handle = await parent_entry.handle.get_directory_handle(name, create=True)
            except Exception as e:
                raise ExternalOperationError(f"Unable to create directory: {path}", path) from e

            entry = DirectoryEntry(name=name, path=path, handle=handle, loaded=False)
            if parent_entry.loaded:
                self.state.set_entry(path, entry)
                self._publish()
            return entry

    # ========================================================================
    # Delete
    # ========================================================================

    async def delete_entry(self, path: str, recursive: bool = False) -> Entry:
        """
        Remove a file or directory from the store and the index.

        A non-empty directory needs ``recursive=True``; the store refuses
        otherwise and the error surfaces as ``ExternalOperationError``.
        """
        ensure_path(path)
        if is_root_path(path):
            raise InvalidArgumentError("The root directory can't be deleted", path)

        async with self.exclusive():
            self._require_writable(path)
            entry = self.state.index.get(path)
            if entry is None:
                raise NotFoundError(f"File or directory not found: {path}", path)
            parent = self._require_parent(path)
            is_recursive = recursive and is_directory(entry)

            collected: list[str] = []
            try:
                if is_recursive:
                    collected = await collect_descendants(entry.handle, path)
                await parent.handle.remove_entry(entry.name, recursive=is_recursive)
            except Exception as e:
                raise ExternalOperationError(f"Unable to delete {entry.kind.value}: {path}", path) from e

            self._forget(set(collected) | set(self.state.index.subtree(path)))
            self._publish()
            return entry

    # ========================================================================
    # Rename / copy
    # ========================================================================

    async def rename_entry(self, path: str, new_name: str, auto_rename: bool = True) -> Entry:
        """
        Rename a file or directory within its parent.

        Renaming to the identical name is a no-op. A rename that differs only
        in letter case succeeds on case-insensitive stores too: the old
        resource is only removed when the store reports a distinct entry.
        """
        ensure_path(path)
        if is_root_path(path):
            raise InvalidArgumentError("The root directory can't be renamed", path)
        ensure_name(new_name, path)

        async with self.exclusive():
            self._require_writable(path)
            entry = self.state.index.get(path)
            if entry is None:
                raise NotFoundError(f"File or directory not found: {path}", path)
            if new_name == entry.name:
                return entry

            parent = self._require_parent(path)
            name = await self._target_name(parent, new_name, auto_rename, exclude=entry.name)
            new_path = join_path(parent.path, name)

            if is_file(entry):
                result = await self._transfer_file(entry, parent, parent, name, new_path, move=True)
            else:
                result = await self._transfer_directory(entry, parent, parent, name, new_path, move=True)

            logger.debug(f"Renamed {path} -> {new_path}")
            self._publish()
            return result

    async def copy_entry(
        self,
        path: str,
        destination: str,
        replace: bool = False,
        auto_rename: bool = True,
    ) -> Entry:
        """
        Copy a file or directory into the ``destination`` directory.

        Args:
            path: Source entry
            destination: Path of an indexed destination directory
            replace: Remove the source after a successful copy (a move)
            auto_rename: Resolve name clashes as ``name (2).ext``; when false
                a clash raises ``ConflictError``

        Returns:
            The entry created at the destination
        """
        ensure_path(path)
        ensure_path(destination)
        if is_root_path(path):
            raise InvalidArgumentError("The root directory can't be copied", path)

        async with self.exclusive():
            self._require_writable(path)
            entry = self.state.index.get(path)
            if entry is None:
                raise NotFoundError(f"Source file or directory not found: {path}", path)
            target = self.state.index.get(destination)
            if not is_directory(target):
                raise NotFoundError(f"Destination directory not found: {destination}", destination)
            if is_directory(entry) and is_at_or_under(destination, path):
                raise InvalidTopologyError(
                    f"Cannot copy a directory into itself or one of its descendants: {path} -> {destination}",
                    destination,
                )

            source_parent = self._require_parent(path)
            if replace and source_parent.path == target.path:
                # Moving into the directory it already lives in
                return entry

            name = await self._target_name(target, entry.name, auto_rename)
            new_path = join_path(target.path, name)

            if is_file(entry):
                result = await self._transfer_file(entry, source_parent, target, name, new_path, move=replace)
            else:
                result = await self._transfer_directory(entry, source_parent, target, name, new_path, move=replace)

            logger.debug(f"{'Moved' if replace else 'Copied'} {path} -> {new_path}")
            self._publish()
            return result

    async def _transfer_file(
        self,
        entry: FileEntry,
        source_parent: DirectoryEntry,
        target_parent: DirectoryEntry,
        name: str,
        new_path: str,
        move: bool,
    ) -> FileEntry:
        verb = "move" if move else "copy"
        new_handle = None
        same = False
        try:
            data = await (await entry.handle.get_file()).read()
            new_handle = await target_parent.handle.get_file_handle(name, create=True)
            same = await new_handle.is_same_entry(entry.handle)
            await write_stream(new_handle, data)
            snapshot = await new_handle.get_file()
            # Remove the source only once the copy is readable
            if move and not same:
                await source_parent.handle.remove_entry(entry.name)
        except Exception as e:
            if new_handle is not None and not same:
                await self._discard(target_parent, name, recursive=False)
            raise ExternalOperationError(f"Unable to {verb} file: {entry.path}", entry.path) from e

        content = data.decode("utf-8", errors="replace") if entry.opened else None
        new_entry = FileEntry(
            name=name,
            path=new_path,
            handle=new_handle,
            size=snapshot.size,
            last_modified=snapshot.last_modified,
            type=snapshot.type,
            content=content,
            opened=entry.opened,
        )

        if move:
            self.state.drop_entry(entry.path)
        if target_parent.loaded:
            self.state.set_entry(new_path, new_entry)
            if new_entry.opened:
                self.state.cache.put(new_path, content)
        return new_entry

    async def _transfer_directory(
        self,
        entry: DirectoryEntry,
        source_parent: DirectoryEntry,
        target_parent: DirectoryEntry,
        name: str,
        new_path: str,
        move: bool,
    ) -> DirectoryEntry:
        verb = "move" if move else "copy"
        scratch = self.state.index.copy()
        scratch_watched = dict(self.state.watched)
        # path -> content to cache, or None to invalidate
        cache_updates: dict[str, Optional[str]] = {}

        new_handle = None
        same = False
        try:
            new_handle = await target_parent.handle.get_directory_handle(name, create=True)
            same = await new_handle.is_same_entry(entry.handle)
            await self._rebuild_subtree(
                entry.handle, new_handle, entry.path, new_path, scratch, scratch_watched, cache_updates
            )
            if move and not same:
                await source_parent.handle.remove_entry(entry.name, recursive=True)
        except Exception as e:
            if new_handle is not None and not same:
                await self._discard(target_parent, name, recursive=True)
            raise ExternalOperationError(f"Unable to {verb} directory: {entry.path}", entry.path) from e

        new_entry = DirectoryEntry(name=name, path=new_path, handle=new_handle, loaded=entry.loaded)
        scratch.set(new_path, new_entry)
        if entry.loaded:
            scratch_watched[new_path] = new_handle

        if move:
            for key in scratch.subtree(entry.path):
                scratch.delete(key)
                cache_updates.setdefault(key, None)
            for key in [w for w in scratch_watched if is_at_or_under(w, entry.path)]:
                del scratch_watched[key]

        if not target_parent.loaded:
            for key in scratch.subtree(new_path):
                scratch.delete(key)
                cache_updates.pop(key, None)
            for key in [w for w in scratch_watched if is_at_or_under(w, new_path)]:
                del scratch_watched[key]

        # Commit
        self.state.touch(*self.state.index.subtree(entry.path), *scratch.subtree(new_path))
        self.state.index.replace(scratch)
        self.state.roll_baseline()
        self.state.watched = scratch_watched
        for key, content in cache_updates.items():
            if content is None:
                self.state.cache.invalidate(key)
            else:
                self.state.cache.put(key, content)
        return new_entry

    async def _rebuild_subtree(
        self,
        source,
        target,
        old_base: str,
        new_base: str,
        scratch: EntryIndex,
        scratch_watched: dict,
        cache_updates: dict,
    ) -> None:
        async for child_name, child in source.entries():
            old_path = join_path(old_base, child_name)
            new_path = join_path(new_base, child_name)
            old_entry = scratch.get(old_path)

            if child.kind == EntryKind.FILE:
                data = await (await child.get_file()).read()
                new_handle = await target.get_file_handle(child_name, create=True)
                await write_stream(new_handle, data)
                if not is_file(old_entry):
                    continue
                snapshot = await new_handle.get_file()
                content = data.decode("utf-8", errors="replace") if old_entry.opened else None
                scratch.set(
                    new_path,
                    FileEntry(
                        name=child_name,
                        path=new_path,
                        handle=new_handle,
                        size=snapshot.size,
                        last_modified=snapshot.last_modified,
                        type=snapshot.type,
                        content=content,
                        opened=old_entry.opened,
                    ),
                )
                if old_entry.opened:
                    cache_updates[new_path] = content
            else:
                new_handle = await target.get_directory_handle(child_name, create=True)
                if is_directory(old_entry):
                    scratch.set(
                        new_path,
                        DirectoryEntry(name=child_name, path=new_path, handle=new_handle, loaded=old_entry.loaded),
                    )
                    if old_entry.loaded:
                        scratch_watched[new_path] = new_handle
                await self._rebuild_subtree(
                    child, new_handle, old_path, new_path, scratch, scratch_watched, cache_updates
                )

    async def _discard(self, parent: DirectoryEntry, name: str, recursive: bool) -> None:
        """Best-effort removal of a partially created target."""
        try:
            await parent.handle.remove_entry(name, recursive=recursive)
        except Exception as e:
            logger.warning(f"Could not clean up {join_path(parent.path, name)}: {e}")

    # ========================================================================
    # Helpers
    # ========================================================================

    def _require_writable(self, path: str) -> None:
        if self.state.root is None:
            raise PermissionDeniedError("No root directory is open", path)
        if self.state.mode != PermissionMode.READWRITE:
            raise PermissionDeniedError(f"Root was opened read-only: {self.state.root_path}", path)

    def _require_parent(self, path: str) -> DirectoryEntry:
        parent = parent_path(path)
        entry = self.state.index.get(parent)
        if not is_directory(entry):
            raise NotFoundError(f"Parent directory not found: {parent}", parent)
        return entry

    def _require_file(self, path: str) -> FileEntry:
        entry = self.state.index.get(path)
        if entry is None:
            raise NotFoundError(f"File not found: {path}", path)
        if not is_file(entry):
            raise InvalidArgumentError(f"Not a file: {path}", path)
        return entry

    def _forget(self, paths) -> None:
        for key in paths:
            self.state.drop_entry(key)
        for key in [w for w in self.state.watched if any(is_at_or_under(w, p) for p in paths)]:
            del self.state.watched[key]

    async def _taken_names(self, parent: DirectoryEntry, exclude: Optional[str] = None) -> set[str]:
        names = {entry.name for entry in self.state.index.children(parent.path)}
        try:
            async for name, _ in parent.handle.entries():
                names.add(name)
        except Exception as e:
            raise ExternalOperationError(f"Unable to list directory: {parent.path}", parent.path) from e
        names.discard(exclude)
        return {name.lower() for name in names}

    async def _unique_name(self, parent: DirectoryEntry, name: str, exclude: Optional[str] = None) -> str:
        """First of ``name``, ``base (2).ext``, ``base (3).ext``... not taken in ``parent``."""
        taken = await self._taken_names(parent, exclude)
        base, extension = split_name(name)
        candidate = name
        counter = 1
        while candidate.lower() in taken:
            counter += 1
            candidate = f"{base} ({counter}){extension}"
        return candidate

    async def _target_name(
        self, parent: DirectoryEntry, name: str, auto_rename: bool, exclude: Optional[str] = None
    ) -> str:
        if auto_rename:
            return await self._unique_name(parent, name, exclude)
        if name.lower() in await self._taken_names(parent, exclude):
            raise ConflictError(f"An entry named {name} already exists in {parent.path}", join_path(parent.path, name))
        return name


async def write_stream(handle, data: Data, keep_existing_data: bool = False) -> None:
    """Write ``data`` through a scoped writable, aborting it on failure."""
    writable = await handle.create_writable(keep_existing_data=keep_existing_data)
    try:
        await writable.write(data)
        await writable.close()
    except Exception:
        try:
            await writable.abort()
        except Exception as abort_error:
            logger.warning(f"Could not abort writable stream: {abort_error}")
        raise


async def collect_descendants(handle, path: str) -> list[str]:
    """Depth-first list of every path below ``path`` (children before parents)."""
    collected = []
    async for name, child in handle.entries():
        child_path = join_path(path, name)
        if child.kind == EntryKind.DIRECTORY:
            collected.extend(await collect_descendants(child, child_path))
        collected.append(child_path)
    return collected
