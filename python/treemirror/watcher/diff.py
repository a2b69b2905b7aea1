"""
Snapshot diffing for the polling watcher.

One cycle runs in three phases:

1. Walk: rebuild the filter pipeline, then enumerate every watched
   directory (parents before children) into a virtual map of
   path -> (kind, handle), re-applying the filters to each child.
2. Classify: fetch file metadata in batches, compare against the previous
   snapshot and build the next snapshot plus the added/modified sets.
3. Removals: previous paths missing from the walk are deleted, except
   under directories the walk had to skip.

Only a cycle with at least one change publishes: callbacks fire, then the
live index, baseline, pipeline and ignored set are swapped in together.
Entries that operations run from inside a callback touched are copied
from the live index into the new snapshot before the swap.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ..entries import DirectoryEntry, EntryIndex, EntryKind, FileEntry, is_directory, is_file
from ..filters import FilterFactory, FilterPipeline
from ..loader import list_children
from ..paths import is_at_or_under, is_descendant, is_root_path, join_path, parent_path
from ..state import MirrorState
from .types import ChangeCallbacks, ChangeKind, ChangeSet

logger = logging.getLogger(__name__)


@dataclass
class VirtualEntry:
    kind: EntryKind
    handle: object


@dataclass
class WalkResult:
    """Everything the walk phase observed."""

    entries: dict[str, VirtualEntry] = field(default_factory=dict)
    ignored: set[str] = field(default_factory=set)
    # Directories whose children could not be listed this cycle
    skipped: set[str] = field(default_factory=set)
    pipeline: FilterPipeline = field(default_factory=FilterPipeline)
    root: object = None


class SnapshotDiffer:
    """
    Runs diff cycles against a ``MirrorState``.

    Args:
    -----
    state: Shared mirror state (read during the cycle, swapped on publish)
    filters: Filter factories, rebuilt at the start of every cycle
    callbacks: Per-category change callbacks
    publish: Called after a publishing cycle swapped in the new index
    batch_size: Files classified concurrently per batch
    max_directory_entries: Directories with more children are skipped
    debug: Log cycle results at INFO instead of DEBUG
    """

    def __init__(
        self,
        state: MirrorState,
        filters: Sequence[FilterFactory],
        callbacks: Optional[ChangeCallbacks] = None,
        publish: Optional[Callable[[], None]] = None,
        batch_size: int = 50,
        max_directory_entries: int = 1000,
        debug: bool = False,
    ) -> None:
        self.state = state
        self.filters = list(filters)
        self.callbacks = callbacks or ChangeCallbacks()
        self._publish = publish
        self.batch_size = batch_size
        self.max_directory_entries = max_directory_entries
        self.debug = debug
        self.last_walk: Optional[WalkResult] = None

    def discard(self) -> None:
        """Forget transient filter/ignore state from the last cycle."""
        self.last_walk = None

    async def run_cycle(self) -> ChangeSet:
        """Run walk, classify and removal phases; publish when anything changed."""
        if self.state.root is None:
            return ChangeSet()

        started = time.perf_counter()
        walk = await self.walk()
        self.last_walk = walk
        snapshot, changes = await self.classify(walk)
        self.detect_removals(walk, snapshot, changes)

        if self.state.root is not walk.root:
            logger.debug("Root changed during poll cycle, discarding results")
            return ChangeSet()
        if changes:
            await self.publish(changes, snapshot, walk)

        log = logger.info if self.debug else logger.debug
        log(
            f"Poll cycle: {len(walk.entries)} entries, "
            f"+{len(changes.added)} -{len(changes.deleted)} ~{len(changes.modified)} "
            f"({time.perf_counter() - started:.3f}s)"
        )
        return changes

    # ========================================================================
    # Phase 1: walk
    # ========================================================================

    async def walk(self) -> WalkResult:
        root = self.state.root
        pipeline = await FilterPipeline.create(self.filters)
        walk = WalkResult(pipeline=pipeline, root=root)
        walk.entries[root.name] = VirtualEntry(EntryKind.DIRECTORY, root)

        # Parents first, so a directory is only walked if its parent saw it
        for path in sorted(self.state.watched, key=lambda p: p.count("/")):
            await self._walk_directory(path, self.state.watched[path], walk)

        # Final sweep: filters may have learned rules after siblings were added
        items = list(walk.entries.items())
        verdicts = await asyncio.gather(*(pipeline.ignore(path, v.handle) for path, v in items))
        for (path, _), excluded in zip(items, verdicts):
            if excluded:
                for key in [k for k in walk.entries if is_at_or_under(k, path)]:
                    del walk.entries[key]
                walk.ignored.add(path)
        return walk

    async def _walk_directory(self, path: str, handle, walk: WalkResult) -> None:
        seen = walk.entries.get(path)
        if seen is None or seen.kind != EntryKind.DIRECTORY or path in walk.ignored:
            return
        if any(is_descendant(path, skipped) for skipped in walk.skipped):
            return
        if await walk.pipeline.ignore(path, handle):
            walk.ignored.add(path)
            return

        try:
            files, directories = await list_children(handle)
        except Exception as e:
            logger.warning(f"Error reading directory {path}: {e}")
            walk.skipped.add(path)
            return

        total = len(files) + len(directories)
        if total > self.max_directory_entries:
            logger.warning(
                f"Skipping {path}: {total} entries exceeds limit of {self.max_directory_entries}"
            )
            walk.skipped.add(path)
            return

        async def visit(name: str, child, kind: EntryKind) -> None:
            child_path = join_path(path, name)
            if child_path in walk.ignored:
                return
            if await walk.pipeline.ignore(child_path, child):
                walk.ignored.add(child_path)
                return
            walk.entries[child_path] = VirtualEntry(kind, child)

        await asyncio.gather(*(visit(name, child, EntryKind.FILE) for name, child in files))
        await asyncio.gather(*(visit(name, child, EntryKind.DIRECTORY) for name, child in directories))

    # ========================================================================
    # Phase 2: classify
    # ========================================================================

    async def classify(self, walk: WalkResult) -> tuple[EntryIndex, ChangeSet]:
        snapshot = EntryIndex()
        changes = ChangeSet()
        now = time.time()
        items = list(walk.entries.items())

        for start in range(0, len(items), self.batch_size):
            batch = items[start : start + self.batch_size]
            await asyncio.gather(
                *(self._classify_entry(path, virtual, now, snapshot, changes) for path, virtual in batch)
            )
        return snapshot, changes

    async def _classify_entry(
        self, path: str, virtual: VirtualEntry, now: float, snapshot: EntryIndex, changes: ChangeSet
    ) -> None:
        previous = self.state.previous.get(path)

        if virtual.kind == EntryKind.DIRECTORY:
            entry = DirectoryEntry(
                name=virtual.handle.name,
                path=path,
                handle=virtual.handle,
                loaded=previous.loaded if is_directory(previous) else False,
            )
            if not is_directory(previous):
                changes.added[path] = entry
            snapshot.set(path, entry)
            return

        try:
            file = await virtual.handle.get_file()
        except Exception as e:
            logger.warning(f"Could not read file metadata for {path}: {e}")
            if previous is not None:
                snapshot.set(path, previous)
            return

        previous_file = previous if is_file(previous) else None
        if is_directory(previous):
            # Kind changed: the old directory's watch registrations are stale
            for key in [w for w in self.state.watched if is_at_or_under(w, path)]:
                del self.state.watched[key]

        opened = previous_file is not None and previous_file.opened
        timestamp_changed = previous_file is not None and previous_file.last_modified != file.last_modified

        content = None
        if opened:
            cached = self.state.cache.get(path, now)
            if cached is None or timestamp_changed:
                try:
                    content = await file.text()
                    self.state.cache.put(path, content, now)
                except Exception as e:
                    logger.warning(f"Could not read content of {path}: {e}")
                    content = previous_file.content
            else:
                content = cached.content

        entry = FileEntry(
            name=file.name,
            path=path,
            handle=virtual.handle,
            size=file.size,
            last_modified=file.last_modified,
            type=file.type,
            content=content,
            opened=opened,
        )
        if previous_file is None:
            changes.added[path] = entry
        elif opened and timestamp_changed:
            changes.modified[path] = entry
        snapshot.set(path, entry)

    # ========================================================================
    # Phase 3: removals
    # ========================================================================

    def detect_removals(self, walk: WalkResult, snapshot: EntryIndex, changes: ChangeSet) -> None:
        for path, entry in self.state.previous.items():
            if path in snapshot or path in walk.entries:
                continue
            if any(is_descendant(path, skipped) for skipped in walk.skipped):
                # Carried forward unchanged for this cycle
                snapshot.set(path, entry)
                continue

            changes.deleted[path] = entry
            if is_directory(entry):
                for key in [w for w in self.state.watched if is_at_or_under(w, path)]:
                    del self.state.watched[key]
            else:
                self.state.cache.invalidate(path)

    # ========================================================================
    # Publish
    # ========================================================================

    async def publish(self, changes: ChangeSet, snapshot: EntryIndex, walk: WalkResult) -> None:
        self.state.journal = set()
        try:
            for kind in ChangeKind:
                payload = changes.get(kind)
                callback = self.callbacks.get(kind)
                if payload and callback is not None:
                    await self._invoke_callback(callback, dict(payload))
        finally:
            touched, self.state.journal = self.state.journal, None
        if self.state.root is not walk.root:
            logger.debug("Root changed during change callbacks, discarding results")
            return

        # Operations run from a callback edited the live index; carry them over
        for path in sorted(touched, key=lambda p: p.count("/")):
            entry = self.state.index.get(path)
            if entry is None:
                for key in snapshot.subtree(path):
                    snapshot.delete(key)
            elif is_root_path(path) or parent_path(path) in snapshot:
                snapshot.set(path, entry)

        self.state.index.replace(snapshot)
        self.state.roll_baseline()
        self.state.pipeline = walk.pipeline
        self.state.ignored = set(walk.ignored)
        if self._publish is not None:
            self._publish()

    async def _invoke_callback(self, callback, payload) -> None:
        """Invoke a change callback (sync or async), logging its failures."""
        try:
            result = callback(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            # Log error but don't raise (keep watching)
            logger.error(f"Error in change callback: {e}", exc_info=True)
