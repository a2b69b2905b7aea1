"""
Tests for poll cycles: snapshot diffing, callbacks and publication.

Cycles are driven with ``poll_once()`` so no test depends on timer timing.
"""

import asyncio
import logging

import pytest

from treemirror import MirrorConfig, TreeMirror
from treemirror.entries import is_directory


# ============================================================================
# MODIFICATIONS
# ============================================================================


@pytest.mark.asyncio
async def test_modified_opened_file_fires_modified_only(watched_mirror, memory_root, callbacks):
    await watched_mirror.open_root(memory_root)
    await watched_mirror.open_file("root/a.txt")
    memory_root.child("a.txt").write_bytes(b"y" * 600)

    changes = await watched_mirror.poll_once()

    assert set(changes.modified) == {"root/a.txt"}
    callbacks.modified.assert_awaited_once()
    payload = callbacks.modified.await_args[0][0]
    assert list(payload) == ["root/a.txt"]
    assert payload["root/a.txt"].size == 600
    callbacks.added.assert_not_awaited()
    callbacks.deleted.assert_not_awaited()

    entry = watched_mirror.index["root/a.txt"]
    assert entry.content == "y" * 600
    assert watched_mirror.state.cache.get("root/a.txt").content == "y" * 600


@pytest.mark.asyncio
async def test_unopened_file_change_is_not_reported(watched_mirror, memory_root, callbacks):
    await watched_mirror.open_root(memory_root)
    before = watched_mirror.index["root/a.txt"]
    memory_root.child("a.txt").write_bytes(b"changed")

    changes = await watched_mirror.poll_once()

    assert not changes
    callbacks.modified.assert_not_awaited()
    # Nothing published: the live index was left alone
    assert watched_mirror.index["root/a.txt"] is before


@pytest.mark.asyncio
async def test_cached_content_is_reused_when_timestamp_unchanged(watched_mirror, memory_root):
    await watched_mirror.open_root(memory_root)
    await watched_mirror.open_file("root/a.txt")
    watched_mirror.state.cache.put("root/a.txt", "cached copy")
    memory_root.add_file("trigger.txt", "forces a publish")

    await watched_mirror.poll_once()

    assert watched_mirror.index["root/a.txt"].content == "cached copy"


@pytest.mark.asyncio
async def test_expired_cache_forces_reread(memory_root, payload_500):
    mirror = TreeMirror(config=MirrorConfig(debounce_delay=0, cache_ttl=0))
    await mirror.open_root(memory_root)
    await mirror.open_file("root/a.txt")
    mirror.state.cache.put("root/a.txt", "stale")
    memory_root.add_file("trigger.txt", "forces a publish")

    await mirror.poll_once()

    assert mirror.index["root/a.txt"].content == payload_500


# ============================================================================
# ADDITIONS AND REMOVALS
# ============================================================================


@pytest.mark.asyncio
async def test_added_file_and_directory(watched_mirror, memory_root, callbacks):
    await watched_mirror.open_root(memory_root)
    memory_root.add_file("new.txt", "new")
    memory_root.child("sub").add_file("c.txt", "c")
    memory_root.add_directory("fresh")

    changes = await watched_mirror.poll_once()

    assert set(changes.added) == {"root/new.txt", "root/sub/c.txt", "root/fresh"}
    callbacks.added.assert_awaited_once()
    fresh = watched_mirror.index["root/fresh"]
    assert is_directory(fresh) and fresh.loaded is False
    assert "root/fresh" not in watched_mirror.state.watched
    assert "root/new.txt" in watched_mirror.files


@pytest.mark.asyncio
async def test_unloaded_directories_are_not_walked(watched_mirror, memory_root, callbacks):
    await watched_mirror.open_root(memory_root, depth=1)
    memory_root.child("sub").add_file("c.txt", "c")

    changes = await watched_mirror.poll_once()

    assert not changes
    callbacks.added.assert_not_awaited()


@pytest.mark.asyncio
async def test_deleted_file(watched_mirror, memory_root, callbacks):
    await watched_mirror.open_root(memory_root)
    await watched_mirror.open_file("root/a.txt")
    memory_root.remove("a.txt")

    changes = await watched_mirror.poll_once()

    assert set(changes.deleted) == {"root/a.txt"}
    payload = callbacks.deleted.await_args[0][0]
    assert payload["root/a.txt"].size == 500
    assert "root/a.txt" not in watched_mirror.index
    assert "root/a.txt" not in watched_mirror.state.cache


@pytest.mark.asyncio
async def test_deleted_directory_prunes_watch_index(watched_mirror, memory_root):
    await watched_mirror.open_root(memory_root)
    memory_root.remove("sub")

    changes = await watched_mirror.poll_once()

    assert set(changes.deleted) == {"root/sub", "root/sub/b.txt"}
    assert "root/sub" not in watched_mirror.state.watched
    assert set(watched_mirror.index) == {"root", "root/a.txt"}


@pytest.mark.asyncio
async def test_kind_change_is_reported_as_added_only(watched_mirror, memory_root):
    await watched_mirror.open_root(memory_root)
    memory_root.remove("a.txt")
    memory_root.add_directory("a.txt")

    changes = await watched_mirror.poll_once()

    assert set(changes.added) == {"root/a.txt"}
    assert not changes.deleted
    assert is_directory(watched_mirror.index["root/a.txt"])


@pytest.mark.asyncio
async def test_change_sets_are_disjoint(watched_mirror, memory_root):
    await watched_mirror.open_root(memory_root)
    await watched_mirror.open_file("root/a.txt")
    memory_root.child("a.txt").write_bytes("edited")
    memory_root.child("sub").remove("b.txt")
    memory_root.add_file("z.txt")

    changes = await watched_mirror.poll_once()

    added, deleted, modified = set(changes.added), set(changes.deleted), set(changes.modified)
    assert added == {"root/z.txt"}
    assert deleted == {"root/sub/b.txt"}
    assert modified == {"root/a.txt"}
    assert not (added & deleted or added & modified or deleted & modified)


@pytest.mark.asyncio
async def test_second_poll_after_publish_is_quiet(watched_mirror, memory_root, callbacks):
    await watched_mirror.open_root(memory_root)
    memory_root.add_file("new.txt")
    await watched_mirror.poll_once()

    changes = await watched_mirror.poll_once()

    assert not changes
    assert callbacks.added.await_count == 1


# ============================================================================
# FILTERS AND SKIPPED DIRECTORIES
# ============================================================================


@pytest.mark.asyncio
async def test_new_gitignore_excludes_existing_entries(watched_mirror, memory_root):
    await watched_mirror.open_root(memory_root)
    memory_root.add_file(".gitignore", "*.txt\n!.gitignore\n")

    changes = await watched_mirror.poll_once()

    assert "root/.gitignore" in changes.added
    assert {"root/a.txt", "root/sub/b.txt"} <= set(changes.deleted)
    assert "root/a.txt" in watched_mirror.state.ignored
    assert "root/sub" in watched_mirror.index


@pytest.mark.asyncio
async def test_unreadable_directory_carries_children_forward(watched_mirror, memory_root, caplog):
    await watched_mirror.open_root(memory_root)

    async def broken_entries():
        raise PermissionError("denied")
        yield  # pragma: no cover

    memory_root.child("sub").entries = broken_entries

    changes = await watched_mirror.poll_once()

    assert not changes
    assert "root/sub/b.txt" in watched_mirror.index
    assert "Error reading directory root/sub" in caplog.text


@pytest.mark.asyncio
async def test_oversize_directory_is_skipped(memory_root, caplog):
    mirror = TreeMirror(config=MirrorConfig(debounce_delay=0, max_directory_entries=2))
    await mirror.open_root(memory_root)
    memory_root.add_file("third.txt")

    with caplog.at_level(logging.WARNING):
        changes = await mirror.poll_once()

    assert not changes
    assert "root/third.txt" not in mirror.index
    assert "root/sub/b.txt" in mirror.index
    assert "exceeds limit" in caplog.text


# ============================================================================
# CALLBACKS
# ============================================================================


@pytest.mark.asyncio
async def test_sync_callbacks_are_supported(memory_root):
    seen = []
    mirror = TreeMirror(config=MirrorConfig(debounce_delay=0), on_added=lambda changes: seen.append(set(changes)))
    await mirror.open_root(memory_root)
    memory_root.add_file("new.txt")

    await mirror.poll_once()

    assert seen == [{"root/new.txt"}]


@pytest.mark.asyncio
async def test_failing_callback_is_logged_and_cycle_publishes(memory_root, caplog):
    def explode(changes):
        raise RuntimeError("callback bug")

    mirror = TreeMirror(config=MirrorConfig(debounce_delay=0), on_added=explode)
    await mirror.open_root(memory_root)
    memory_root.add_file("new.txt")

    await mirror.poll_once()

    assert "Error in change callback" in caplog.text
    assert "root/new.txt" in mirror.index


@pytest.mark.asyncio
async def test_poll_without_root_reports_nothing(mirror):
    changes = await mirror.poll_once()
    assert not changes


@pytest.mark.asyncio
async def test_cycle_results_are_dropped_when_root_closes_mid_cycle(watched_mirror, memory_root, callbacks):
    await watched_mirror.open_root(memory_root)
    memory_root.add_file("new.txt", "late")
    walk = watched_mirror.differ.walk

    async def walk_then_close():
        result = await walk()
        watched_mirror.close_root()
        return result

    watched_mirror.differ.walk = walk_then_close
    changes = await watched_mirror.poll_once()

    assert not changes
    callbacks.added.assert_not_awaited()
    assert dict(watched_mirror.index) == {}


@pytest.mark.asyncio
async def test_write_from_callback_survives_publish(memory_root):
    async def log_additions(added):
        await mirror.write_file("root/log.txt", "seen")

    mirror = TreeMirror(config=MirrorConfig(debounce_delay=0), on_added=log_additions)
    await mirror.open_root(memory_root)
    memory_root.add_file("new.txt", "external")

    changes = await mirror.poll_once()

    assert set(changes.added) == {"root/new.txt"}
    assert {"root/new.txt", "root/log.txt"} <= set(mirror.index)
    assert memory_root.child("log.txt").data == b"seen"
    # The mirror's own write is not reported back as an external addition
    assert not await mirror.poll_once()


@pytest.mark.asyncio
async def test_delete_from_callback_survives_publish(memory_root):
    async def drop_sub(added):
        await mirror.delete_entry("root/sub", recursive=True)

    mirror = TreeMirror(config=MirrorConfig(debounce_delay=0), on_added=drop_sub)
    await mirror.open_root(memory_root)
    memory_root.add_file("new.txt", "external")

    await mirror.poll_once()

    assert "root/sub" not in mirror.index
    assert "root/sub/b.txt" not in mirror.index
    assert not await mirror.poll_once()


# ============================================================================
# BATCHING
# ============================================================================


@pytest.mark.asyncio
async def test_classification_runs_in_fixed_size_batches(memory_root):
    mirror = TreeMirror(config=MirrorConfig(debounce_delay=0, batch_size=2))
    for i in range(5):
        memory_root.add_file(f"f{i}.txt", str(i))
    await mirror.open_root(memory_root)

    in_flight = 0
    peak = 0
    seen = []

    def counted(name, get_file):
        async def wrapper():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0)
                seen.append(name)
                return await get_file()
            finally:
                in_flight -= 1

        return wrapper

    sub = memory_root.child("sub")
    files = [(name, memory_root.child(name)) for name in memory_root.names() if name.endswith(".txt")]
    files.append(("sub/b.txt", sub.child("b.txt")))
    for name, handle in files:
        handle.get_file = counted(name, handle.get_file)

    await mirror.poll_once()

    assert peak == 2
    assert sorted(seen) == sorted(name for name, _ in files)
