"""
Tests for write_file and create_directory.
"""

from unittest.mock import AsyncMock

import pytest

from treemirror.errors import (
    ConflictError,
    ExternalOperationError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)


# ============================================================================
# WRITE FILE
# ============================================================================


@pytest.mark.asyncio
async def test_write_creates_file(mirror, memory_root):
    await mirror.open_root(memory_root)

    entry = await mirror.write_file("root/new.txt", "hello")

    assert entry.path == "root/new.txt"
    assert entry.size == 5
    assert entry.opened is False
    assert entry.content is None
    assert mirror.index["root/new.txt"] is entry
    assert "root/new.txt" in mirror.files
    assert memory_root.child("new.txt").data == b"hello"


@pytest.mark.asyncio
async def test_write_opened_keeps_content_and_seeds_cache(mirror, memory_root):
    await mirror.open_root(memory_root)

    entry = await mirror.write_file("root/notes.md", "# Notes", opened=True)

    assert entry.opened is True
    assert entry.content == "# Notes"
    assert mirror.state.cache.get("root/notes.md").content == "# Notes"


@pytest.mark.asyncio
async def test_write_without_data_creates_empty_file(mirror, memory_root):
    await mirror.open_root(memory_root)

    entry = await mirror.write_file("root/empty.txt")

    assert entry.size == 0
    assert memory_root.child("empty.txt").data == b""


@pytest.mark.asyncio
async def test_create_resolves_name_collisions(mirror, memory_root):
    await mirror.open_root(memory_root)

    first = await mirror.write_file("root/a.txt", "one")
    second = await mirror.write_file("root/A.TXT", "two")

    assert first.path == "root/a (2).txt"
    assert second.path == "root/A (3).TXT"
    # The original was not touched
    assert len(memory_root.child("a.txt").data) == 500


@pytest.mark.asyncio
async def test_create_never_overwrites_filtered_entries(mirror, memory_root):
    memory_root.add_directory("node_modules")
    await mirror.open_root(memory_root)
    assert "root/node_modules" not in mirror.index

    entry = await mirror.create_directory("node_modules", "root")

    assert entry.name == "node_modules (2)"


@pytest.mark.asyncio
async def test_write_existing_replaces_content(mirror, memory_root):
    await mirror.open_root(memory_root)

    entry = await mirror.write_file("root/a.txt", "short", create=False)

    assert entry.path == "root/a.txt"
    assert entry.size == 5
    assert memory_root.child("a.txt").data == b"short"
    assert mirror.index["root/a.txt"].size == 5


@pytest.mark.asyncio
async def test_write_keep_data_appends(mirror, memory_root):
    await mirror.open_root(memory_root)

    await mirror.write_file("root/sub/b.txt", "!", create=False, keep_data=True)

    assert memory_root.child("sub").child("b.txt").data == b"hello from b!"


@pytest.mark.asyncio
async def test_write_to_opened_file_refreshes_content_and_cache(mirror, memory_root):
    await mirror.open_root(memory_root)
    await mirror.open_file("root/a.txt")

    entry = await mirror.write_file("root/a.txt", "updated", create=False)

    assert entry.opened is True
    assert entry.content == "updated"
    assert mirror.state.cache.get("root/a.txt").content == "updated"


@pytest.mark.asyncio
async def test_write_missing_without_create_is_conflict(mirror, memory_root):
    await mirror.open_root(memory_root)

    with pytest.raises(ConflictError) as exc_info:
        await mirror.write_file("root/missing.txt", "x", create=False)

    assert exc_info.value.path == "root/missing.txt"
    assert memory_root.child("missing.txt") is None


@pytest.mark.asyncio
async def test_write_rejects_root_and_missing_parent(mirror, memory_root):
    await mirror.open_root(memory_root)

    with pytest.raises(InvalidArgumentError):
        await mirror.write_file("root", "x")
    with pytest.raises(NotFoundError):
        await mirror.write_file("root/nowhere/x.txt", "x")
    with pytest.raises(NotFoundError):
        await mirror.write_file("root/a.txt/x.txt", "x")


@pytest.mark.asyncio
async def test_write_into_unloaded_parent_skips_index(mirror, memory_root):
    await mirror.open_root(memory_root, depth=1)

    entry = await mirror.write_file("root/sub/c.txt", "c")

    assert entry.path == "root/sub/c.txt"
    assert "root/sub/c.txt" not in mirror.index
    assert memory_root.child("sub").child("c.txt").data == b"c"


@pytest.mark.asyncio
async def test_write_failure_aborts_stream_and_leaves_index(mirror, memory_root):
    await mirror.open_root(memory_root)
    before = mirror.index["root/a.txt"]
    stream = AsyncMock()
    stream.write.side_effect = OSError("disk full")
    memory_root.child("a.txt").create_writable = AsyncMock(return_value=stream)

    with pytest.raises(ExternalOperationError) as exc_info:
        await mirror.write_file("root/a.txt", "new", create=False)

    assert isinstance(exc_info.value.__cause__, OSError)
    stream.abort.assert_awaited_once()
    stream.close.assert_not_awaited()
    assert mirror.index["root/a.txt"] is before
    assert before.size == 500


@pytest.mark.asyncio
async def test_write_on_read_only_root_is_denied(mirror, memory_root):
    await mirror.open_root(memory_root, mode="read")

    with pytest.raises(PermissionDeniedError):
        await mirror.write_file("root/new.txt", "x")

    assert memory_root.child("new.txt") is None


@pytest.mark.asyncio
async def test_write_without_root_is_denied(mirror):
    with pytest.raises(PermissionDeniedError):
        await mirror.write_file("root/new.txt", "x")


# ============================================================================
# CREATE DIRECTORY
# ============================================================================


@pytest.mark.asyncio
async def test_create_directory_inserts_unloaded_entry(mirror, memory_root):
    await mirror.open_root(memory_root)

    entry = await mirror.create_directory("docs", "root")

    assert entry.path == "root/docs"
    assert entry.loaded is False
    assert mirror.index["root/docs"] is entry
    assert memory_root.child("docs") is not None


@pytest.mark.asyncio
async def test_create_directory_resolves_collisions(mirror, memory_root):
    await mirror.open_root(memory_root)

    entry = await mirror.create_directory("SUB", "root")

    assert entry.name == "SUB (2)"


@pytest.mark.asyncio
async def test_create_directory_errors(mirror, memory_root):
    await mirror.open_root(memory_root)

    with pytest.raises(NotFoundError):
        await mirror.create_directory("x", "root/missing")
    with pytest.raises(NotFoundError):
        await mirror.create_directory("x", "root/a.txt")
    with pytest.raises(InvalidArgumentError):
        await mirror.create_directory("a/b", "root")


@pytest.mark.asyncio
async def test_create_directory_store_failure(mirror, memory_root):
    await mirror.open_root(memory_root)
    memory_root.get_directory_handle = AsyncMock(side_effect=PermissionError("read-only"))

    with pytest.raises(ExternalOperationError):
        await mirror.create_directory("docs", "root")

    assert "root/docs" not in mirror.index


@pytest.mark.asyncio
async def test_opened_write_into_unloaded_parent_skips_cache(mirror, memory_root):
    await mirror.open_root(memory_root, depth=1)

    entry = await mirror.write_file("root/sub/c.txt", "c", opened=True)

    assert entry.opened
    assert "root/sub/c.txt" not in mirror.index
    assert "root/sub/c.txt" not in mirror.state.cache.paths()
