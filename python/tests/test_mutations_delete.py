"""
Tests for delete_entry.
"""

from unittest.mock import AsyncMock

import pytest

from treemirror.errors import ExternalOperationError, InvalidArgumentError, NotFoundError


@pytest.mark.asyncio
async def test_delete_file(mirror, memory_root):
    await mirror.open_root(memory_root)

    removed = await mirror.delete_entry("root/a.txt")

    assert removed.path == "root/a.txt"
    assert "root/a.txt" not in mirror.index
    assert "root/a.txt" not in mirror.files
    assert memory_root.child("a.txt") is None


@pytest.mark.asyncio
async def test_delete_directory_recursively(mirror, memory_root):
    await mirror.open_root(memory_root)
    await mirror.open_file("root/sub/b.txt")
    assert "root/sub" in mirror.state.watched

    await mirror.delete_entry("root/sub", recursive=True)

    assert "root/sub" not in mirror.index
    assert "root/sub/b.txt" not in mirror.index
    assert "root/sub" not in mirror.state.watched
    assert "root/sub/b.txt" not in mirror.state.cache
    assert memory_root.child("sub") is None


@pytest.mark.asyncio
async def test_delete_non_empty_directory_requires_recursive(mirror, memory_root):
    await mirror.open_root(memory_root)

    with pytest.raises(ExternalOperationError):
        await mirror.delete_entry("root/sub")

    assert "root/sub" in mirror.index
    assert "root/sub/b.txt" in mirror.index
    assert memory_root.child("sub") is not None


@pytest.mark.asyncio
async def test_delete_empty_directory(mirror, memory_root):
    memory_root.add_directory("empty")
    await mirror.open_root(memory_root)

    await mirror.delete_entry("root/empty")

    assert "root/empty" not in mirror.index


@pytest.mark.asyncio
async def test_delete_opened_file_drops_cache(mirror, memory_root):
    await mirror.open_root(memory_root)
    await mirror.open_file("root/a.txt")

    await mirror.delete_entry("root/a.txt")

    assert "root/a.txt" not in mirror.state.cache


@pytest.mark.asyncio
async def test_delete_rejects_root_and_missing(mirror, memory_root):
    await mirror.open_root(memory_root)

    with pytest.raises(InvalidArgumentError):
        await mirror.delete_entry("root")
    with pytest.raises(NotFoundError):
        await mirror.delete_entry("root/missing.txt")


@pytest.mark.asyncio
async def test_delete_store_failure_leaves_index(mirror, memory_root):
    await mirror.open_root(memory_root)
    memory_root.remove_entry = AsyncMock(side_effect=PermissionError("locked"))

    with pytest.raises(ExternalOperationError) as exc_info:
        await mirror.delete_entry("root/a.txt")

    assert exc_info.value.kind == "external-operation-failed"
    assert isinstance(exc_info.value.__cause__, PermissionError)
    assert "root/a.txt" in mirror.index
