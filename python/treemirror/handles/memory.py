"""
In-memory store.

Behaves like a permission-scoped directory tree: handles are stable
objects, snapshots are immutable copies, writable streams buffer until
``close()``. The synchronous ``add_file``/``add_directory``/``write_bytes``
/``remove`` helpers mutate the tree the way an unobserved external
process would, which is what poll-cycle tests need.
"""

import mimetypes
import time
from typing import AsyncIterator, Optional, Union

from ..entries import EntryKind
from .base import FileSnapshot, PermissionMode, PermissionState, encode_data


def _next_timestamp(previous: float) -> float:
    # Keep modification timestamps strictly increasing per file
    now = time.time()
    return now if now > previous else previous + 0.001


class MemoryWritableStream:
    def __init__(self, target: "MemoryFileHandle", initial: bytes) -> None:
        self._target = target
        self._buffer = bytearray(initial)
        self._state = "open"

    async def write(self, data: Union[str, bytes]) -> None:
        if self._state != "open":
            raise ValueError("Stream is closed")
        self._buffer.extend(encode_data(data))

    async def close(self) -> None:
        if self._state != "open":
            raise ValueError("Stream is closed")
        self._state = "closed"
        self._target.write_bytes(bytes(self._buffer))

    async def abort(self) -> None:
        self._state = "aborted"
        self._buffer.clear()


class MemoryFileHandle:
    kind = EntryKind.FILE

    def __init__(
        self,
        name: str,
        content: Union[str, bytes] = b"",
        content_type: Optional[str] = None,
    ) -> None:
        self.name = name
        self._data = encode_data(content)
        self._last_modified = _next_timestamp(0.0)
        self._type = content_type if content_type is not None else (mimetypes.guess_type(name)[0] or "")

    @property
    def data(self) -> bytes:
        return self._data

    def write_bytes(self, content: Union[str, bytes]) -> None:
        self._data = encode_data(content)
        self._last_modified = _next_timestamp(self._last_modified)

    async def get_file(self) -> FileSnapshot:
        data = self._data

        async def reader() -> bytes:
            return data

        return FileSnapshot(
            name=self.name,
            size=len(data),
            last_modified=self._last_modified,
            type=self._type,
            _reader=reader,
        )

    async def create_writable(self, keep_existing_data: bool = False) -> MemoryWritableStream:
        return MemoryWritableStream(self, self._data if keep_existing_data else b"")

    async def is_same_entry(self, other) -> bool:
        return other is self

    def __repr__(self) -> str:
        return f"MemoryFileHandle({self.name!r})"


class MemoryDirectoryHandle:
    kind = EntryKind.DIRECTORY

    def __init__(self, name: str, permission: PermissionState = PermissionState.GRANTED) -> None:
        self.name = name
        self.permission = permission
        self._children: dict[str, Union[MemoryFileHandle, "MemoryDirectoryHandle"]] = {}

    # ═══════════════════════════════════════════
    # Synchronous helpers for seeding/mutating the tree
    # ═══════════════════════════════════════════

    def add_file(
        self, name: str, content: Union[str, bytes] = b"", content_type: Optional[str] = None
    ) -> MemoryFileHandle:
        handle = MemoryFileHandle(name, content, content_type)
        self._children[name] = handle
        return handle

    def add_directory(self, name: str) -> "MemoryDirectoryHandle":
        handle = MemoryDirectoryHandle(name, self.permission)
        self._children[name] = handle
        return handle

    def remove(self, name: str) -> None:
        del self._children[name]

    def child(self, name: str):
        return self._children.get(name)

    def names(self) -> list[str]:
        return list(self._children)

    # ═══════════════════════════════════════════
    # Handle interface
    # ═══════════════════════════════════════════

    async def entries(self) -> AsyncIterator[tuple[str, object]]:
        for name, handle in list(self._children.items()):
            yield name, handle

    async def get_file_handle(self, name: str, create: bool = False) -> MemoryFileHandle:
        existing = self._children.get(name)
        if isinstance(existing, MemoryDirectoryHandle):
            raise IsADirectoryError(f"{self.name}/{name} is a directory")
        if existing is None:
            if not create:
                raise FileNotFoundError(f"{self.name}/{name} not found")
            existing = self.add_file(name)
        return existing

    async def get_directory_handle(self, name: str, create: bool = False) -> "MemoryDirectoryHandle":
        existing = self._children.get(name)
        if isinstance(existing, MemoryFileHandle):
            raise NotADirectoryError(f"{self.name}/{name} is a file")
        if existing is None:
            if not create:
                raise FileNotFoundError(f"{self.name}/{name} not found")
            existing = self.add_directory(name)
        return existing

    async def remove_entry(self, name: str, recursive: bool = False) -> None:
        existing = self._children.get(name)
        if existing is None:
            raise FileNotFoundError(f"{self.name}/{name} not found")
        if isinstance(existing, MemoryDirectoryHandle) and existing._children and not recursive:
            raise OSError(f"Directory not empty: {self.name}/{name}")
        del self._children[name]

    async def request_permission(self, mode: PermissionMode = PermissionMode.READ) -> PermissionState:
        return self.permission

    async def query_permission(self, mode: PermissionMode = PermissionMode.READ) -> PermissionState:
        return self.permission

    async def is_same_entry(self, other) -> bool:
        return other is self

    def __repr__(self) -> str:
        return f"MemoryDirectoryHandle({self.name!r}, {len(self._children)} children)"
