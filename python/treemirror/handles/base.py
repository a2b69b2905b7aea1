"""
Capability interface for the external store.

The mirror never touches the store through path strings. Everything goes
through opaque handles borrowed from the store: a directory handle can
enumerate, resolve, create and remove its children; a file handle can
produce a point-in-time snapshot and open a writable stream.

Implementations:
- ``handles.memory``: in-process tree, used by tests and embedders
- ``handles.local``: a directory on the local filesystem
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Protocol, Union

from ..entries import EntryKind


class PermissionMode(str, Enum):
    READ = "read"
    READWRITE = "readwrite"


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


@dataclass
class FileSnapshot:
    """Metadata and content reader for a file at the moment it was fetched."""

    name: str
    size: int
    last_modified: float
    type: str
    _reader: Callable[[], Awaitable[bytes]] = field(repr=False)

    async def read(self) -> bytes:
        return await self._reader()

    async def text(self) -> str:
        data = await self._reader()
        return data.decode("utf-8", errors="replace")


class WritableStream(Protocol):
    """Scoped writer; nothing is visible in the store until ``close()``."""

    async def write(self, data: Union[str, bytes]) -> None: ...

    async def close(self) -> None: ...

    async def abort(self) -> None: ...


class FileHandle(Protocol):
    name: str
    kind: EntryKind

    async def get_file(self) -> FileSnapshot: ...

    async def create_writable(self, keep_existing_data: bool = False) -> WritableStream: ...

    async def is_same_entry(self, other: "Handle") -> bool: ...


class DirectoryHandle(Protocol):
    name: str
    kind: EntryKind

    def entries(self) -> AsyncIterator[tuple[str, "Handle"]]: ...

    async def get_file_handle(self, name: str, create: bool = False) -> FileHandle: ...

    async def get_directory_handle(self, name: str, create: bool = False) -> "DirectoryHandle": ...

    async def remove_entry(self, name: str, recursive: bool = False) -> None: ...

    async def request_permission(self, mode: PermissionMode = PermissionMode.READ) -> PermissionState: ...

    async def query_permission(self, mode: PermissionMode = PermissionMode.READ) -> PermissionState: ...

    async def is_same_entry(self, other: "Handle") -> bool: ...


Handle = Union[FileHandle, DirectoryHandle]


def encode_data(data: Union[str, bytes, bytearray, memoryview]) -> bytes:
    """Normalize writable payloads to bytes."""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)
