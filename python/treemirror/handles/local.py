"""
Local filesystem store.

Wraps a directory on disk in the handle interface. Blocking filesystem
calls run in ``asyncio.to_thread`` so a slow disk never stalls the event
loop. Writable streams write to a temp file next to the target and commit
with ``os.replace`` on ``close()``, so an aborted write leaves the
original untouched.
"""

import asyncio
import logging
import mimetypes
import os
import shutil
import tempfile
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from ..entries import EntryKind
from .base import FileSnapshot, PermissionMode, PermissionState, encode_data

logger = logging.getLogger(__name__)


def _scan(path: Path) -> list[tuple[str, bool]]:
    """List (name, is_dir) for regular files and directories, no symlink following."""
    results = []
    with os.scandir(path) as it:
        for entry in it:
            if entry.is_dir(follow_symlinks=False):
                results.append((entry.name, True))
            elif entry.is_file(follow_symlinks=False):
                results.append((entry.name, False))
    return results


def _same_file(a: Path, b: Path) -> bool:
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


class LocalWritableStream:
    def __init__(self, target: Path, keep_existing_data: bool) -> None:
        self._target = target
        self._keep = keep_existing_data
        self._temp: Optional[Path] = None

    async def _ensure_temp(self) -> Path:
        if self._temp is None:
            self._temp = await asyncio.to_thread(self._create_temp)
        return self._temp

    def _create_temp(self) -> Path:
        fd, name = tempfile.mkstemp(prefix=f".{self._target.name}.", suffix=".tmp", dir=self._target.parent)
        os.close(fd)
        temp = Path(name)
        if self._keep and self._target.exists():
            shutil.copyfile(self._target, temp)
        return temp

    async def write(self, data: Union[str, bytes]) -> None:
        temp = await self._ensure_temp()
        payload = encode_data(data)

        def append() -> None:
            with open(temp, "ab") as fh:
                fh.write(payload)

        await asyncio.to_thread(append)

    async def close(self) -> None:
        temp = await self._ensure_temp()
        await asyncio.to_thread(os.replace, temp, self._target)
        self._temp = None

    async def abort(self) -> None:
        if self._temp is not None:
            temp, self._temp = self._temp, None
            await asyncio.to_thread(temp.unlink, True)


class LocalFileHandle:
    kind = EntryKind.FILE

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.name = self.path.name

    async def get_file(self) -> FileSnapshot:
        stat = await asyncio.to_thread(self.path.stat)
        path = self.path

        async def reader() -> bytes:
            return await asyncio.to_thread(path.read_bytes)

        return FileSnapshot(
            name=self.name,
            size=stat.st_size,
            last_modified=stat.st_mtime,
            type=mimetypes.guess_type(self.name)[0] or "",
            _reader=reader,
        )

    async def create_writable(self, keep_existing_data: bool = False) -> LocalWritableStream:
        return LocalWritableStream(self.path, keep_existing_data)

    async def is_same_entry(self, other) -> bool:
        if not isinstance(other, LocalFileHandle):
            return False
        return await asyncio.to_thread(_same_file, self.path, other.path)

    def __repr__(self) -> str:
        return f"LocalFileHandle({str(self.path)!r})"


class LocalDirectoryHandle:
    kind = EntryKind.DIRECTORY

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.name = self.path.name

    async def entries(self) -> AsyncIterator[tuple[str, Union[LocalFileHandle, "LocalDirectoryHandle"]]]:
        listing = await asyncio.to_thread(_scan, self.path)
        for name, is_dir in listing:
            child = self.path / name
            yield name, (LocalDirectoryHandle(child) if is_dir else LocalFileHandle(child))

    async def get_file_handle(self, name: str, create: bool = False) -> LocalFileHandle:
        target = self.path / name

        def resolve() -> None:
            if target.is_dir():
                raise IsADirectoryError(str(target))
            if not target.exists():
                if not create:
                    raise FileNotFoundError(str(target))
                target.touch()

        await asyncio.to_thread(resolve)
        return LocalFileHandle(target)

    async def get_directory_handle(self, name: str, create: bool = False) -> "LocalDirectoryHandle":
        target = self.path / name

        def resolve() -> None:
            if target.exists() and not target.is_dir():
                raise NotADirectoryError(str(target))
            if not target.exists():
                if not create:
                    raise FileNotFoundError(str(target))
                target.mkdir()

        await asyncio.to_thread(resolve)
        return LocalDirectoryHandle(target)

    async def remove_entry(self, name: str, recursive: bool = False) -> None:
        target = self.path / name

        def remove() -> None:
            if target.is_dir() and not target.is_symlink():
                if recursive:
                    shutil.rmtree(target)
                else:
                    target.rmdir()
            else:
                target.unlink()

        await asyncio.to_thread(remove)

    async def request_permission(self, mode: PermissionMode = PermissionMode.READ) -> PermissionState:
        return await self.query_permission(mode)

    async def query_permission(self, mode: PermissionMode = PermissionMode.READ) -> PermissionState:
        flags = os.R_OK | os.X_OK
        if PermissionMode(mode) == PermissionMode.READWRITE:
            flags |= os.W_OK
        allowed = await asyncio.to_thread(os.access, self.path, flags)
        if not allowed:
            logger.warning(f"Access '{PermissionMode(mode).value}' denied for {self.path}")
        return PermissionState.GRANTED if allowed else PermissionState.DENIED

    async def is_same_entry(self, other) -> bool:
        if not isinstance(other, LocalDirectoryHandle):
            return False
        return await asyncio.to_thread(_same_file, self.path, other.path)

    def __repr__(self) -> str:
        return f"LocalDirectoryHandle({str(self.path)!r})"
