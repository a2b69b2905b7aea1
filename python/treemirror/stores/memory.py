"""In-process directory store."""

from ..handles import DirectoryHandle


class MemoryDirectoryStore:
    """Keeps handles in a dict for the lifetime of the process."""

    def __init__(self) -> None:
        self.handles: dict[str, DirectoryHandle] = {}

    async def get_all(self) -> dict[str, DirectoryHandle]:
        return dict(self.handles)

    async def save(self, key: str, handle: DirectoryHandle) -> None:
        self.handles[key] = handle

    async def remove(self, key: str) -> bool:
        return self.handles.pop(key, None) is not None

    async def clear(self) -> None:
        self.handles.clear()
