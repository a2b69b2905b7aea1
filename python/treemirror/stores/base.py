"""
Persistence collaborator interface.

A directory store remembers root handles under a key so a host can offer
previously opened roots again. The mirror only talks to it when a root is
opened or when the caller manages saved roots explicitly.
"""

from typing import Protocol

from ..handles import DirectoryHandle


class DirectoryStore(Protocol):
    async def get_all(self) -> dict[str, DirectoryHandle]: ...

    async def save(self, key: str, handle: DirectoryHandle) -> None: ...

    async def remove(self, key: str) -> bool: ...

    async def clear(self) -> None: ...
